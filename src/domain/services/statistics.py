"""History and progress statistics for a learner's assessment records."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from src.core.auth import Role
from src.core.clock import ensure_utc
from src.domain.models import User
from src.domain.services.availability import normalize_language, normalize_level
from src.domain.services.evaluation import RecordNotFoundError
from src.infrastructure.db.models import AssessmentRecord, CefrLevel, Skill
from src.infrastructure.repositories.assessment_records import AssessmentRecordRepository


def _summarize(records: Sequence[AssessmentRecord]) -> dict[str, Any]:
    """Score aggregates over chronologically ordered ``records``."""
    scores = [r.effective_score for r in records if r.effective_score is not None]
    count = len(records)
    if not scores:
        return {
            "count": count,
            "average_score": 0.0,
            "highest_score": 0.0,
            "lowest_score": 0.0,
            "latest_score": None if records else 0.0,
        }
    return {
        "count": count,
        "average_score": round(sum(scores) / len(scores), 2),
        "highest_score": max(scores),
        "lowest_score": min(scores),
        "latest_score": records[-1].effective_score,
    }


def aggregate_statistics(records: Iterable[AssessmentRecord]) -> dict[str, Any]:
    """Aggregate records into progress statistics.

    Records are ordered chronologically first. Records without an effective
    score (pending review) count towards ``total_count`` and group counts but
    are left out of every score aggregate. ``latest_score`` belongs to the
    chronologically last record, so it is ``None`` while that attempt is still
    awaiting review.
    """
    ordered = sorted(records, key=lambda record: ensure_utc(record.submitted_at))
    scored = [record for record in ordered if record.effective_score is not None]

    summary = _summarize(ordered)
    stats: dict[str, Any] = {
        "total_count": summary["count"],
        "average_score": summary["average_score"],
        "highest_score": summary["highest_score"],
        "lowest_score": summary["lowest_score"],
        "latest_score": summary["latest_score"],
        "progress_over_time": [
            {
                "date": ensure_utc(record.submitted_at).isoformat(),
                "score": record.effective_score,
                "level": record.level.label,
                "language": record.language,
                "skill": record.skill.value,
            }
            for record in scored
        ],
    }

    by_level: dict[str, list[AssessmentRecord]] = {}
    by_language: dict[str, list[AssessmentRecord]] = {}
    for record in sorted(ordered, key=lambda record: record.level.rank):
        by_level.setdefault(record.level.label, []).append(record)
    for record in ordered:
        by_language.setdefault(record.language, []).append(record)

    stats["by_level"] = {key: _group_summary(group) for key, group in by_level.items()}
    stats["by_language"] = {key: _group_summary(group) for key, group in by_language.items()}
    return stats


def _group_summary(group: list[AssessmentRecord]) -> dict[str, Any]:
    return _summarize(sorted(group, key=lambda record: ensure_utc(record.submitted_at)))


class StatisticsService:
    def __init__(self, session: AsyncSession) -> None:
        self.records = AssessmentRecordRepository(session)

    async def get_history(
        self, user_id: str, skill: Skill | None = None
    ) -> list[AssessmentRecord]:
        return await self.records.find_all(user_id=user_id, skill=skill, newest_first=True)

    async def get_record(self, record_id: str, user: User) -> AssessmentRecord:
        """Fetch one record; students only ever see their own."""
        record = await self.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Assessment record '{record_id}' not found")
        if record.user_id != user.user_id and not user.has_any_role(Role.reviewers()):
            # Hide existence of other learners' records
            raise RecordNotFoundError(f"Assessment record '{record_id}' not found")
        return record

    async def get_statistics(
        self,
        user_id: str,
        *,
        skill: Skill | None = None,
        level: str | CefrLevel | None = None,
        language: str | None = None,
    ) -> dict[str, Any]:
        records = await self.records.find_all(
            user_id=user_id,
            skill=skill,
            level=normalize_level(level) if level else None,
            language=normalize_language(language) if language else None,
        )
        return aggregate_statistics(records)

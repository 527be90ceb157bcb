"""Supervisor review of attempts that are not scored automatically."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from src.core.clock import utcnow
from src.domain.services.availability import normalize_language, normalize_level
from src.infrastructure.db.models import AssessmentRecord, EvaluationStatus, Skill
from src.infrastructure.repositories.assessment_records import AssessmentRecordRepository

logger = structlog.get_logger()


class RecordNotFoundError(Exception):
    """Raised when a record does not exist or is not visible to the requester."""


class RecordNotPendingError(Exception):
    """Raised when a record is not awaiting supervisor review."""


class InvalidEvaluationError(Exception):
    """Raised when a supervisor evaluation payload is unusable."""


class EvaluationService:
    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.records = AssessmentRecordRepository(session)
        self.clock = clock

    async def list_pending(
        self,
        *,
        skill: Skill | None = None,
        level: str | None = None,
        language: str | None = None,
    ) -> list[AssessmentRecord]:
        """Review queue, oldest submission first."""
        return await self.records.find_by_status(
            EvaluationStatus.PENDING,
            skill=skill,
            level=normalize_level(level) if level else None,
            language=normalize_language(language) if language else None,
        )

    async def submit_evaluation(
        self,
        *,
        record_id: str,
        supervisor_id: str,
        score: float,
        feedback: str,
        criteria: list[dict[str, Any]] | None = None,
    ) -> AssessmentRecord:
        """Attach the supervisor's score; the automated score is left as it was."""
        feedback = (feedback or "").strip()
        if not 0 <= score <= 100:
            raise InvalidEvaluationError("Score must be between 0 and 100")
        if not feedback:
            raise InvalidEvaluationError("Feedback is required")

        record = await self.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Assessment record '{record_id}' not found")
        if record.status != EvaluationStatus.PENDING:
            current = record.status.value if record.status else "not reviewable"
            raise RecordNotPendingError(
                f"Assessment record is not awaiting review (status: {current})"
            )

        evaluated = await self.records.update_if_status(
            record_id,
            EvaluationStatus.PENDING,
            {
                "status": EvaluationStatus.EVALUATED,
                "supervisor_id": supervisor_id,
                "supervisor_score": float(score),
                "supervisor_feedback": feedback,
                "supervisor_criteria": criteria or None,
                "evaluated_at": self.clock(),
            },
        )
        if evaluated is None:
            # Another reviewer committed between our read and this write
            raise RecordNotPendingError("Assessment record has already been evaluated")

        await logger.ainfo(
            "assessment_evaluated",
            record_id=evaluated.id,
            supervisor_id=supervisor_id,
            supervisor_score=evaluated.supervisor_score,
            skill=evaluated.skill.value,
        )
        return evaluated

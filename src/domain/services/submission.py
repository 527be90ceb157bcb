"""
Submission handler for assessment attempts.

- Validates the skill-specific payload
- Enforces the cooldown window before anything is scored or written
- Scores objective and writing attempts, queues speaking for supervisor review
- Persists exactly one record per accepted attempt
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from src.core.clock import utcnow
from src.core.config import get_settings
from src.domain.reference_data import ANSWER_SET_FIELDS, MIN_TRANSCRIPTION_LENGTH
from src.domain.services.availability import (
    AvailabilityDecision,
    AvailabilityService,
    InvalidScopeError,
    normalize_language,
    normalize_level,
)
from src.domain.services.scoring import (
    AssessmentScorer,
    Degraded,
    ScoringCollaborator,
    ScoringOutcome,
    score_submission,
)
from src.infrastructure.db.models import (
    INITIAL_WINDOW_KEY,
    AssessmentRecord,
    CefrLevel,
    EvaluationStatus,
    ScoringMethod,
    Skill,
)
from src.infrastructure.repositories.assessment_records import AssessmentRecordRepository

logger = structlog.get_logger()

COOLDOWN_DENIAL_REASON = "Assessment is not available yet"


class SubmissionValidationError(Exception):
    """Raised when required submission fields are missing or invalid."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


@dataclass(slots=True)
class SubmissionDenial:
    reason: str
    next_available_date: datetime | None
    previous_score: float | None


@dataclass(slots=True)
class SubmissionResult:
    success: bool
    record: AssessmentRecord | None = None
    outcome: ScoringOutcome | None = None
    denial: SubmissionDenial | None = None

    @property
    def degraded(self) -> bool:
        return self.outcome is not None and self.outcome.degraded


class SubmissionService:
    """Orchestrates one attempt submission end-to-end."""

    def __init__(
        self,
        session: AsyncSession,
        scorer: ScoringCollaborator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        settings = get_settings()
        self.records = AssessmentRecordRepository(session)
        self.availability = AvailabilityService(session, cooldown=settings.cooldown)
        self.scorer = scorer or AssessmentScorer()
        self.clock = clock
        self.scoring_timeout = settings.scoring_timeout_seconds

    async def submit(
        self,
        *,
        user_id: str,
        skill: Skill,
        level: str | CefrLevel,
        language: str,
        payload: dict[str, Any],
    ) -> SubmissionResult:
        try:
            cefr_level = normalize_level(level)
            language = normalize_language(language)
        except InvalidScopeError as exc:
            raise SubmissionValidationError([str(exc)]) from exc

        data = self._validate(skill, payload)
        now = self.clock()

        decision = await self.availability.check(
            user_id=user_id, skill=skill, level=cefr_level, language=language, now=now
        )
        if not decision.available:
            return await self._deny(user_id, skill, cefr_level, language, decision)

        outcome: ScoringOutcome | None = None
        if not skill.requires_review:
            outcome = await score_submission(
                self.scorer,
                skill,
                {**data, "level": cefr_level.value, "language": language},
                timeout=self.scoring_timeout,
            )

        record = self._build_record(
            user_id=user_id,
            skill=skill,
            level=cefr_level,
            language=language,
            data=data,
            outcome=outcome,
            submitted_at=now,
            window_key=(
                decision.previous_record.id if decision.previous_record else INITIAL_WINDOW_KEY
            ),
        )

        try:
            record = await self.records.create(record)
        except IntegrityError:
            # A concurrent attempt opened this window first
            await self.records.rollback()
            decision = await self.availability.check(
                user_id=user_id, skill=skill, level=cefr_level, language=language, now=now
            )
            if decision.available:
                raise
            return await self._deny(user_id, skill, cefr_level, language, decision)

        await logger.ainfo(
            "assessment_submitted",
            record_id=record.id,
            user_id=user_id,
            skill=skill.value,
            level=cefr_level.value,
            language=language,
            score=record.score,
            status=record.status.value if record.status else None,
            degraded=record.degraded,
        )
        return SubmissionResult(success=True, record=record, outcome=outcome)

    async def _deny(
        self,
        user_id: str,
        skill: Skill,
        level: CefrLevel,
        language: str,
        decision: AvailabilityDecision,
    ) -> SubmissionResult:
        await logger.ainfo(
            "assessment_submission_denied",
            user_id=user_id,
            skill=skill.value,
            level=level.value,
            language=language,
            next_available_date=(
                decision.next_available_date.isoformat() if decision.next_available_date else None
            ),
        )
        return SubmissionResult(
            success=False,
            denial=SubmissionDenial(
                reason=COOLDOWN_DENIAL_REASON,
                next_available_date=decision.next_available_date,
                previous_score=decision.previous_score,
            ),
        )

    def _validate(self, skill: Skill, payload: dict[str, Any]) -> dict[str, Any]:
        """Return a cleaned copy of the payload or raise with every problem found."""
        errors: list[str] = []
        data: dict[str, Any] = {}

        for key in ("prompt", "response", "transcribed_text", "media_url"):
            value = _clean_text(payload.get(key))
            if value:
                data[key] = value

        for key in ("score", "correct_answers", "total_questions", "task_id"):
            if payload.get(key) is not None:
                data[key] = payload[key]
        data["time_spent_seconds"] = payload.get("time_spent_seconds") or 0
        if data["time_spent_seconds"] < 0:
            errors.append("time_spent_seconds must not be negative")

        if skill in ANSWER_SET_FIELDS:
            answer_sets = {
                key: payload[key] for key in ANSWER_SET_FIELDS[skill] if payload.get(key)
            }
            if not answer_sets:
                fields = ", ".join(ANSWER_SET_FIELDS[skill])
                errors.append(f"At least one answer set is required ({fields})")
            data["answers"] = answer_sets
            errors.extend(self._validate_counts(data))
        elif skill == Skill.WRITING:
            if not data.get("response"):
                errors.append("response is required for writing assessments")
        elif skill == Skill.SPEAKING:
            transcription = data.get("transcribed_text")
            if not transcription and not data.get("media_url"):
                errors.append("Either transcribed_text or media_url is required")
            elif (
                transcription
                and not data.get("media_url")
                and len(transcription) < MIN_TRANSCRIPTION_LENGTH
            ):
                errors.append(
                    "transcribed_text is too short for meaningful assessment "
                    f"(minimum {MIN_TRANSCRIPTION_LENGTH} characters)"
                )

        if errors:
            raise SubmissionValidationError(errors)
        return data

    @staticmethod
    def _validate_counts(data: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        correct = data.get("correct_answers")
        total = data.get("total_questions")
        score = data.get("score")

        if total is not None and total <= 0:
            errors.append("total_questions must be positive")
        if correct is not None and correct < 0:
            errors.append("correct_answers must not be negative")
        if correct is not None and total is not None and total > 0 and correct > total:
            errors.append("correct_answers cannot exceed total_questions")
        if score is not None and not 0 <= score <= 100:
            errors.append("score must be between 0 and 100")
        return errors

    @staticmethod
    def _build_record(
        *,
        user_id: str,
        skill: Skill,
        level: CefrLevel,
        language: str,
        data: dict[str, Any],
        outcome: ScoringOutcome | None,
        submitted_at: datetime,
        window_key: str,
    ) -> AssessmentRecord:
        record = AssessmentRecord(
            user_id=user_id,
            skill=skill,
            level=level,
            language=language,
            answers=data.get("answers") or None,
            prompt=data.get("prompt"),
            response_text=data.get("response"),
            transcribed_text=data.get("transcribed_text"),
            media_url=data.get("media_url"),
            task_id=data.get("task_id"),
            correct_answers=data.get("correct_answers"),
            total_questions=data.get("total_questions"),
            time_spent_seconds=data["time_spent_seconds"],
            submitted_at=submitted_at,
            window_key=window_key,
            degraded=False,
        )

        if outcome is None:
            record.score = None
            record.scoring_method = ScoringMethod.PENDING
            record.status = EvaluationStatus.PENDING
            record.feedback = "Your recording has been submitted for supervisor review."
            return record

        evaluation = outcome.evaluation
        record.score = evaluation.score
        record.feedback = evaluation.feedback
        record.criteria = [criterion.to_dict() for criterion in evaluation.criteria] or None
        record.recommendations = evaluation.recommendations or None
        record.scoring_method = ScoringMethod(evaluation.method)
        if isinstance(outcome, Degraded):
            record.degraded = True
            record.degraded_reason = outcome.reason
        return record


def _clean_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value

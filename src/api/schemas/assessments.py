from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from src.core.clock import ensure_utc
from src.infrastructure.db.models import AssessmentRecord


class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available: bool
    next_available_date: datetime | None = Field(None, alias="nextAvailableDate")
    previous_score: float | None = Field(None, alias="previousScore")


class SubmissionRequest(BaseModel):
    """Attempt payload; which fields are required depends on the skill."""

    level: str = Field(..., description="CEFR level, e.g. A1 or b2")
    language: str = Field(..., description="Assessment language, e.g. english")

    # Objective tests
    score: float | None = None
    correct_answers: int | None = None
    total_questions: int | None = None
    time_spent_seconds: int | None = None
    multiple_choice_answers: Any = None
    true_false_answers: Any = None
    fill_blanks_answers: Any = None
    categorization_answers: Any = None
    answers: Any = None
    mcq_answers: Any = None
    phrase_matching_answers: Any = None

    # Writing
    prompt: str | None = None
    response: str | None = None

    # Speaking
    transcribed_text: str | None = None
    media_url: str | None = None
    task_id: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude={"level", "language"}, exclude_none=True)


class CriterionItem(BaseModel):
    name: str
    score: float
    feedback: str = ""


class AssessmentRecordResponse(BaseModel):
    id: str
    user_id: str
    skill: str
    level: str
    language: str
    score: float | None
    effective_score: float | None
    feedback: str | None = None
    criteria: list[dict[str, Any]] | None = None
    recommendations: list[str] | None = None
    scoring_method: str
    degraded: bool = False
    degraded_reason: str | None = None
    status: str | None = None
    supervisor_id: str | None = None
    supervisor_score: float | None = None
    supervisor_feedback: str | None = None
    supervisor_criteria: list[dict[str, Any]] | None = None
    evaluated_at: datetime | None = None
    answers: dict[str, Any] | None = None
    prompt: str | None = None
    response_text: str | None = None
    transcribed_text: str | None = None
    media_url: str | None = None
    task_id: int | None = None
    correct_answers: int | None = None
    total_questions: int | None = None
    time_spent_seconds: int = 0
    submitted_at: datetime

    @classmethod
    def from_record(cls, record: AssessmentRecord) -> AssessmentRecordResponse:
        return cls(
            id=record.id,
            user_id=record.user_id,
            skill=record.skill.value,
            level=record.level.label,
            language=record.language,
            score=record.score,
            effective_score=record.effective_score,
            feedback=record.feedback,
            criteria=record.criteria,
            recommendations=record.recommendations,
            scoring_method=record.scoring_method.value,
            degraded=record.degraded,
            degraded_reason=record.degraded_reason,
            status=record.status.value if record.status else None,
            supervisor_id=record.supervisor_id,
            supervisor_score=record.supervisor_score,
            supervisor_feedback=record.supervisor_feedback,
            supervisor_criteria=record.supervisor_criteria,
            evaluated_at=ensure_utc(record.evaluated_at) if record.evaluated_at else None,
            answers=record.answers,
            prompt=record.prompt,
            response_text=record.response_text,
            transcribed_text=record.transcribed_text,
            media_url=record.media_url,
            task_id=record.task_id,
            correct_answers=record.correct_answers,
            total_questions=record.total_questions,
            time_spent_seconds=record.time_spent_seconds,
            submitted_at=ensure_utc(record.submitted_at),
        )


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    record: AssessmentRecordResponse
    degraded: bool = False
    degraded_reason: str | None = Field(None, alias="degradedReason")


class SubmissionDeniedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    denial_reason: str = Field(..., alias="denialReason")
    next_available_date: datetime | None = Field(None, alias="nextAvailableDate")
    previous_score: float | None = Field(None, alias="previousScore")


class HistoryResponse(BaseModel):
    items: list[AssessmentRecordResponse]
    total: int


class GroupStatistics(BaseModel):
    count: int
    average_score: float
    highest_score: float
    lowest_score: float
    latest_score: float | None


class ProgressPoint(BaseModel):
    date: datetime
    score: float
    level: str
    language: str
    skill: str


class StatisticsResponse(BaseModel):
    total_count: int
    average_score: float
    highest_score: float
    lowest_score: float
    latest_score: float | None
    progress_over_time: list[ProgressPoint]
    by_level: dict[str, GroupStatistics]
    by_language: dict[str, GroupStatistics]


class EvaluationRequest(BaseModel):
    score: float = Field(..., description="Supervisor score, 0-100")
    feedback: str
    criteria: list[CriterionItem] | None = None


class PendingQueueResponse(BaseModel):
    items: list[AssessmentRecordResponse]
    total: int

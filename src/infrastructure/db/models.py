from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

INITIAL_WINDOW_KEY = "initial"


class Skill(str, enum.Enum):
    READING = "reading"
    WRITING = "writing"
    SPEAKING = "speaking"
    LISTENING = "listening"

    @property
    def requires_review(self) -> bool:
        """Skills whose attempts wait for a supervisor instead of automated scoring."""
        return self is Skill.SPEAKING


class CefrLevel(str, enum.Enum):
    """CEFR proficiency tiers, declared in ascending order."""

    A1 = "a1"
    A2 = "a2"
    B1 = "b1"
    B2 = "b2"
    C1 = "c1"
    C2 = "c2"

    @property
    def rank(self) -> int:
        return list(CefrLevel).index(self)

    @property
    def label(self) -> str:
        return self.value.upper()


class EvaluationStatus(str, enum.Enum):
    """Supervisor review status.

    Note: Must use name='evaluation_status' in Enum() to match database enum type.
    """

    PENDING = "pending"
    EVALUATED = "evaluated"


class ScoringMethod(str, enum.Enum):
    RULE = "rule"
    AI = "ai"
    FALLBACK = "fallback"
    PENDING = "pending"


class AssessmentRecord(Base):
    """One assessment attempt by one user for a (skill, level, language)."""

    __tablename__ = "assessment_records"
    __table_args__ = (
        # Conditional insert: two attempts opening the same cooldown window collide here
        UniqueConstraint(
            "user_id",
            "skill",
            "level",
            "language",
            "window_key",
            name="uq_record_cooldown_window",
        ),
        Index(
            "ix_record_scope_submitted",
            "user_id",
            "skill",
            "level",
            "language",
            "submitted_at",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    skill: Mapped[Skill] = mapped_column(
        Enum(Skill, name="skill", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    level: Mapped[CefrLevel] = mapped_column(
        Enum(CefrLevel, name="cefr_level", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    language: Mapped[str] = mapped_column(String(32), nullable=False)

    # Submission content
    answers: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcribed_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    task_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    correct_answers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_questions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Automated result; NULL score means "not scored yet"
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    criteria: Mapped[list | None] = mapped_column(JSON, nullable=True)
    recommendations: Mapped[list | None] = mapped_column(JSON, nullable=True)
    scoring_method: Mapped[ScoringMethod] = mapped_column(
        Enum(ScoringMethod, name="scoring_method", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    degraded_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Supervisor review
    status: Mapped[EvaluationStatus | None] = mapped_column(
        Enum(
            EvaluationStatus,
            name="evaluation_status",
            values_callable=lambda e: [x.value for x in e],
        ),
        nullable=True,
        index=True,
    )
    supervisor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    supervisor_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    supervisor_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_criteria: Mapped[list | None] = mapped_column(JSON, nullable=True)
    evaluated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    window_key: Mapped[str] = mapped_column(
        String(36), nullable=False, default=INITIAL_WINDOW_KEY
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def effective_score(self) -> float | None:
        """Supervisor score once evaluated, otherwise the automated score."""
        if self.status == EvaluationStatus.EVALUATED and self.supervisor_score is not None:
            return self.supervisor_score
        return self.score

    def __repr__(self) -> str:
        return (
            f"<AssessmentRecord(id={self.id}, user_id={self.user_id}, "
            f"skill={self.skill.value}, level={self.level.value}, language={self.language})>"
        )


__all__ = [
    "INITIAL_WINDOW_KEY",
    "Skill",
    "CefrLevel",
    "EvaluationStatus",
    "ScoringMethod",
    "AssessmentRecord",
]

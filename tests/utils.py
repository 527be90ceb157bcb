from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

from fastapi.testclient import TestClient
from src.api.deps import issue_smoke_token
from src.core.auth import Role
from src.infrastructure.db.models import (
    INITIAL_WINDOW_KEY,
    AssessmentRecord,
    CefrLevel,
    EvaluationStatus,
    ScoringMethod,
    Skill,
)

T = TypeVar("T")


def auth_headers(user_id: str = "student-1", role: Role = Role.STUDENT) -> dict[str, str]:
    token = issue_smoke_token(user_id, role=role, email=f"{user_id}@example.com")
    return {"Authorization": f"Bearer {token}"}


def run_in_app_loop(client: TestClient, func: Callable[..., Awaitable[T]], *args: Any) -> T:
    """Run a coroutine function on the loop that serves the test client."""
    return client.portal.call(func, *args)  # type: ignore[attr-defined]


def make_record(
    *,
    user_id: str = "student-1",
    skill: Skill = Skill.READING,
    level: CefrLevel = CefrLevel.B1,
    language: str = "english",
    score: float | None = 70.0,
    submitted_at: datetime | None = None,
    window_key: str = INITIAL_WINDOW_KEY,
    status: EvaluationStatus | None = None,
    supervisor_score: float | None = None,
    scoring_method: ScoringMethod = ScoringMethod.RULE,
) -> AssessmentRecord:
    """Build an unsaved record with sensible defaults."""
    return AssessmentRecord(
        user_id=user_id,
        skill=skill,
        level=level,
        language=language,
        score=score,
        scoring_method=scoring_method,
        status=status,
        supervisor_score=supervisor_score,
        submitted_at=submitted_at or datetime(2026, 10, 1, 9, 0, tzinfo=UTC),
        window_key=window_key,
        time_spent_seconds=0,
        degraded=False,
    )


def reading_payload(**overrides: Any) -> dict[str, Any]:
    """Minimal valid body for POST /assessments/reading/submit."""
    payload: dict[str, Any] = {
        "level": "B1",
        "language": "english",
        "multiple_choice_answers": {"1": "a", "2": "c"},
        "correct_answers": 8,
        "total_questions": 10,
        "time_spent_seconds": 300,
    }
    payload.update(overrides)
    return payload


def speaking_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "level": "B1",
        "language": "english",
        "transcribed_text": "I usually spend my weekends hiking with friends.",
        "task_id": 3,
    }
    payload.update(overrides)
    return payload

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass(slots=True)
class User:
    """Represents an authenticated actor within the system."""

    user_id: str
    email: str = ""
    roles: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def has_any_role(self, roles: tuple[str, ...] | list[str]) -> bool:
        return bool(set(roles).intersection(self.roles))


@dataclass(slots=True)
class CriterionScore:
    name: str
    score: float
    feedback: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "score": self.score, "feedback": self.feedback}


@dataclass(slots=True)
class Evaluation:
    """Score and feedback produced for one submission."""

    score: float
    feedback: str
    method: str
    criteria: list[CriterionScore] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    model: str | None = None

"""Cooldown policy deciding whether a user may start a new attempt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from src.core.clock import ensure_utc, utcnow
from src.core.config import get_settings
from src.infrastructure.db.models import AssessmentRecord, CefrLevel, Skill
from src.infrastructure.repositories.assessment_records import AssessmentRecordRepository


class InvalidScopeError(ValueError):
    """Raised when level or language is outside the supported set."""


@dataclass(slots=True)
class AvailabilityDecision:
    available: bool
    next_available_date: datetime | None = None
    previous_score: float | None = None
    previous_record: AssessmentRecord | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"available": self.available}
        if self.next_available_date is not None:
            payload["nextAvailableDate"] = self.next_available_date.isoformat()
        if self.previous_score is not None:
            payload["previousScore"] = self.previous_score
        return payload


def evaluate_availability(
    latest: AssessmentRecord | None,
    *,
    now: datetime,
    cooldown: timedelta,
) -> AvailabilityDecision:
    """Rolling-window check against the most recent attempt in scope."""
    if latest is None:
        return AvailabilityDecision(available=True)

    submitted_at = ensure_utc(latest.submitted_at)
    if ensure_utc(now) - submitted_at >= cooldown:
        return AvailabilityDecision(
            available=True,
            previous_score=latest.effective_score,
            previous_record=latest,
        )

    return AvailabilityDecision(
        available=False,
        next_available_date=submitted_at + cooldown,
        previous_score=latest.effective_score,
        previous_record=latest,
    )


def normalize_level(level: str | CefrLevel) -> CefrLevel:
    if isinstance(level, CefrLevel):
        return level
    try:
        return CefrLevel(str(level).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.label for item in CefrLevel)
        raise InvalidScopeError(f"Invalid level '{level}'. Must be one of: {allowed}") from exc


def normalize_language(language: str) -> str:
    supported = get_settings().supported_languages
    normalized = str(language or "").strip().lower()
    if normalized not in supported:
        raise InvalidScopeError(
            f"Unsupported language '{language}'. Must be one of: {', '.join(supported)}"
        )
    return normalized


class AvailabilityService:
    """Read-only availability lookups; storage errors propagate to the caller."""

    def __init__(self, session: AsyncSession, *, cooldown: timedelta | None = None) -> None:
        self.records = AssessmentRecordRepository(session)
        self.cooldown = cooldown or get_settings().cooldown

    async def check(
        self,
        *,
        user_id: str,
        skill: Skill,
        level: str | CefrLevel,
        language: str,
        now: datetime | None = None,
    ) -> AvailabilityDecision:
        latest = await self.records.find_most_recent(
            user_id=user_id,
            skill=skill,
            level=normalize_level(level),
            language=normalize_language(language),
        )
        return evaluate_availability(latest, now=now or utcnow(), cooldown=self.cooldown)

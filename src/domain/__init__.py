"""Domain layer: plain dataclasses and services."""

from src.domain.models import CriterionScore, Evaluation, User

__all__ = ["CriterionScore", "Evaluation", "User"]

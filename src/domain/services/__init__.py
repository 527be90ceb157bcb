"""Domain services."""

from src.domain.services.availability import (
    AvailabilityDecision,
    AvailabilityService,
    InvalidScopeError,
    evaluate_availability,
)
from src.domain.services.evaluation import (
    EvaluationService,
    InvalidEvaluationError,
    RecordNotFoundError,
    RecordNotPendingError,
)
from src.domain.services.scoring import (
    AssessmentScorer,
    Degraded,
    Scored,
    ScoringError,
    score_submission,
)
from src.domain.services.statistics import StatisticsService, aggregate_statistics
from src.domain.services.submission import (
    SubmissionResult,
    SubmissionService,
    SubmissionValidationError,
)

__all__ = [
    "AssessmentScorer",
    "AvailabilityDecision",
    "AvailabilityService",
    "Degraded",
    "EvaluationService",
    "InvalidEvaluationError",
    "InvalidScopeError",
    "RecordNotFoundError",
    "RecordNotPendingError",
    "Scored",
    "ScoringError",
    "StatisticsService",
    "SubmissionResult",
    "SubmissionService",
    "SubmissionValidationError",
    "aggregate_statistics",
    "evaluate_availability",
    "score_submission",
]

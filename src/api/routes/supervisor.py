from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from src.api.deps import get_evaluation_service, require_reviewer
from src.api.schemas.assessments import (
    AssessmentRecordResponse,
    EvaluationRequest,
    PendingQueueResponse,
)
from src.domain import User
from src.domain.services.availability import InvalidScopeError
from src.domain.services.evaluation import (
    EvaluationService,
    InvalidEvaluationError,
    RecordNotFoundError,
    RecordNotPendingError,
)
from src.infrastructure.db.models import Skill

router = APIRouter(prefix="/supervisor/assessments", tags=["Supervisor"])


@router.get("/pending", response_model=PendingQueueResponse)
async def list_pending(
    skill: Skill | None = Query(None),  # noqa: B008
    level: str | None = Query(None),
    language: str | None = Query(None),
    service: EvaluationService = Depends(get_evaluation_service),
    user: User = Depends(require_reviewer),
) -> PendingQueueResponse:
    """Attempts awaiting review, oldest first."""
    try:
        records = await service.list_pending(skill=skill, level=level, language=language)
    except InvalidScopeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return PendingQueueResponse(
        items=[AssessmentRecordResponse.from_record(record) for record in records],
        total=len(records),
    )


@router.post("/{record_id}/evaluation", response_model=AssessmentRecordResponse)
async def submit_evaluation(
    record_id: str,
    payload: EvaluationRequest,
    service: EvaluationService = Depends(get_evaluation_service),
    user: User = Depends(require_reviewer),
) -> AssessmentRecordResponse:
    try:
        record = await service.submit_evaluation(
            record_id=record_id,
            supervisor_id=user.user_id,
            score=payload.score,
            feedback=payload.feedback,
            criteria=(
                [item.model_dump() for item in payload.criteria] if payload.criteria else None
            ),
        )
    except InvalidEvaluationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RecordNotPendingError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return AssessmentRecordResponse.from_record(record)

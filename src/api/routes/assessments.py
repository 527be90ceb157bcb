from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from src.api.deps import (
    get_db_session,
    get_statistics_service,
    get_submission_service,
    require_any_member,
    require_student,
)
from src.api.schemas.assessments import (
    AssessmentRecordResponse,
    AvailabilityResponse,
    HistoryResponse,
    StatisticsResponse,
    SubmissionDeniedResponse,
    SubmissionRequest,
    SubmissionResponse,
)
from src.domain import User
from src.domain.services.availability import AvailabilityService, InvalidScopeError
from src.domain.services.evaluation import RecordNotFoundError
from src.domain.services.statistics import StatisticsService
from src.domain.services.submission import SubmissionService, SubmissionValidationError
from src.infrastructure.db.models import Skill

router = APIRouter(prefix="/assessments", tags=["Assessments"])


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    skill: Skill | None = Query(None),  # noqa: B008
    service: StatisticsService = Depends(get_statistics_service),
    user: User = Depends(require_student),
) -> HistoryResponse:
    """Return the caller's attempts, newest first."""
    records = await service.get_history(user.user_id, skill=skill)
    return HistoryResponse(
        items=[AssessmentRecordResponse.from_record(record) for record in records],
        total=len(records),
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(
    skill: Skill | None = Query(None),  # noqa: B008
    level: str | None = Query(None),
    language: str | None = Query(None),
    service: StatisticsService = Depends(get_statistics_service),
    user: User = Depends(require_student),
) -> StatisticsResponse:
    try:
        stats = await service.get_statistics(
            user.user_id, skill=skill, level=level, language=language
        )
    except InvalidScopeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return StatisticsResponse(**stats)


@router.get("/records/{record_id}", response_model=AssessmentRecordResponse)
async def get_record(
    record_id: str,
    service: StatisticsService = Depends(get_statistics_service),
    user: User = Depends(require_any_member),
) -> AssessmentRecordResponse:
    try:
        record = await service.get_record(record_id, user)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AssessmentRecordResponse.from_record(record)


@router.get(
    "/{skill}/availability",
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
)
async def check_availability(
    skill: Skill,
    level: str = Query(...),
    language: str = Query(...),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_student),
) -> AvailabilityResponse:
    """Whether the caller may start a new attempt for this skill, level and language."""
    try:
        decision = await AvailabilityService(session).check(
            user_id=user.user_id, skill=skill, level=level, language=language
        )
    except InvalidScopeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return AvailabilityResponse(
        available=decision.available,
        next_available_date=decision.next_available_date,
        previous_score=decision.previous_score,
    )


@router.post(
    "/{skill}/submit",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_403_FORBIDDEN: {"model": SubmissionDeniedResponse}},
)
async def submit_assessment(
    skill: Skill,
    payload: SubmissionRequest,
    service: SubmissionService = Depends(get_submission_service),
    user: User = Depends(require_student),
) -> SubmissionResponse | JSONResponse:
    """
    Submit one attempt.

    - Rejected with 403 while the cooldown window for this scope is open
    - Reading and listening are rule-scored, writing is AI-scored
    - Speaking is stored unscored and queued for supervisor review
    - ``degraded`` is true when a provisional fallback score was stored
    """
    try:
        result = await service.submit(
            user_id=user.user_id,
            skill=skill,
            level=payload.level,
            language=payload.language,
            payload=payload.to_payload(),
        )
    except SubmissionValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail={"errors": exc.errors}
        ) from exc

    if not result.success or result.record is None:
        denial = result.denial
        body = SubmissionDeniedResponse(
            denial_reason=denial.reason if denial else "Assessment is not available yet",
            next_available_date=denial.next_available_date if denial else None,
            previous_score=denial.previous_score if denial else None,
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=body.model_dump(mode="json", by_alias=True),
        )

    return SubmissionResponse(
        success=True,
        record=AssessmentRecordResponse.from_record(result.record),
        degraded=result.record.degraded,
        degraded_reason=result.record.degraded_reason,
    )

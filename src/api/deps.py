from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from src.core.auth import Role, TokenError, create_access_token, principal_from_token
from src.core.config import get_settings
from src.domain import User
from src.domain.services.evaluation import EvaluationService
from src.domain.services.scoring import AssessmentScorer, ScoringCollaborator
from src.domain.services.statistics import StatisticsService
from src.domain.services.submission import SubmissionService
from src.infrastructure.db.session import get_session

bearer_scheme = HTTPBearer(auto_error=False)
logger = structlog.get_logger()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> User:
    """Resolve the caller from the bearer token; the User is passed explicitly to handlers."""
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        user = principal_from_token(credentials.credentials)
    except TokenError as exc:
        logger.info("auth_token_rejected", reason=str(exc))
        raise _unauthorized(str(exc)) from exc

    if not user.roles:
        raise _forbidden("Token missing required roles")
    return user


def require_roles(required_roles: Sequence[str | Role]) -> Callable[[User], User]:
    """Dependency factory admitting users holding at least one of ``required_roles``."""
    allowed = set(get_settings().allowed_roles)
    required = {Role(role).value for role in required_roles}

    invalid_roles = sorted(required - allowed)
    if invalid_roles:
        raise ValueError(f"Unsupported role(s) requested: {', '.join(invalid_roles)}")

    def dependency(user: User = Depends(get_current_user)) -> User:  # noqa: B008
        if not user.has_any_role(tuple(required)):
            raise _forbidden("Insufficient role privileges")
        return user

    return dependency


require_student = require_roles([Role.STUDENT])
require_reviewer = require_roles(Role.reviewers())
require_any_member = require_roles([Role.STUDENT, *Role.reviewers()])


def issue_smoke_token(user_id: str, *, role: Role, email: str | None = None) -> str:
    """Generate a signed token for manual smoke testing."""
    return create_access_token(user_id, roles=[role], email=email)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Provide an async SQLAlchemy session for API handlers."""
    async for session in get_session():
        yield session


def get_scorer() -> ScoringCollaborator:
    """Scoring collaborator for submissions; overridden in tests."""
    return AssessmentScorer()


def get_submission_service(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
    scorer: ScoringCollaborator = Depends(get_scorer),  # noqa: B008
) -> SubmissionService:
    return SubmissionService(session, scorer=scorer)


def get_evaluation_service(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> EvaluationService:
    return EvaluationService(session)


def get_statistics_service(
    session: AsyncSession = Depends(get_db_session),  # noqa: B008
) -> StatisticsService:
    return StatisticsService(session)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

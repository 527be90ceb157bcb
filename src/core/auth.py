from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt
from src.core.config import get_settings
from src.domain.models import User


class TokenError(Exception):
    """Raised when a token cannot be decoded or validated."""


class Role(str, Enum):
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"

    @classmethod
    def contains(cls, value: str) -> bool:
        return value in {role.value for role in cls}

    @classmethod
    def reviewers(cls) -> tuple[str, ...]:
        """Roles allowed to read other users' records and evaluate them."""
        return (cls.SUPERVISOR.value, cls.ADMIN.value)


def create_access_token(
    subject: str,
    *,
    roles: Sequence[str | Role],
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Generate a signed JWT access token."""
    settings = get_settings()
    role_names = [role.value if isinstance(role, Role) else str(role) for role in roles]

    invalid_roles = [role for role in role_names if role not in settings.allowed_roles]
    if invalid_roles:
        raise TokenError(f"Unsupported role(s): {', '.join(invalid_roles)}")

    now = datetime.now(UTC)
    ttl = expires_delta or timedelta(seconds=settings.access_token_ttl_seconds)
    payload = {
        "sub": subject,
        "roles": role_names,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "iss": settings.app_name,
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT access token."""
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "roles", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.PyJWTError as exc:  # pragma: no cover - third-party raises numerous subclasses
        raise TokenError("Invalid token") from exc

    _ensure_roles(payload.get("roles", []))
    return payload


def principal_from_token(token: str) -> User:
    """Decode ``token`` into the request-scoped ``User`` handed to route handlers."""
    payload = decode_access_token(token)

    user_id = payload.get("sub")
    if not user_id:
        raise TokenError("Token missing subject")

    return User(
        user_id=str(user_id),
        email=payload.get("email", ""),
        roles=list(payload.get("roles", [])),
    )


def _ensure_roles(roles: Iterable[str]) -> None:
    if isinstance(roles, str):
        raise TokenError("Roles claim must be a list")
    for role in roles:
        if not Role.contains(role):
            raise TokenError(f"Unsupported role: {role}")

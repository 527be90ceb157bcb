from __future__ import annotations

import time
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from src.core.config import get_settings
from src.infrastructure.db.session import get_session_factory

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger()


async def check_database() -> dict:
    """Round-trip a trivial query and report how long it took."""
    started = time.perf_counter()
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        return {"status": "error", "message": str(exc)[:100]}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


@router.get("/health", summary="Service health probe")
async def health_check() -> dict:
    """Service metadata, assessment policy and database reachability."""
    settings = get_settings()
    database = await check_database()

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "status": "ok" if database["status"] == "ok" else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": {"postgres": database},
        "policy": {
            "cooldown_days": settings.assessment_cooldown_days,
            "supported_languages": list(settings.supported_languages),
        },
    }
    log = logger.warning if payload["status"] != "ok" else logger.info
    log("health_probe", status=payload["status"], database=database)
    return payload

import logging

from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sitelease.api.deps import get_settings
from sitelease.core.config import Settings
from sitelease.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


def _check_database(db: Session) -> str | None:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db.rollback()
        return type(e).__name__
    return None


def _check_redis(settings: Settings) -> str | None:
    try:
        redis.Redis.from_url(settings.redis_url, socket_connect_timeout=1, socket_timeout=1).ping()
    except redis.RedisError as e:
        return type(e).__name__
    return None


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Readiness probe - 503 when the store is down.
    Redis only backs the session rate limiter, which fails open, so it is reported but not fatal.
    """
    db_error = _check_database(db)
    redis_error = _check_redis(settings)
    checks = {"database": db_error or "ok", "redis": redis_error or "ok"}

    if db_error:
        logger.warning("readiness_failed", extra={"error": db_error})
        response.status_code = 503
        return {"status": "not_ready", "checks": checks}
    if redis_error:
        logger.warning("readiness_degraded", extra={"error": redis_error})
        return {"status": "degraded", "checks": checks}
    return {"status": "ready", "checks": checks}

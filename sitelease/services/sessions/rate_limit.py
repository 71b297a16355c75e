"""
Rate limiter for session issuance, so fingerprints cannot be minted in bulk.
"""
import logging

import redis
from starlette.requests import Request

from sitelease.core.config import Settings

logger = logging.getLogger("sessions")


def get_client_ip(request: Request, settings: Settings) -> str:
    """Client IP (supports X-Forwarded-For from proxy)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and settings.app_env == "production":
        trusted = settings.trusted_proxy_ips_set
        if trusted and request.client and request.client.host in trusted:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


def check_session_rate_limit(client_ip: str, settings: Settings) -> bool:
    """
    Check if a session may be issued. Returns True if allowed, False if rate limited.
    Increments counter on each call.
    """
    try:
        client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )
        key = f"session_issue:{client_ip}"
        current = client.incr(key)
        if current == 1:
            client.expire(key, settings.session_rate_limit_window_seconds)
        if current > settings.session_rate_limit_attempts:
            logger.warning("session_rate_limited", extra={"client_ip": client_ip})
            return False
        return True
    except redis.RedisError as e:
        logger.warning("session_rate_limit_redis_error", extra={"error": str(e)})
        return True  # Fail open - issue the session if Redis is down

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from sitelease.core.config import Settings

# Set by the HTTP middleware for the duration of one request.
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Stamps the current request id on records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; only whitelisted `extra` keys are emitted."""

    EXTRA_FIELDS = (
        "request_id", "path", "method", "status_code", "latency_ms",
        "fingerprint", "event_id", "deployment_id", "amount", "extended_days",
        "new_expiry", "limit", "reason", "client_ip", "error",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in self.EXTRA_FIELDS
            if getattr(record, name, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Decimal amounts and datetimes fall back to str()
        return json.dumps(payload, ensure_ascii=False, default=str)


def _handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    return handler


def configure_logging(settings: Settings) -> None:
    formatter = JsonFormatter()
    handlers = [_handler(logging.StreamHandler(), formatter)]
    if settings.log_file:
        rotating = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        handlers.append(_handler(rotating, formatter))

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers

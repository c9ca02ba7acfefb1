"""
StudyShala - Logging

Plain text in development, one JSON object per line in production. Every
record is stamped with the request id and the signed-in user id carried in
context variables, so a single request can be followed across the gateway,
the services and the Drive client.
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from studyshala.core.config import settings


request_id_var: ContextVar[str] = ContextVar('request_id', default='')
user_id_var: ContextVar[str] = ContextVar('user_id', default='')

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024

_STANDARD_RECORD_KEYS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'request_id', 'user_id',
}


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def generate_request_id() -> str:
    """Short id for correlating log lines; not meant to be globally unique"""
    return uuid.uuid4().hex[:8]


def _context_fields() -> Dict[str, str]:
    fields = {}
    if request_id_var.get():
        fields["request_id"] = request_id_var.get()
    if user_id_var.get():
        fields["user_id"] = user_id_var.get()
    return fields


class JSONFormatter(logging.Formatter):
    """Structured output for log aggregation in production"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            **_context_fields(),
        }

        if record.exc_info and record.exc_info[0]:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        # Fields passed through extra={...}
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS and not key.startswith('_'):
                entry[key] = value

        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Readable development output with request and user ids"""

    def format(self, record: logging.LogRecord) -> str:
        context = _context_fields()
        record.request_id = context.get("request_id", "-")
        record.user_id = context.get("user_id", "-")
        return super().format(record)


class StudyShalaLogger(logging.Logger):
    """Logger with helpers for the events StudyShala cares about"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.log(
            level,
            f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: Optional[str] = None,
                       reason: Optional[str] = None, **kwargs) -> None:
        """Sign-in, sign-out and promotion outcomes; failures log at WARNING"""
        message = f"Auth {event}: {'ok' if success else 'rejected'}"
        if user_email:
            message += f" [{user_email}]"
        if reason:
            message += f" ({reason})"
        self.log(
            logging.INFO if success else logging.WARNING,
            message,
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_error_with_context(self, error: Exception, context: Optional[str] = None,
                               **kwargs) -> None:
        self.error(
            f"{context or 'unhandled'}: {type(error).__name__}: {error}",
            exc_info=True,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """DEBUG when fast, WARNING once the threshold is crossed"""
        slow = duration_ms > threshold_ms
        self.log(
            logging.WARNING if slow else logging.DEBUG,
            f"{operation} took {duration_ms:.2f}ms" + (f" (over {threshold_ms:.0f}ms)" if slow else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": round(duration_ms, 2),
                "slow": slow,
                **kwargs
            }
        )


def _file_handler(formatter: logging.Formatter, backup_count: int) -> RotatingFileHandler:
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=backup_count)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> StudyShalaLogger:
    """Configure the "studyshala" logger for the current environment"""
    logging.setLoggerClass(StudyShalaLogger)

    logger = logging.getLogger("studyshala")
    logger.__class__ = StudyShalaLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    json_logging = settings.ENVIRONMENT == "production"
    if json_logging:
        console_formatter = file_formatter = JSONFormatter()
        backup_count = 10
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | [%(request_id)s] %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(user_id)s] | "
            "%(name)s.%(funcName)s:%(lineno)d | %(message)s"
        )
        backup_count = 5

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        logger.addHandler(_file_handler(file_formatter, backup_count))

    # Third-party chatter
    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "google.auth"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(
        "Logging initialized",
        extra={"environment": settings.ENVIRONMENT, "log_level": settings.LOG_LEVEL, "json_logging": json_logging}
    )
    return logger


logger: StudyShalaLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'set_request_id',
    'set_user_id',
    'generate_request_id',
    'StudyShalaLogger',
]

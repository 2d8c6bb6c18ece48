"""
SandboxForge - Logging

Every record carries the request, session and sandbox it belongs to, taken
from context variables set by the middleware and the orchestrator.
Production writes one JSON object per line; development writes plain text.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List

from sandboxforge.core.config import settings


_request_id: ContextVar[str] = ContextVar('request_id', default='')
_session_id: ContextVar[str] = ContextVar('session_id', default='')
_sandbox_id: ContextVar[str] = ContextVar('sandbox_id', default='')


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_session_id() -> str:
    return _session_id.get()


def set_session_id(session_id: str) -> None:
    """Bind log records in this task to a generation session"""
    _session_id.set(session_id)


def get_sandbox_id() -> str:
    return _sandbox_id.get()


def set_sandbox_id(sandbox_id: str) -> None:
    _sandbox_id.set(sandbox_id)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def log_context() -> Dict[str, str]:
    """Non-empty context ids for the current task"""
    context = {
        "request_id": get_request_id(),
        "session_id": get_session_id(),
        "sandbox_id": get_sandbox_id(),
    }
    return {key: value for key, value in context.items() if value}


# Attributes every LogRecord has; anything else was passed through `extra`
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {
    'message', 'asctime', 'taskName', 'request_id', 'session_id', 'sandbox_id',
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
            **log_context(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }

        entry.update({
            key: value for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith('_')
        })
        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Plain-text formatter exposing %(request_id)s, %(session_id)s and %(sandbox_id)s"""

    def format(self, record: logging.LogRecord) -> str:
        context = log_context()
        record.request_id = context.get("request_id", "-")
        record.session_id = context.get("session_id", "-")
        record.sandbox_id = context.get("sandbox_id", "-")
        return super().format(record)


class ForgeLogger(logging.Logger):
    """Logger with helpers that attach a consistent `event_type` to records"""

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
            f"← {method} {path} {status_code} in {duration_ms:.1f}ms",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs
            }
        )

    def log_worker_event(self, event: str, pid: Any = None,
                         exit_code: int = None, **kwargs) -> None:
        details = []
        if pid is not None:
            details.append(f"pid={pid}")
        if exit_code is not None:
            details.append(f"exit={exit_code}")
        self.info(
            f"[Worker] {event}" + (f" ({', '.join(details)})" if details else ""),
            extra={
                "event_type": "worker",
                "worker_event": event,
                "worker_pid": pid,
                "exit_code": exit_code,
                **kwargs
            }
        )

    def log_session_event(self, session_id: str, event: str, **kwargs) -> None:
        self.info(
            f"[Session {session_id}] {event}",
            extra={"event_type": "session", "session_event": event, **kwargs}
        )

    def log_error_with_context(self, error: Exception, context: str = None,
                               **kwargs) -> None:
        """Error record with traceback and the failing component"""
        self.error(
            f"[{context or 'unknown'}] {type(error).__name__}: {error}",
            exc_info=error,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_context": context,
                **kwargs
            }
        )

    def log_performance(self, operation: str, duration_ms: float,
                        threshold_ms: float = 1000, **kwargs) -> None:
        """Timing record; WARNING when the threshold is exceeded, DEBUG otherwise"""
        slow = duration_ms > threshold_ms
        self.log(
            logging.WARNING if slow else logging.DEBUG,
            f"{operation} took {duration_ms:.1f}ms" + (f" (limit {threshold_ms}ms)" if slow else ""),
            extra={
                "event_type": "performance",
                "operation": operation,
                "duration_ms": round(duration_ms, 2),
                "threshold_ms": threshold_ms,
                "slow": slow,
                **kwargs
            }
        )


def _handlers(production: bool) -> List[logging.Handler]:
    if production:
        console_formatter = file_formatter = JSONFormatter()
        backups = 10
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(session_id)s] [%(sandbox_id)s] | "
            "%(name)s:%(lineno)d | %(message)s"
        )
        backups = 5

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    handlers: List[logging.Handler] = [console]

    if settings.LOG_FILE:
        path = Path(settings.LOG_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=backups)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    return handlers


def setup_logging() -> ForgeLogger:
    """Configure the `sandboxforge` logger from settings"""
    logging.setLoggerClass(ForgeLogger)
    forge_logger = logging.getLogger("sandboxforge")
    forge_logger.__class__ = ForgeLogger  # may predate setLoggerClass
    forge_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    production = settings.ENVIRONMENT == "production"
    forge_logger.handlers.clear()
    for handler in _handlers(production):
        forge_logger.addHandler(handler)

    for noisy in ("httpx", "httpcore", "uvicorn.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    forge_logger.debug(
        f"Logging ready ({'json' if production else 'text'}, level {settings.LOG_LEVEL})",
        extra={"environment": settings.ENVIRONMENT},
    )
    return forge_logger


logger: ForgeLogger = setup_logging()


__all__ = [
    'logger',
    'setup_logging',
    'log_context',
    'get_request_id',
    'set_request_id',
    'get_session_id',
    'set_session_id',
    'get_sandbox_id',
    'set_sandbox_id',
    'generate_request_id',
    'ForgeLogger',
]

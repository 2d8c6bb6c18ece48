"""
SandboxForge - HTTP Middleware
"""

import time
from typing import Callable, FrozenSet

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from sandboxforge.core.logging_config import (
    logger,
    set_request_id,
    set_session_id,
    set_sandbox_id,
    generate_request_id,
)


# Probes and docs; not worth a log line each
QUIET_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
})

# SSE endpoints; response time covers only the headers, the stream runs on
STREAMING_PATHS: FrozenSet[str] = frozenset({
    "/api/v1/generate",
})

SESSION_PATH_PREFIX = "/api/v1/generate/"


def is_quiet_path(path: str) -> bool:
    return path in QUIET_PATHS


def is_streaming_path(path: str) -> bool:
    return path.rstrip("/") in STREAMING_PATHS


def session_id_from_path(path: str) -> str:
    """/api/v1/generate/{session_id}[/cancel] -> session_id"""
    if not path.startswith(SESSION_PATH_PREFIX):
        return ""
    return path[len(SESSION_PATH_PREFIX):].split("/")[0]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id (reusing a client-supplied X-Request-ID),
    binds it and any session id from the path to the logging context, and
    logs the outcome with its timing. Slow non-streaming requests are also
    reported through log_performance.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        set_request_id(request_id)
        set_session_id(session_id_from_path(path))

        quiet = is_quiet_path(path)
        streaming = is_streaming_path(path)
        started = time.perf_counter()

        if not quiet:
            logger.debug(
                f"→ {method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent", ""),
                }
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.log_error_with_context(
                exc,
                context=f"{method} {path}",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

            if not quiet:
                logger.log_request(method, path, response.status_code, elapsed_ms, is_streaming=streaming)
                if not streaming and elapsed_ms > self.slow_request_ms:
                    logger.log_performance(f"{method} {path}", elapsed_ms, threshold_ms=self.slow_request_ms)
            return response
        finally:
            set_request_id("")
            set_session_id("")
            set_sandbox_id("")


__all__ = [
    "RequestLoggingMiddleware",
    "is_quiet_path",
    "is_streaming_path",
    "session_id_from_path",
    "QUIET_PATHS",
    "STREAMING_PATHS",
]

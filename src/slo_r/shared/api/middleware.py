"""
Shared API Middleware
======================

Request tracing, request logging and exception handlers for the SLO-R API.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Type

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from slo_r.core import (
    ApplicationException,
    ConfigurationException,
    ExternalServiceException,
    ResourceNotFoundException,
    ValidationException,
)
from slo_r.shared.infrastructure.logging import correlation_id_var, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# Polled by load balancers; logged at debug only
QUIET_PATHS = ("/health",)

# Most specific first
_STATUS_BY_EXCEPTION: Dict[Type[ApplicationException], int] = {
    ResourceNotFoundException: status.HTTP_404_NOT_FOUND,
    ValidationException: status.HTTP_409_CONFLICT,
    ExternalServiceException: status.HTTP_502_BAD_GATEWAY,
    ConfigurationException: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a correlation ID.

    The ID comes from the ``X-Correlation-ID`` header or is generated, is
    stored on ``request.state`` and in the logging context so every log
    line of the request carries it, and is echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        context = {"method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    **context,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        context.update(
            status_code=response.status_code,
            response_time_ms=int((time.perf_counter() - start_time) * 1000)
        )
        if request.url.path in QUIET_PATHS:
            logger.debug("Request completed", extra=context)
        else:
            logger.info("Request completed", extra=context)
        return response


def _error_body(request: Request, detail: str, debug_info=None) -> dict:
    return {
        "detail": detail,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "debug_info": debug_info
    }


def status_for(exc: ApplicationException) -> int:
    for exc_type, status_code in _STATUS_BY_EXCEPTION.items():
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Maps application exceptions that escaped a route to HTTP statuses."""
    status_code = status_for(exc)
    logger.warning(
        "Application exception",
        extra={
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": status_code,
            "error_message": exc.message
        }
    )
    return JSONResponse(status_code=status_code, content=_error_body(request, exc.message))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answers 500 for anything unhandled; details only in development."""
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "Internal server error", str(exc) if is_dev else None)
    )

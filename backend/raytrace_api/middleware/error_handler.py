"""
Centralized error handling for the render service.

Provides the RenderError hierarchy, consistent JSON error responses and
logging for all API routes.
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Base exception for render-related errors."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class InvalidRequestError(RenderError):
    """Raised when a render request is malformed or names an unknown preset."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=400, details=details)


class InvalidPresetError(InvalidRequestError):
    """Raised when preset name is invalid."""

    def __init__(self, preset: str, valid_presets: list[str]):
        super().__init__(
            message=f"Invalid preset '{preset}'. Valid presets: {', '.join(valid_presets)}",
            details={"preset": preset, "valid_presets": valid_presets},
        )


class JobNotFoundError(RenderError):
    """Raised when job ID is not found."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job not found: {job_id}",
            status_code=404,
            details={"job_id": job_id},
        )


class ResultNotReadyError(RenderError):
    """Raised when an image is requested before any render produced one."""

    def __init__(self, job_id: str | None = None):
        message = (
            f"No result yet for job {job_id}" if job_id else "No result yet"
        )
        super().__init__(
            message=message,
            status_code=404,
            details={"job_id": job_id},
        )


class ServiceBusyError(RenderError):
    """Raised when the dispatcher is at capacity."""

    def __init__(self, active_jobs: int, limit: int):
        super().__init__(
            message=f"Render service busy: {active_jobs} jobs in flight (limit {limit})",
            status_code=503,
            details={"active_jobs": active_jobs, "limit": limit},
        )


class UpstreamError(RenderError):
    """Raised when the text-generation provider is unreachable or replies malformed."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=500, details=details)


class RateLimitExceededError(RenderError):
    """Raised when a client exceeds the AI render rate limit."""

    def __init__(self, max_requests: int, window_seconds: int):
        super().__init__(
            message=(
                f"Rate limit exceeded. Max {max_requests} AI renders "
                f"per {window_seconds} seconds."
            ),
            status_code=429,
            details={"max_requests": max_requests, "window_seconds": window_seconds},
        )


def _error_body(e: RenderError) -> dict:
    return {"error": e.message, "details": e.details}


async def render_error_handler(request: Request, exc: RenderError) -> JSONResponse:
    """Exception handler turning RenderError into its JSON response."""
    if exc.status_code >= 500:
        logger.error(
            f"RenderError: {exc.message}",
            extra={"status_code": exc.status_code, "details": exc.details},
        )
    else:
        logger.warning(f"RenderError {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report unparsable or invalid request bodies as 400 Bad Request."""
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Strip non-serializable context from pydantic validation errors."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches unhandled exceptions and returns consistent error responses.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response

        except RenderError as e:
            logger.error(
                f"RenderError: {e.message}",
                extra={"status_code": e.status_code, "details": e.details},
            )
            return JSONResponse(status_code=e.status_code, content=_error_body(e))

        except Exception as e:
            # Log full stack trace for unexpected errors
            logger.exception(f"Unhandled exception: {str(e)}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "message": str(e) if logger.isEnabledFor(logging.DEBUG) else None,
                },
            )

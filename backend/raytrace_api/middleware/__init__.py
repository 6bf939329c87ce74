"""FastAPI middleware and error types for request/response processing."""

from .error_handler import (
    ErrorHandlerMiddleware,
    RenderError,
    InvalidRequestError,
    InvalidPresetError,
    JobNotFoundError,
    ResultNotReadyError,
    ServiceBusyError,
    UpstreamError,
    RateLimitExceededError,
    render_error_handler,
    validation_error_handler,
)

__all__ = [
    "ErrorHandlerMiddleware",
    "RenderError",
    "InvalidRequestError",
    "InvalidPresetError",
    "JobNotFoundError",
    "ResultNotReadyError",
    "ServiceBusyError",
    "UpstreamError",
    "RateLimitExceededError",
    "render_error_handler",
    "validation_error_handler",
]

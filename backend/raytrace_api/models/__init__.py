"""Pydantic models for API request/response schemas."""

from .render_request import (
    AIRenderSubmission,
    CustomSettings,
    RenderMode,
    RenderRequest,
    RenderSubmission,
)
from .render_response import RenderResponse
from .scene_preset import PresetListResponse, PresetSummary
from .status_response import CancelResponse, JobStatusResponse, ProgressResponse

__all__ = [
    "AIRenderSubmission",
    "CustomSettings",
    "RenderMode",
    "RenderRequest",
    "RenderSubmission",
    "RenderResponse",
    "PresetListResponse",
    "PresetSummary",
    "CancelResponse",
    "JobStatusResponse",
    "ProgressResponse",
]

"""Pydantic models for progress and job status responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProgressResponse(BaseModel):
    """
    Response body for GET /progress.

    Without a jobId query parameter it describes the most recently
    submitted job; before any submission all fields but progress are null.
    """

    progress: int = Field(
        ...,
        ge=0,
        le=100,
        description="Completion percentage (0-100)",
    )
    job_id: Optional[str] = Field(
        None,
        alias="jobId",
        description="Job the progress belongs to",
    )
    status: Optional[str] = Field(
        None,
        description="Current job status",
    )

    model_config = {"populate_by_name": True}


class JobStatusResponse(BaseModel):
    """
    Response body for GET /jobs/{job_id}.

    Attributes:
        job_id: Job identifier
        mode: preset, custom or generated
        label: Preset name or mode
        status: Current job status
        progress: Completion percentage (0-100)
        error: Failure or cancellation reason
        has_image: Whether /jobs/{job_id}/image will return an image
    """

    job_id: str = Field(..., alias="jobId", description="Job identifier")
    mode: str = Field(..., description="Render mode: preset, custom or generated")
    label: str = Field(..., description="Preset name, or the mode for non-preset jobs")
    status: str = Field(
        ...,
        description="Current job status: pending, running, completed, failed, cancelled",
    )
    progress: int = Field(..., ge=0, le=100, description="Completion percentage (0-100)")
    error: Optional[str] = Field(None, description="Error details if status is 'failed'")
    created_at: datetime = Field(..., alias="createdAt")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    has_image: bool = Field(False, alias="hasImage")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "jobId": "550e8400-e29b-41d4-a716-446655440000",
                    "mode": "preset",
                    "label": "cornell_box",
                    "status": "running",
                    "progress": 42,
                    "error": None,
                    "createdAt": "2025-01-01T12:00:00Z",
                    "startedAt": "2025-01-01T12:00:01Z",
                    "completedAt": None,
                    "hasImage": False,
                }
            ]
        },
    }


class CancelResponse(BaseModel):
    """Response body for DELETE /jobs/{job_id}."""

    job_id: str = Field(..., alias="jobId")
    cancelled: bool = Field(..., description="False if the job had already finished")
    status: str

    model_config = {"populate_by_name": True}

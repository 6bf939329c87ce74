"""Pydantic model for render job submission response."""

from pydantic import BaseModel, Field


class RenderResponse(BaseModel):
    """
    Response body for POST /render and POST /renderAI.

    Returned with 202 Accepted after a job has been scheduled.

    Attributes:
        job_id: Identifier to poll with /progress, /image and /jobs/{jobId}
        status: Current job status (pending on submission)
        message: Human-readable status message
    """

    job_id: str = Field(
        ...,
        alias="jobId",
        description="Identifier of the scheduled job",
    )
    status: str = Field(
        ...,
        description="Current job status: pending, running, completed, failed, cancelled",
    )
    message: str = Field(
        ...,
        description="Human-readable status message",
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "jobId": "550e8400-e29b-41d4-a716-446655440000",
                    "status": "pending",
                    "message": "Rendering initiated",
                }
            ]
        },
    }

"""
Progress, image and job status endpoints.

The unkeyed /progress and /image endpoints describe the most recently
submitted job and the most recently produced image. Passing ?jobId=...
(or using /jobs/{job_id}) addresses one job.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..middleware import ResultNotReadyError
from ..models import CancelResponse, JobStatusResponse, ProgressResponse
from ..services.dispatcher import JobDispatcher, get_dispatcher, get_job_store
from ..services.job_store import JobStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _image_response(store: JobStore, job_id: Optional[str]) -> Response:
    result = store.get_result(job_id)
    if result is None:
        raise ResultNotReadyError(job_id)
    return Response(
        content=result.data,
        media_type=result.mime_type,
        headers={"Cache-Control": "no-store"},
    )


@router.get(
    "/progress",
    response_model=ProgressResponse,
    response_model_by_alias=True,
    summary="Render Progress",
    responses={404: {"description": "Unknown jobId"}},
)
async def get_progress(
    job_id: Optional[str] = Query(None, alias="jobId"),
    store: JobStore = Depends(get_job_store),
) -> ProgressResponse:
    """Progress of the given job, or of the latest one (0 before any job)."""
    job_id = job_id or store.latest_job_id()
    if job_id is None:
        return ProgressResponse(progress=0)

    record = store.get(job_id)
    return ProgressResponse(
        progress=record.progress,
        job_id=record.job_id,
        status=record.status.value,
    )


@router.get(
    "/image",
    summary="Rendered Image",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "image/jpeg": {}}},
        404: {"description": "No result yet, or unknown jobId"},
    },
)
async def get_image(
    job_id: Optional[str] = Query(None, alias="jobId"),
    store: JobStore = Depends(get_job_store),
) -> Response:
    """Image of the given job, or the most recently produced image."""
    return _image_response(store, job_id)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    response_model_by_alias=True,
    summary="Job Status",
    responses={404: {"description": "Job not found"}},
)
async def get_job(job_id: str, store: JobStore = Depends(get_job_store)) -> JobStatusResponse:
    """
    Get full status for a render job.

    Raises:
        JobNotFoundError: 404 if job_id is unknown
    """
    record = store.get(job_id)
    return JobStatusResponse(
        job_id=record.job_id,
        mode=record.mode,
        label=record.label,
        status=record.status.value,
        progress=record.progress,
        error=record.error,
        created_at=record.created_at,
        started_at=record.started_at,
        completed_at=record.completed_at,
        has_image=record.has_result,
    )


@router.get(
    "/jobs/{job_id}/image",
    summary="Job Image",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "image/jpeg": {}}},
        404: {"description": "Job not found or not finished"},
    },
)
async def get_job_image(job_id: str, store: JobStore = Depends(get_job_store)) -> Response:
    """Image produced by this job only."""
    return _image_response(store, job_id)


@router.delete(
    "/jobs/{job_id}",
    response_model=CancelResponse,
    response_model_by_alias=True,
    summary="Cancel Job",
    responses={404: {"description": "Job not found"}},
)
async def cancel_job(
    job_id: str,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> CancelResponse:
    """
    Cancel a pending or running job.

    Cancellation is asynchronous: poll /jobs/{job_id} for the cancelled
    status. Cancelling a finished job is not an error; the response reports
    cancelled=false and the job's final status.
    """
    cancelled = dispatcher.cancel(job_id)
    if cancelled:
        logger.info(f"Cancellation requested for job {job_id}")

    record = dispatcher.store.get(job_id)
    return CancelResponse(job_id=job_id, cancelled=cancelled, status=record.status.value)

"""
Render endpoints for job submission.

Provides POST /render for preset and custom scenes and POST /renderAI for
scenes generated from a free-text description.
"""

import logging

from fastapi import APIRouter, Depends, status

from ..models import (
    AIRenderSubmission,
    RenderMode,
    RenderRequest,
    RenderResponse,
    RenderSubmission,
)
from ..services.dispatcher import JobDispatcher, get_dispatcher
from ..services.rate_limiter import check_ai_render_rate_limit
from ..services.scene_generator_client import SceneGeneratorClient, get_scene_generator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/render",
    response_model=RenderResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit Render Job",
    description="""
Start rendering a built-in preset or a procedurally generated custom scene.

`prompt` is a preset name (see GET /presets) or `custom`, in which case
`customSettings` describes the camera and how many random spheres and quads
to place.

Job status transitions: `pending` → `running` → `completed` | `failed` | `cancelled`

Poll GET /progress?jobId=... and fetch GET /image?jobId=... when done.
""",
    responses={
        202: {"description": "Render job accepted"},
        400: {"description": "Invalid body or unknown preset"},
        503: {"description": "Too many jobs in flight"},
    },
)
async def submit_render(
    submission: RenderSubmission,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> RenderResponse:
    """
    Submit a preset or custom render job.

    Raises:
        InvalidRequestError: 400 if the preset is unknown
        ServiceBusyError: 503 if the dispatcher is at capacity
    """
    request = submission.to_render_request()
    logger.info(f"Render submission received: mode={request.mode.value}, label={request.label}")

    handle = dispatcher.submit(request)

    return RenderResponse(
        job_id=handle.job_id,
        status=handle.status.value,
        message="Rendering initiated",
    )


@router.post(
    "/renderAI",
    response_model=RenderResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit AI Render Job",
    description="""
Describe a scene in plain text. The text-generation provider writes a C++
program against the ray tracing library, which is compiled and run in a
sandbox to produce the image.
""",
    responses={
        202: {"description": "Render job accepted"},
        400: {"description": "Invalid body"},
        429: {"description": "AI render rate limit exceeded"},
        500: {"description": "Text-generation provider failed"},
        503: {"description": "Too many jobs in flight"},
    },
    dependencies=[Depends(check_ai_render_rate_limit)],
)
async def submit_ai_render(
    submission: AIRenderSubmission,
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    generator: SceneGeneratorClient = Depends(get_scene_generator),
) -> RenderResponse:
    """
    Generate scene source for a prompt and submit it as a generated job.

    Raises:
        UpstreamError: 500 if the provider is unreachable or replies malformed
        ServiceBusyError: 503 if the dispatcher is at capacity
    """
    logger.info(f"AI render submission received ({len(submission.prompt)} char prompt)")

    source_text = await generator.generate_source(submission.prompt)
    handle = dispatcher.submit(
        RenderRequest(mode=RenderMode.GENERATED, source_text=source_text)
    )

    return RenderResponse(
        job_id=handle.job_id,
        status=handle.status.value,
        message="Rendering initiated",
    )

"""
Background render task.

Runs one job's work (scene render or generated program) in a worker
thread and records progress, result or failure in the job store.
"""

import asyncio
import functools
import logging
from typing import Union

from codegen_pipeline import CodePipeline, CompilationError, ExecutionError
from render_engine.base import JobCancelledError, RenderEngine, RenderEngineError
from render_engine.image_codec import ImageResult, encode_image
from render_engine.scene import SceneDescriptor
from .cancellation import CancellationToken
from .job_store import JobStore

logger = logging.getLogger(__name__)

# Compiler/program output kept in a failed job's error message
ERROR_OUTPUT_TAIL = 1000


def _render_scene(
    engine: RenderEngine, scene: SceneDescriptor, on_progress, output_format: str, token
) -> ImageResult:
    pixels = engine.render(scene, on_progress, token=token)
    return encode_image(pixels, output_format)


def _failure_message(error: Exception) -> str:
    if isinstance(error, (CompilationError, ExecutionError)):
        output = error.output.strip()[-ERROR_OUTPUT_TAIL:]
        return f"{error.message}: {output}" if output else error.message
    return str(error)


async def execute_render_job(
    job_id: str,
    work: Union[SceneDescriptor, str],
    store: JobStore,
    engine: RenderEngine,
    pipeline: CodePipeline,
    token: CancellationToken,
    output_format: str = "png",
) -> None:
    """
    Execute a render job to completion.

    Blocking work runs in the default thread pool. The worker thread never
    touches the job record directly: each progress percentage is posted
    to the event loop, which applies it in order.

    Args:
        job_id: Job identifier from the store
        work: SceneDescriptor for preset/custom jobs, source text for generated jobs
        store: Job store holding the record
        engine: Engine used for scene descriptors
        pipeline: Pipeline used for generated source
        token: Cancellation token checked on every progress report
        output_format: Encoding for engine output ("png" or "jpeg")

    Raises:
        asyncio.CancelledError: Propagated so the dispatcher can record why
    """
    loop = asyncio.get_running_loop()

    def report_progress(percent: int) -> None:
        token.raise_if_cancelled()
        loop.call_soon_threadsafe(store.set_progress, job_id, percent)

    store.mark_running(job_id)
    logger.info(f"Render job started: {job_id}")

    try:
        if isinstance(work, SceneDescriptor):
            image = await loop.run_in_executor(
                None,
                _render_scene,
                engine,
                work,
                report_progress,
                output_format,
                token,
            )
        else:
            artifact = await loop.run_in_executor(
                None,
                functools.partial(
                    pipeline.execute, work, on_progress=report_progress, token=token
                ),
            )
            image = artifact.image

        store.set_result(job_id, image.data, image.mime_type)
        logger.info(f"Render job complete: {job_id} ({image.mime_type}, {len(image.data)} bytes)")

    except asyncio.CancelledError:
        logger.warning(f"Render job task cancelled: {job_id}")
        raise

    except JobCancelledError as e:
        store.mark_cancelled(job_id, token.reason or str(e) or "cancelled")
        logger.warning(f"Render job aborted: {job_id} - {token.reason or e}")

    except (CompilationError, ExecutionError, RenderEngineError) as e:
        message = _failure_message(e)
        store.mark_failed(job_id, message)
        logger.error(f"Render job failed: {job_id} - {message.splitlines()[0] if message else e}")

    except Exception as e:
        logger.exception(f"Render job error: {job_id}")
        store.mark_failed(job_id, f"Unexpected error: {e}")

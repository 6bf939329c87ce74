"""
Job dispatcher: admission control, scheduling and cancellation.

Each accepted request becomes one managed asyncio task. Work is validated
and built synchronously during submission, so a bad request is rejected
before a job record exists.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

from codegen_pipeline import CodePipeline
from codegen_pipeline.sandbox import ResourceLimits, sandbox_wrapper_from_setting
from render_engine import scene_builder
from render_engine.base import RenderEngine
from render_engine.factory import get_render_engine
from ..config import settings
from ..middleware import ServiceBusyError
from ..models.render_request import RenderRequest
from .cancellation import CancellationToken
from .job_store import JobStatus, JobStore
from .render_task import execute_render_job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandle:
    """Returned by submit(): enough for a client to start polling."""

    job_id: str
    status: JobStatus


class JobDispatcher:
    """
    Schedules render jobs with bounded concurrency.

    At most ``max_concurrent`` jobs run at once; at most ``max_queued`` jobs
    may be pending or running in total. A job that runs longer than
    ``job_timeout`` seconds is cancelled and marked failed.
    """

    def __init__(
        self,
        store: JobStore,
        engine: RenderEngine,
        pipeline: CodePipeline,
        max_concurrent: int = 2,
        max_queued: int = 8,
        job_timeout: float = 900,
        output_format: str = "png",
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.engine = engine
        self.pipeline = pipeline
        self.max_concurrent = max_concurrent
        self.max_queued = max_queued
        self.job_timeout = job_timeout
        self.output_format = output_format
        self._rng = rng
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: dict[str, tuple[asyncio.Task, CancellationToken]] = {}

    def submit(self, request: RenderRequest) -> JobHandle:
        """
        Accept a render request and schedule it in the background.

        Must be called from the running event loop. Returns immediately.

        Args:
            request: Validated render request

        Returns:
            JobHandle for the new pending job

        Raises:
            InvalidRequestError: Unknown preset or unsupported mode (no job created)
            ServiceBusyError: Too many jobs pending or running (no job created)
        """
        work = scene_builder.build(request, self._rng)

        active = self.store.count_active()
        if active >= self.max_queued:
            logger.warning(f"[DISPATCH] Rejecting {request.label}: {active} jobs in flight")
            raise ServiceBusyError(active, self.max_queued)

        record = self.store.create(request.mode.value, request.label)
        token = CancellationToken()
        task = asyncio.get_running_loop().create_task(
            self._run(record.job_id, work, token), name=f"render-{record.job_id}"
        )
        self._tasks[record.job_id] = (task, token)
        task.add_done_callback(lambda _t, job_id=record.job_id: self._tasks.pop(job_id, None))

        logger.info(f"[DISPATCH] Accepted job {record.job_id} ({request.mode.value}: {request.label})")
        return JobHandle(job_id=record.job_id, status=record.status)

    async def _run(self, job_id: str, work, token: CancellationToken) -> None:
        try:
            async with self._semaphore:
                if token.is_cancelled:
                    self.store.mark_cancelled(job_id, token.reason or "cancelled")
                    return
                await asyncio.wait_for(
                    execute_render_job(
                        job_id,
                        work,
                        self.store,
                        self.engine,
                        self.pipeline,
                        token,
                        self.output_format,
                    ),
                    timeout=self.job_timeout,
                )

        except asyncio.TimeoutError:
            token.cancel("timed out")
            self.store.mark_failed(job_id, f"Job timed out after {self.job_timeout} seconds")
            logger.warning(f"[DISPATCH] Job {job_id} timed out after {self.job_timeout}s")

        except asyncio.CancelledError:
            token.cancel(token.reason or "cancelled")
            self.store.mark_cancelled(job_id, token.reason)
            logger.info(f"[DISPATCH] Job {job_id} cancelled ({token.reason})")
            raise

    def cancel(self, job_id: str, reason: str = "cancelled by client") -> bool:
        """
        Cancel a pending or running job.

        Returns:
            bool: True if the job was in flight, False if it had already finished

        Raises:
            JobNotFoundError: If job_id is unknown
        """
        self.store.get(job_id)
        entry = self._tasks.get(job_id)
        if entry is None:
            return False

        task, token = entry
        token.cancel(reason)
        task.cancel()
        return True

    def stats(self) -> dict:
        running = sum(
            1 for r in self.store.list_jobs() if r.status == JobStatus.RUNNING
        )
        return {
            "running": running,
            "queued": self.store.count_active() - running,
            "max_concurrent": self.max_concurrent,
            "max_queued": self.max_queued,
        }

    async def shutdown(self) -> None:
        """Cancel every in-flight job and wait for the tasks to settle."""
        tasks = [task for task, _ in self._tasks.values()]
        for job_id in list(self._tasks):
            self.cancel(job_id, "service shutting down")
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"[DISPATCH] Cancelled {len(tasks)} in-flight jobs on shutdown")


# Singleton instances
_store_instance: Optional[JobStore] = None
_dispatcher_instance: Optional[JobDispatcher] = None


def get_job_store() -> JobStore:
    global _store_instance

    if _store_instance is None:
        _store_instance = JobStore()
    return _store_instance


def get_dispatcher() -> JobDispatcher:
    """
    Get the process-wide dispatcher, creating it from settings on first use.

    Returns:
        JobDispatcher wired to the configured engine and code pipeline
    """
    global _dispatcher_instance

    if _dispatcher_instance is not None:
        return _dispatcher_instance

    pipeline = CodePipeline(
        work_dir=settings.WORK_DIR,
        compiler=settings.COMPILER,
        compiler_flags=settings.COMPILER_FLAGS,
        include_dir=settings.SCAFFOLD_INCLUDE_DIR,
        compile_timeout=settings.COMPILE_TIMEOUT,
        exec_timeout=settings.EXEC_TIMEOUT,
        limits=ResourceLimits(
            cpu_seconds=settings.EXEC_CPU_SECONDS,
            memory_mb=settings.EXEC_MEMORY_MB,
            max_file_mb=settings.EXEC_MAX_FILE_MB,
            max_open_files=settings.EXEC_MAX_OPEN_FILES,
        ),
        sandbox_wrapper=sandbox_wrapper_from_setting(settings.SANDBOX_WRAPPER),
        output_format=settings.OUTPUT_FORMAT,
        max_capture_bytes=settings.MAX_CAPTURE_BYTES,
    )
    _dispatcher_instance = JobDispatcher(
        store=get_job_store(),
        engine=get_render_engine(),
        pipeline=pipeline,
        max_concurrent=settings.MAX_CONCURRENT_JOBS,
        max_queued=settings.MAX_QUEUED_JOBS,
        job_timeout=settings.JOB_TIMEOUT,
        output_format=settings.OUTPUT_FORMAT,
    )
    logger.info(
        f"[DISPATCH] Dispatcher ready (engine={_dispatcher_instance.engine.engine_name}, "
        f"max_concurrent={settings.MAX_CONCURRENT_JOBS}, max_queued={settings.MAX_QUEUED_JOBS})"
    )
    return _dispatcher_instance


def reset_dispatcher() -> None:
    """
    Reset the dispatcher and job store singletons (for testing purposes).
    """
    global _dispatcher_instance, _store_instance
    _dispatcher_instance = None
    _store_instance = None
    logger.info("Dispatcher singleton reset")

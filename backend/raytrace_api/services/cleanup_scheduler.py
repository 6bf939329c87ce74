"""
Cleanup Scheduler Service

Periodically purges finished job records and orphaned build directories.
Uses APScheduler for the interval job.
"""

import logging
import shutil
from datetime import datetime, timedelta
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import settings
from .dispatcher import get_job_store
from .job_store import JobStore

logger = logging.getLogger(__name__)

# Created on start so each event loop gets its own scheduler
scheduler: AsyncIOScheduler | None = None

CLEANUP_JOB_ID = "cleanup_expired_jobs"

# Temporary directories created by the code pipeline and the external renderer
WORK_DIR_PREFIXES = ("gen_", "render_")


def cleanup_work_dir(work_dir: str, ttl: timedelta) -> dict:
    """
    Delete pipeline/renderer directories left behind under work_dir.

    Both components remove their directories on every exit path; anything
    older than the TTL was orphaned by a crashed process.

    Returns:
        dict: Counts of deleted folders and errors
    """
    summary = {"folders_deleted": 0, "errors": 0}
    dir_path = Path(work_dir)
    if not dir_path.exists():
        logger.debug(f"Work directory does not exist: {work_dir}")
        return summary

    cutoff = datetime.now() - ttl
    try:
        for folder in dir_path.iterdir():
            if not folder.is_dir() or not folder.name.startswith(WORK_DIR_PREFIXES):
                continue
            try:
                if datetime.fromtimestamp(folder.stat().st_mtime) < cutoff:
                    shutil.rmtree(folder)
                    summary["folders_deleted"] += 1
                    logger.info(f"Cleaned up orphaned work folder: {folder}")
            except OSError as e:
                summary["errors"] += 1
                logger.error(f"Failed to clean up folder {folder}: {e}")
    except OSError as e:
        summary["errors"] += 1
        logger.error(f"Failed to scan directory {work_dir}: {e}")

    return summary


async def cleanup_expired_jobs(
    store: JobStore | None = None,
    work_dir: str | None = None,
    ttl_minutes: int | None = None,
) -> dict:
    """
    Purge finished jobs older than the TTL and orphaned work folders.

    Arguments default to the process-wide store and settings.

    Returns:
        dict: Summary of the cleanup with counts
    """
    store = store or get_job_store()
    ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.JOB_TTL_MINUTES)

    summary = {"jobs_purged": store.purge_finished(ttl)}
    summary.update(cleanup_work_dir(work_dir or settings.WORK_DIR, ttl))

    logger.info(
        f"Cleanup completed: {summary['jobs_purged']} jobs purged, "
        f"{summary['folders_deleted']} folders deleted, {summary['errors']} errors"
    )
    return summary


def start_cleanup_scheduler():
    """
    Start the cleanup scheduler on the running event loop.

    Safe to call multiple times - will not add duplicate jobs.
    """
    global scheduler

    if scheduler is not None and scheduler.running:
        logger.debug("Scheduler already running")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        cleanup_expired_jobs,
        "interval",
        minutes=settings.CLEANUP_INTERVAL_MINUTES,
        id=CLEANUP_JOB_ID,
        name="Purge expired jobs and work folders",
        replace_existing=True,
    )
    logger.info(
        f"Scheduled cleanup job: every {settings.CLEANUP_INTERVAL_MINUTES} minute(s), "
        f"TTL: {settings.JOB_TTL_MINUTES} minutes"
    )

    scheduler.start()
    logger.info("Cleanup scheduler started")


def stop_cleanup_scheduler():
    """
    Stop the cleanup scheduler gracefully.

    AsyncIOScheduler finishes shutting down on a later loop iteration, so
    the reference is dropped here to make the status report stopped at once.
    """
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Cleanup scheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    """
    Get current scheduler status for health checks.

    Returns:
        dict: Scheduler status including running state and job info
    """
    job = scheduler.get_job(CLEANUP_JOB_ID) if scheduler is not None else None
    return {
        "running": scheduler is not None and scheduler.running,
        "job_scheduled": job is not None,
        "next_run": str(job.next_run_time) if job else None,
        "interval_minutes": settings.CLEANUP_INTERVAL_MINUTES,
        "ttl_minutes": settings.JOB_TTL_MINUTES,
    }

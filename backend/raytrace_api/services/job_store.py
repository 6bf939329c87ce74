"""
In-memory job records, progress tracking and result storage.

Every piece of mutable job state lives here, keyed by job id, behind a
single lock. Image results are immutable objects swapped in whole, so a
reader never sees a partially written buffer.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from render_engine.image_codec import ImageResult
from ..middleware import JobNotFoundError

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Job lifecycle: pending -> running -> completed | failed | cancelled."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass
class JobRecord:
    """State of one render job. Mutated only through JobStore."""

    job_id: str
    mode: str
    label: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[ImageResult] = field(default=None, repr=False)

    @property
    def has_result(self) -> bool:
        return self.result is not None


class JobStore:
    """
    Thread-safe registry of job records.

    Also remembers the most recently submitted job (for unkeyed progress
    polling) and the most recently produced image (last writer wins).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: dict[str, JobRecord] = {}
        self._latest_job_id: Optional[str] = None
        self._latest_result: Optional[ImageResult] = None

    def create(self, mode: str, label: str) -> JobRecord:
        """Register a new pending job and make it the latest one."""
        record = JobRecord(job_id=str(uuid.uuid4()), mode=mode, label=label)
        with self._lock:
            self._jobs[record.job_id] = record
            self._latest_job_id = record.job_id
        logger.debug(f"Created job {record.job_id} ({mode}: {label})")
        return replace(record)

    def get(self, job_id: str) -> JobRecord:
        """
        Return a snapshot of a job record.

        Raises:
            JobNotFoundError: If job_id is unknown
        """
        with self._lock:
            return replace(self._require(job_id))

    def latest_job_id(self) -> Optional[str]:
        with self._lock:
            return self._latest_job_id

    def list_jobs(self) -> list[JobRecord]:
        with self._lock:
            return [replace(r) for r in self._jobs.values()]

    def count_active(self) -> int:
        """Number of jobs that are pending or running."""
        with self._lock:
            return sum(1 for r in self._jobs.values() if not r.status.is_finished)

    def mark_running(self, job_id: str) -> None:
        with self._lock:
            record = self._require(job_id)
            if record.status.is_finished:
                return
            record.status = JobStatus.RUNNING
            record.progress = 0
            record.started_at = datetime.now(timezone.utc)

    def set_progress(self, job_id: str, progress: int) -> int:
        """
        Record progress for a running job.

        Values are clamped to [0, 100] and never move backwards; updates to
        finished jobs are ignored.

        Returns:
            int: The job's progress after the update
        """
        progress = max(0, min(100, int(progress)))
        with self._lock:
            record = self._require(job_id)
            if record.status == JobStatus.RUNNING and progress > record.progress:
                record.progress = progress
            return record.progress

    def get_progress(self, job_id: Optional[str] = None) -> int:
        """Progress of job_id, or of the latest job; 0 when there is none."""
        with self._lock:
            job_id = job_id or self._latest_job_id
            if job_id is None:
                return 0
            return self._require(job_id).progress

    def set_result(self, job_id: str, data: bytes, mime_type: str) -> None:
        """Store the job's image, complete the job and publish it as the latest result."""
        result = ImageResult(data=data, mime_type=mime_type)
        with self._lock:
            record = self._require(job_id)
            if record.status.is_finished:
                logger.warning(f"Discarding result for finished job {job_id}")
                return
            record.result = result
            record.progress = 100
            record.status = JobStatus.COMPLETED
            record.completed_at = datetime.now(timezone.utc)
            self._latest_result = result

    def get_result(self, job_id: Optional[str] = None) -> Optional[ImageResult]:
        """
        Image for job_id, or the most recently produced image.

        Returns:
            ImageResult, or None when no result exists yet
        """
        with self._lock:
            if job_id is None:
                return self._latest_result
            return self._require(job_id).result

    def mark_failed(self, job_id: str, error: str) -> None:
        self._finish(job_id, JobStatus.FAILED, error)

    def mark_cancelled(self, job_id: str, reason: str = "cancelled") -> None:
        self._finish(job_id, JobStatus.CANCELLED, reason)

    def purge_finished(self, older_than: timedelta) -> int:
        """Drop finished jobs completed more than older_than ago."""
        cutoff = datetime.now(timezone.utc) - older_than
        with self._lock:
            expired = [
                job_id
                for job_id, r in self._jobs.items()
                if r.status.is_finished and r.completed_at and r.completed_at < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
                if self._latest_job_id == job_id:
                    self._latest_job_id = None
        if expired:
            logger.info(f"Purged {len(expired)} finished job records")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()
            self._latest_job_id = None
            self._latest_result = None

    def _finish(self, job_id: str, status: JobStatus, error: str) -> None:
        with self._lock:
            record = self._require(job_id)
            if record.status.is_finished:
                return
            record.status = status
            record.error = error
            record.completed_at = datetime.now(timezone.utc)

    def _require(self, job_id: str) -> JobRecord:
        record = self._jobs.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

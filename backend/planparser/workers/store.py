"""
In-memory job store.

All job records live here and every mutation goes through the methods below,
under one lock. Callers only ever see deep copies. Status changes follow
``ALLOWED_TRANSITIONS``; writes against a terminal job are refused, so a job
cancelled or evicted mid-run cannot be resurrected by its worker.
"""
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from planparser.core.errors import JobFailedError, JobNotFoundError, JobNotReadyError
from planparser.core.logging import get_logger
from planparser.models.job import Job, JobStatus
from planparser.models.results import TransformationResult, utcnow

logger = get_logger("job_store")

CANCELLED_MESSAGE = "Job cancelled"


class JobStore:
    def __init__(self, ttl_seconds: float = 1800, clock: Callable[[], datetime] = utcnow):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._jobs: Dict[str, Job] = {}
        self._cancel_events: Dict[str, threading.Event] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, filename: str, file_path: str, content_type: Optional[str] = None) -> Job:
        now = self._clock()
        job = Job(
            id=str(uuid.uuid4()),
            filename=filename,
            file_path=file_path,
            content_type=content_type,
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._jobs[job.id] = job
            self._cancel_events[job.id] = threading.Event()
        return job.model_copy(deep=True)

    def discard(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)
            self._cancel_events.pop(job_id, None)

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError("Job not found")
        return job

    def get(self, job_id: str) -> Job:
        with self._lock:
            return self._require(job_id).model_copy(deep=True)

    def get_status(self, job_id: str) -> Dict:
        with self._lock:
            job = self._require(job_id)
            return {
                "job_id": job.id,
                "status": job.status.value,
                "progress": job.progress,
                "error": job.error_message,
            }

    def get_result(self, job_id: str) -> TransformationResult:
        with self._lock:
            job = self._require(job_id)
            if job.status == JobStatus.FAILED:
                raise JobFailedError(job.error_message or "Job failed")
            if job.status != JobStatus.COMPLETED or job.result is None:
                raise JobNotReadyError("Job is not finished yet")
            return job.result.model_copy(deep=True)

    def cancel_event(self, job_id: str) -> threading.Event:
        with self._lock:
            self._require(job_id)
            return self._cancel_events[job_id]

    def _transition(self, job: Job, target: JobStatus) -> bool:
        if not job.can_transition(target):
            logger.debug(f"Refusing {job.status.value} -> {target.value} for job {job.id}")
            return False
        job.status = target
        job.updated_at = self._clock()
        return True

    def claim(self, job_id: str) -> bool:
        """pending -> processing. Exactly one caller can win."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            return self._transition(job, JobStatus.PROCESSING)

    def update_progress(self, job_id: str, progress: int) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.PROCESSING:
                return False
            job.progress = max(job.progress, min(100, progress))
            job.updated_at = self._clock()
            return True

    def complete(self, job_id: str, result: TransformationResult) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not self._transition(job, JobStatus.COMPLETED):
                return False
            job.result = result.model_copy(deep=True)
            job.progress = 100
            return True

    def fail(self, job_id: str, message: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not self._transition(job, JobStatus.FAILED):
                return False
            job.error_message = message
            return True

    def cancel(self, job_id: str) -> bool:
        """Fail a pending or processing job and signal its worker. False if already terminal."""
        with self._lock:
            job = self._require(job_id)
            if job.is_terminal:
                return False
            self._cancel_events[job_id].set()
            self._transition(job, JobStatus.FAILED)
            job.error_message = CANCELLED_MESSAGE
        logger.info(f"Job {job_id} cancelled")
        return True

    def fail_unfinished(self, message: str) -> int:
        count = 0
        with self._lock:
            for job in self._jobs.values():
                if job.is_terminal:
                    continue
                self._cancel_events[job.id].set()
                self._transition(job, JobStatus.FAILED)
                job.error_message = message
                count += 1
        return count

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock()
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.expires_at <= now]
            for job_id in expired:
                # A worker still running this job should stop waiting on providers
                self._cancel_events[job_id].set()
                del self._jobs[job_id]
                del self._cancel_events[job_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired job(s)")
        return len(expired)

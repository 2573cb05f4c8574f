from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from planparser.models.results import TransformationResult


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED}

# pending -> failed covers cancellation and shutdown of a queued job
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class Job(BaseModel):
    id: str
    filename: str = ""
    content_type: Optional[str] = None
    file_path: str = ""
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    result: Optional[TransformationResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition(self, target: JobStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

import threading
import uuid
from collections import Counter, deque
from datetime import datetime
from typing import Any, Deque, Dict, Optional

from loguru import logger as root_logger
from pydantic import BaseModel, Field

from planparser.core.llm_config import ErrorHandlingSettings
from planparser.core.logging import get_logger
from planparser.models.results import utcnow

logger = get_logger("error_handler")

CATEGORY_SEVERITY = {
    "validation": "warning",
    "configuration": "critical",
}

SUGGESTED_ACTIONS = {
    "parsing": "Check that the document is not corrupted and is a supported format",
    "validation": "Review the document content and make sure it describes a project",
    "llm": "Check LLM provider availability, API keys and quotas",
    "transformation": "Inspect the model output; the prompt or model may need adjusting",
    "configuration": "Review the LLM configuration file and environment variables",
    "network": "Check network connectivity to the LLM provider",
    "file": "Verify the uploaded file exists and is readable",
    "business_logic": "Check the job state before retrying the operation",
    "general": "See the service log for details",
}

RECENT_ERRORS = 10


class ErrorInfo(BaseModel):
    error_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=utcnow)
    category: str
    severity: str
    message: str
    suggested_action: str
    exception_type: str = ""
    job_id: Optional[str] = None
    document: Optional[str] = None


def categorize(exc: BaseException) -> str:
    category = getattr(exc, "category", None)
    if category:
        return category
    if isinstance(exc, OSError):
        return "file"
    return "general"


class ErrorHandler:
    """
    Keeps the most recent failures in memory and journals each one as a JSON
    line through a dedicated loguru sink.
    """

    def __init__(self, settings: ErrorHandlingSettings):
        self.settings = settings
        self._errors: Deque[ErrorInfo] = deque(maxlen=settings.max_errors)
        self._counts_by_category: Counter = Counter()
        self._counts_by_severity: Counter = Counter()
        self._total = 0
        self._processed = 0
        self._lock = threading.Lock()

        self._sink_token = uuid.uuid4().hex
        self._journal = root_logger.bind(error_record=True, error_sink=self._sink_token)
        self._sink_id = root_logger.add(
            settings.log_file,
            level=settings.log_level,
            format="{message}",
            filter=lambda record: record["extra"].get("error_sink") == self._sink_token,
            enqueue=False,
        )

    def handle(self, exc: BaseException, job_id: Optional[str] = None, document: Optional[str] = None) -> ErrorInfo:
        category = categorize(exc)
        severity = CATEGORY_SEVERITY.get(category, "error")
        info = ErrorInfo(
            category=category,
            severity=severity,
            message=getattr(exc, "message", None) or str(exc) or exc.__class__.__name__,
            suggested_action=SUGGESTED_ACTIONS.get(category, SUGGESTED_ACTIONS["general"]),
            exception_type=exc.__class__.__name__,
            job_id=job_id,
            document=document,
        )

        with self._lock:
            self._errors.append(info)
            self._total += 1
            self._counts_by_category[category] += 1
            self._counts_by_severity[severity] += 1

        self._journal.error(info.model_dump_json())
        level = "WARNING" if severity == "warning" else "ERROR"
        logger.log(level, f"[{category}] job={job_id} {info.message}")
        return info

    def record_processed(self) -> None:
        with self._lock:
            self._processed += 1

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            recent = list(self._errors)[-RECENT_ERRORS:]
            error_rate = self._total / self._processed if self._processed else 0.0
            return {
                "total_errors": self._total,
                "by_category": dict(self._counts_by_category),
                "by_severity": dict(self._counts_by_severity),
                "recent_errors": [e.model_dump(mode="json") for e in recent],
                "processed_jobs": self._processed,
                "error_rate": error_rate,
                "error_tolerance": self.settings.error_tolerance,
                "tolerance_exceeded": self._processed > 0 and error_rate > self.settings.error_tolerance,
            }

    def close(self) -> None:
        root_logger.remove(self._sink_id)

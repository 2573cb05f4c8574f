from planparser.core.errors import JobNotFoundError, PlanParserError
from planparser.core.logging import get_logger
from planparser.services.errors.handler import ErrorHandler
from planparser.services.pipeline import ParsePipeline
from planparser.workers.store import JobStore

logger = get_logger("worker")

INTERNAL_ERROR_MESSAGE = "Internal processing error"


class JobProcessor:
    """Runs one claimed job through the pipeline and records the outcome. The pool owns the upload file."""

    def __init__(self, store: JobStore, pipeline: ParsePipeline, error_handler: ErrorHandler):
        self.store = store
        self.pipeline = pipeline
        self.error_handler = error_handler

    def __call__(self, job_id: str) -> None:
        self.process(job_id)

    def process(self, job_id: str) -> None:
        try:
            job = self.store.get(job_id)
            cancel_event = self.store.cancel_event(job_id)
        except JobNotFoundError:
            logger.warning(f"Job {job_id} disappeared before processing")
            return

        logger.info(f"Starting pipeline for Job {job_id} ({job.filename})")
        try:
            result = self.pipeline.run(
                job_id,
                job.file_path,
                job.filename,
                content_type=job.content_type,
                progress=lambda value: self.store.update_progress(job_id, value),
                cancel_event=cancel_event,
            )
        except PlanParserError as e:
            self.error_handler.handle(e, job_id=job_id, document=job.filename)
            self.store.fail(job_id, e.message)
        except Exception as e:
            logger.exception(f"Job {job_id} failed unexpectedly: {e}")
            self.error_handler.handle(e, job_id=job_id, document=job.filename)
            self.store.fail(job_id, INTERNAL_ERROR_MESSAGE)
        else:
            if self.store.complete(job_id, result):
                logger.info(f"Job {job_id} completed with status {result.status}")
            else:
                logger.info(f"Job {job_id} finished but was cancelled or evicted meanwhile")
        finally:
            self.error_handler.record_processed()

import os
import queue
import threading
from typing import Callable, List, Optional, Tuple

from planparser.core.errors import QueueFullError
from planparser.core.logging import get_logger
from planparser.workers.store import JobStore

logger = get_logger("worker_pool")

QUEUE_POLL_SECONDS = 0.5
SHUTDOWN_MESSAGE = "Service shutting down"


def remove_upload(path: str) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove upload {path}: {e}")


class WorkerPool:
    """
    Fixed number of worker threads draining one bounded FIFO queue.

    ``submit`` never blocks: a full queue rejects the job with QueueFullError.
    A sweeper thread evicts expired jobs from the store. Every dequeued or
    drained upload is removed, whether or not its job ever ran.
    """

    def __init__(
        self,
        store: JobStore,
        handler: Callable[[str], None],
        workers: int = 4,
        queue_size: int = 64,
        sweep_interval: float = 60.0,
        keep_files: bool = False,
    ):
        self.store = store
        self.handler = handler
        self.workers = workers
        self.sweep_interval = sweep_interval
        self.keep_files = keep_files
        self._queue: "queue.Queue[Tuple[str, str]]" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return bool(self._threads) and not self._stop.is_set()

    def start(self) -> None:
        if self._threads:
            return
        for i in range(self.workers):
            thread = threading.Thread(target=self._work, name=f"parser-worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        sweeper = threading.Thread(target=self._sweep, name="parser-sweeper", daemon=True)
        sweeper.start()
        self._threads.append(sweeper)
        logger.info(f"Worker pool started: {self.workers} workers, queue capacity {self.capacity}")

    def submit(self, filename: str, file_path: str, content_type: Optional[str] = None) -> str:
        job = self.store.create(filename, file_path, content_type)
        try:
            self._queue.put_nowait((job.id, file_path))
        except queue.Full:
            self.store.discard(job.id)
            logger.warning(f"Queue full, rejected {filename}")
            raise QueueFullError("Parser queue is full, try again later")
        logger.info(f"Job {job.id} queued for {filename}")
        return job.id

    def _work(self) -> None:
        while not self._stop.is_set():
            try:
                job_id, file_path = self._queue.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            try:
                # Cancelled or evicted jobs are not claimable
                if self.store.claim(job_id):
                    self.handler(job_id)
                else:
                    logger.debug(f"Skipping job {job_id}, no longer pending")
            except Exception as e:
                logger.exception(f"Worker crashed on job {job_id}: {e}")
            finally:
                self._release(file_path)
                self._queue.task_done()

    def _sweep(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.store.evict_expired()
            except Exception as e:
                logger.exception(f"Eviction sweep failed: {e}")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        failed = self.store.fail_unfinished(SHUTDOWN_MESSAGE)
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        self._drain()
        logger.info(f"Worker pool stopped, {failed} unfinished job(s) failed")

    def _drain(self) -> None:
        while True:
            try:
                _, file_path = self._queue.get_nowait()
            except queue.Empty:
                return
            self._release(file_path)
            self._queue.task_done()

    def _release(self, file_path: str) -> None:
        if not self.keep_files:
            remove_upload(file_path)

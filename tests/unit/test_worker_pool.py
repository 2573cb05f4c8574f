import threading
import time

import pytest

from planparser.core.errors import QueueFullError
from planparser.core.llm_config import ErrorHandlingSettings
from planparser.services.errors.handler import ErrorHandler
from planparser.services.extraction.service import ExtractionService
from planparser.services.llm.orchestrator import ProviderOrchestrator
from planparser.services.pipeline import ParsePipeline
from planparser.services.prompts.builder import PromptBuilder
from planparser.workers.pool import WorkerPool
from planparser.workers.store import JobStore
from planparser.workers.tasks import JobProcessor


@pytest.fixture
def error_handler(tmp_path):
    handler = ErrorHandler(ErrorHandlingSettings(log_file=str(tmp_path / "errors.log")))
    yield handler
    handler.close()


@pytest.fixture
def build_pool(error_handler):
    pools = []
    orchestrators = []

    def _build(providers, workers=2, queue_size=8, start=True, keep_files=False):
        orchestrator = ProviderOrchestrator(providers, list(providers), poll_interval=0.02)
        orchestrators.append(orchestrator)
        pipeline = ParsePipeline(ExtractionService(), PromptBuilder(), orchestrator)
        store = JobStore(ttl_seconds=600)
        pool = WorkerPool(store, JobProcessor(store, pipeline, error_handler),
                          workers=workers, queue_size=queue_size, sweep_interval=0.05, keep_files=keep_files)
        if start:
            pool.start()
        pools.append(pool)
        return pool

    yield _build
    for pool in pools:
        pool.stop(timeout=2)
    for orchestrator in orchestrators:
        orchestrator.shutdown()


def test_full_queue_rejects_without_blocking(build_pool, tmp_path):
    pool = build_pool({}, queue_size=1, start=False)
    pool.submit("a.txt", str(tmp_path / "a.txt"))
    with pytest.raises(QueueFullError):
        pool.submit("b.txt", str(tmp_path / "b.txt"))
    # The rejected job leaves no record behind
    assert len(pool.store) == 1


def test_end_to_end_text_document(build_pool, make_provider, alpha_document, wait_for_job):
    provider = make_provider()
    pool = build_pool({"fake": provider})

    job_id = pool.submit("alpha.txt", str(alpha_document), "text/plain")
    status = wait_for_job(pool.store, job_id)

    assert status["status"] == "completed", status
    assert status["progress"] == 100
    result = pool.store.get_result(job_id)
    project = result.transformed_data.project
    assert project.title == "Project Alpha"
    assert len(project.phases) == 1
    assert len(project.phases[0].tasks) == 1
    assert project.metadata["calculated_fields"]["total_duration_days"] == 31
    assert project.metadata["project_health"]["date_consistency_issues"] == 0
    assert project.metadata["health_score"] == project.metadata["data_quality_score"]
    assert "Project Alpha" in provider.prompts[0]
    # Uploads are removed once the worker is done with them
    for _ in range(100):
        if not alpha_document.exists():
            break
        time.sleep(0.02)
    assert not alpha_document.exists()


def test_unparseable_output_fails_job(build_pool, make_provider, alpha_document, wait_for_job, error_handler):
    pool = build_pool({"fake": make_provider(content="sorry, no idea")})
    job_id = pool.submit("alpha.txt", str(alpha_document))
    status = wait_for_job(pool.store, job_id)
    assert status["status"] == "failed"
    assert status["error"] == "Model output could not be parsed"
    assert error_handler.summary()["by_category"] == {"transformation": 1}


def test_no_providers_fails_with_short_message(build_pool, alpha_document, wait_for_job):
    pool = build_pool({})
    job_id = pool.submit("alpha.txt", str(alpha_document))
    status = wait_for_job(pool.store, job_id)
    assert status["status"] == "failed"
    assert status["error"] == "No LLM providers are configured or enabled"


def test_unsupported_file_fails_job(build_pool, make_provider, tmp_path, wait_for_job):
    path = tmp_path / "sheet.xlsx"
    path.write_bytes(b"PK\x03\x04")
    pool = build_pool({"fake": make_provider()})
    job_id = pool.submit("sheet.xlsx", str(path))
    assert wait_for_job(pool.store, job_id)["status"] == "failed"


def test_cancel_running_job(build_pool, make_provider, alpha_document, wait_for_job):
    release = threading.Event()
    pool = build_pool({"fake": make_provider(block=release)}, workers=1)
    try:
        job_id = pool.submit("alpha.txt", str(alpha_document))
        for _ in range(200):
            if pool.store.get_status(job_id)["status"] == "processing":
                break
            time.sleep(0.01)
        assert pool.store.cancel(job_id) is True
        status = wait_for_job(pool.store, job_id)
        assert status["status"] == "failed"
        assert status["error"] == "Job cancelled"
    finally:
        release.set()


def test_stop_fails_queued_jobs_and_removes_their_uploads(build_pool, alpha_document):
    pool = build_pool({}, start=False)
    job_id = pool.submit("alpha.txt", str(alpha_document))
    pool.stop()
    assert pool.store.get_status(job_id) == {
        "job_id": job_id, "status": "failed", "progress": 0, "error": "Service shutting down",
    }
    assert not alpha_document.exists()
    assert pool.queue_depth == 0


def test_cancelled_queued_job_releases_its_upload(build_pool, make_provider, alpha_document):
    provider = make_provider()
    pool = build_pool({"fake": provider}, start=False)
    job_id = pool.submit("alpha.txt", str(alpha_document))
    assert pool.store.cancel(job_id) is True

    pool.start()
    for _ in range(100):
        if not alpha_document.exists():
            break
        time.sleep(0.02)
    assert not alpha_document.exists()
    assert provider.calls == 0
    assert pool.store.get_status(job_id)["error"] == "Job cancelled"


def test_keep_files_leaves_uploads_in_place(build_pool, alpha_document):
    pool = build_pool({}, start=False, keep_files=True)
    pool.submit("alpha.txt", str(alpha_document))
    pool.stop()
    assert alpha_document.exists()

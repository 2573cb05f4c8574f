"""Shared fixtures: a scriptable provider, sample documents and service settings."""

import json
import threading
import time

import pytest

from planparser.core.config import Settings
from planparser.core.llm_config import ErrorHandlingSettings, LLMConfig, ProviderConfig, RateLimitSettings
from planparser.models.results import TokenUsage
from planparser.services.llm.base import BaseProvider

ALPHA_DOCUMENT = (
    "Project Alpha; Phase 1: Foundation (2025-01-01–2025-02-01); "
    "Task: Dig (2025-01-01–2025-01-10)"
)

ALPHA_RESPONSE = {
    "project": {
        "title": "Project Alpha",
        "description": "Build the foundation of the Alpha site",
        "phases": [
            {
                "id": "phase_1",
                "name": "Foundation",
                "description": "Ground works",
                "start_date": "2025-01-01",
                "end_date": "2025-02-01",
                "tasks": [
                    {
                        "id": "phase_1_task_1",
                        "name": "Dig",
                        "description": "Dig the pit",
                        "start_date": "2025-01-01",
                        "end_date": "2025-01-10",
                        "responsible_persons": [{"name": "Ivan Petrov", "role": "Foreman"}],
                        "dependencies": [],
                        "status": "planned",
                    }
                ],
            }
        ],
    }
}


class FakeProvider(BaseProvider):
    """Provider that answers from a script instead of the network."""

    kind = "fake"
    default_timeout = 5.0

    def __init__(self, config, retry_settings=None, content="", error=None, delay=0.0, name="fake", block=None):
        super().__init__(config, retry_settings)
        self.kind = name
        self.content = content
        self.error = error
        self.delay = delay
        self.block = block
        self.calls = 0
        self.prompts = []
        self._lock = threading.Lock()

    def generate(self, options, prompt):
        with self._lock:
            self.calls += 1
            self.prompts.append(prompt)
        if self.block is not None:
            self.block.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.build_result(self.content, TokenUsage(input=120, output=80, total=200), self.model)


@pytest.fixture
def alpha_json():
    return json.dumps(ALPHA_RESPONSE)


@pytest.fixture
def alpha_response():
    return json.loads(json.dumps(ALPHA_RESPONSE))


@pytest.fixture
def alpha_document(tmp_path):
    path = tmp_path / "alpha.txt"
    path.write_text(ALPHA_DOCUMENT, encoding="utf-8")
    return path


@pytest.fixture
def make_provider(alpha_json):
    def _make(content=None, error=None, delay=0.0, name="fake", timeout=None, block=None):
        config = ProviderConfig(enabled=True, model=f"{name}-model", timeout_seconds=timeout)
        return FakeProvider(
            config,
            content=alpha_json if content is None else content,
            error=error,
            delay=delay,
            name=name,
            block=block,
        )

    return _make


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        UPLOAD_DIR=str(tmp_path / "uploads"),
        PROMPTS_DIR=str(tmp_path / "prompts"),
        LLM_CONFIG_PATH=str(tmp_path / "llm_config.yaml"),
        LLM_POLL_INTERVAL_SEC=0.05,
        PARSER_WORKERS=2,
        PARSER_QUEUE_SIZE=8,
        PARSER_SWEEP_INTERVAL_SEC=0.1,
    )


@pytest.fixture
def fake_llm_config(tmp_path):
    return LLMConfig(
        providers={"fake": ProviderConfig(enabled=True, model="fake-model")},
        provider_priority=["fake"],
        rate_limiting=RateLimitSettings(requests_per_minute=1000, tokens_per_minute=10_000_000),
        error_handling=ErrorHandlingSettings(log_file=str(tmp_path / "errors.log")),
    )


def wait_for_terminal(store, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = store.get_status(job_id)
        if status["status"] in ("completed", "failed"):
            return status
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish in {timeout}s")


@pytest.fixture
def wait_for_job():
    return wait_for_terminal

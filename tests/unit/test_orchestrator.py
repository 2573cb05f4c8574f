import threading
import time

import pytest

from planparser.core.errors import (
    AllProvidersFailedError,
    JobCancelledError,
    NoProvidersAvailableError,
    ProviderError,
)
from planparser.models.results import GenerationOptions
from planparser.services.llm.orchestrator import ProviderOrchestrator
from planparser.services.llm.rate_limit import RateLimiter


@pytest.fixture
def orchestrators():
    created = []

    def _make(providers, priority, **kwargs):
        kwargs.setdefault("poll_interval", 0.02)
        orchestrator = ProviderOrchestrator(providers, priority, **kwargs)
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.shutdown()


def test_fallback_returns_first_success_and_stops(make_provider, orchestrators):
    a = make_provider(name="a", error=ProviderError("boom", provider="a"))
    b = make_provider(name="b", content='{"ok": true}')
    c = make_provider(name="c")
    orchestrator = orchestrators({"a": a, "b": b, "c": c}, ["a", "b", "c"])

    result = orchestrator.generate(GenerationOptions(), "prompt")

    assert result.provider == "b"
    assert result.content == '{"ok": true}'
    assert (a.calls, b.calls, c.calls) == (1, 1, 0)


def test_no_providers_is_a_distinct_error(orchestrators):
    with pytest.raises(NoProvidersAvailableError) as info:
        orchestrators({}, ["openai", "ollama"]).generate(GenerationOptions(), "prompt")
    assert not isinstance(info.value, ProviderError)


def test_priority_names_without_providers_are_skipped(make_provider, orchestrators):
    b = make_provider(name="b")
    orchestrator = orchestrators({"b": b}, ["missing", "b"])
    assert orchestrator.available == ["b"]
    assert orchestrator.generate(GenerationOptions(), "p").provider == "b"


def test_all_failing_reports_last_error(make_provider, orchestrators):
    a = make_provider(name="a", error=ProviderError("first", provider="a"))
    b = make_provider(name="b", error=RuntimeError("second"))
    orchestrator = orchestrators({"a": a, "b": b}, ["a", "b"])

    with pytest.raises(AllProvidersFailedError) as info:
        orchestrator.generate(GenerationOptions(), "prompt")

    assert "second" in str(info.value)
    assert isinstance(info.value.last_error, RuntimeError)


def test_slow_provider_times_out_and_falls_back(make_provider, orchestrators):
    slow = make_provider(name="slow", delay=1.0, timeout=0.1)
    fast = make_provider(name="fast")
    orchestrator = orchestrators({"slow": slow, "fast": fast}, ["slow", "fast"])

    started = time.monotonic()
    result = orchestrator.generate(GenerationOptions(), "prompt")

    assert result.provider == "fast"
    assert time.monotonic() - started < 0.9


def test_fallback_waits_for_a_free_call_slot(make_provider, orchestrators):
    # The abandoned slow call keeps the only slot busy until it returns
    hung = make_provider(name="hung", delay=1.0, timeout=0.1)
    good = make_provider(name="good", timeout=0.4)
    orchestrator = orchestrators({"hung": hung, "good": good}, ["hung", "good"], max_concurrent_calls=1)

    result = orchestrator.generate(GenerationOptions(), "prompt")

    assert result.provider == "good"
    assert (hung.calls, good.calls) == (1, 1)


def test_cancellation_aborts_the_wait(make_provider, orchestrators):
    release = threading.Event()
    hanging = make_provider(name="hang", block=release)
    orchestrator = orchestrators({"hang": hanging}, ["hang"])
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()

    try:
        with pytest.raises(JobCancelledError):
            orchestrator.generate(GenerationOptions(), "prompt", cancel_event=cancel)
    finally:
        release.set()


def test_successful_calls_feed_the_rate_limiter(make_provider, orchestrators):
    limiter = RateLimiter(requests_per_minute=10, tokens_per_minute=1000)
    orchestrator = orchestrators({"a": make_provider(name="a")}, ["a"], rate_limiter=limiter)
    orchestrator.generate(GenerationOptions(), "prompt")
    assert limiter.try_acquire() == 0.0

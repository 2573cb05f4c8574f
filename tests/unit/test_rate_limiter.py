import threading

import pytest

from planparser.services.llm.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_request_budget_refills_after_window():
    clock = FakeClock()
    limiter = RateLimiter(requests_per_minute=2, tokens_per_minute=1000, clock=clock)
    assert limiter.try_acquire() == 0.0
    assert limiter.try_acquire() == 0.0
    assert limiter.try_acquire() == pytest.approx(60.0)

    clock.now += 60.0
    assert limiter.try_acquire() == 0.0


def test_token_budget_blocks_requests():
    clock = FakeClock()
    limiter = RateLimiter(requests_per_minute=100, tokens_per_minute=500, clock=clock)
    assert limiter.try_acquire() == 0.0
    limiter.record_tokens(600)
    clock.now += 10
    assert limiter.try_acquire() == pytest.approx(50.0)


def test_acquire_gives_up_when_cancelled():
    limiter = RateLimiter(requests_per_minute=1, tokens_per_minute=1000)
    assert limiter.acquire() is True
    cancel = threading.Event()
    cancel.set()
    assert limiter.acquire(cancel_event=cancel) is False

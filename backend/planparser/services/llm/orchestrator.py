"""
Provider fallback chain.

Providers are tried strictly in priority order. Each call runs on a small
executor while the calling worker waits in a timed loop, so a cancelled job
stops waiting within one poll interval and a hung provider is abandoned once
its timeout passes. The first success wins; nothing after it is called.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Mapping, Optional, Sequence

from planparser.core.errors import (
    AllProvidersFailedError,
    JobCancelledError,
    NoProvidersAvailableError,
    ProviderTimeoutError,
)
from planparser.core.logging import get_logger
from planparser.models.results import GenerationOptions, GenerationResult
from planparser.services.llm.base import BaseProvider
from planparser.services.llm.rate_limit import RateLimiter

logger = get_logger("orchestrator")


class ProviderOrchestrator:
    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        priority: Sequence[str],
        rate_limiter: Optional[RateLimiter] = None,
        poll_interval: float = 2.0,
        max_concurrent_calls: int = 8,
    ):
        self._providers = dict(providers)
        self._priority = list(priority)
        self._rate_limiter = rate_limiter
        self._poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent_calls, thread_name_prefix="provider-call")

    @property
    def available(self) -> List[str]:
        return [name for name in self._priority if name in self._providers]

    def generate(
        self,
        options: GenerationOptions,
        prompt: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        candidates = self.available
        if not candidates:
            raise NoProvidersAvailableError("No LLM providers are configured or enabled")

        last_error: Optional[Exception] = None
        last_name = ""
        for name in candidates:
            provider = self._providers[name]
            if self._rate_limiter is not None and not self._rate_limiter.acquire(cancel_event):
                raise JobCancelledError("Job cancelled")
            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelledError("Job cancelled")

            logger.info(f"Requesting generation from provider '{name}'")
            started = time.monotonic()
            try:
                result = self._call_with_deadline(provider, options, prompt, cancel_event)
            except JobCancelledError:
                raise
            except Exception as e:
                last_error, last_name = e, name
                logger.warning(f"Provider '{name}' failed after {time.monotonic() - started:.1f}s: {e}")
                continue

            if self._rate_limiter is not None:
                self._rate_limiter.record_tokens(result.tokens_used.total)
            cost = provider.estimate_cost(result.tokens_used.input, result.tokens_used.output)
            logger.info(
                f"Provider '{name}' succeeded in {time.monotonic() - started:.1f}s, "
                f"tokens={result.tokens_used.total}, confidence={result.confidence:.2f}, cost=${cost:.4f}"
            )
            return result

        raise AllProvidersFailedError(
            f"All LLM providers failed; last error from '{last_name}': {last_error}",
            last_error=last_error,
        )

    def _call_with_deadline(
        self,
        provider: BaseProvider,
        options: GenerationOptions,
        prompt: str,
        cancel_event: Optional[threading.Event],
    ) -> GenerationResult:
        started_at: List[float] = []

        def run() -> GenerationResult:
            started_at.append(time.monotonic())
            return provider.generate(options, prompt)

        # The timeout counts from when the call leaves the executor queue
        future: Future = self._executor.submit(run)

        while True:
            timeout = self._poll_interval
            if started_at:
                remaining = started_at[0] + provider.timeout - time.monotonic()
                if remaining <= 0:
                    raise ProviderTimeoutError(
                        f"Provider '{provider.kind}' timed out after {provider.timeout:.1f}s",
                        provider=provider.kind,
                    )
                timeout = min(timeout, remaining)
            done, _ = wait([future], timeout=timeout)
            if done:
                return future.result()
            if cancel_event is not None and cancel_event.is_set():
                future.cancel()
                raise JobCancelledError("Job cancelled")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        for provider in self._providers.values():
            provider.close()

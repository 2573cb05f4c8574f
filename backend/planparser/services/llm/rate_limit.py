import threading
import time
from collections import deque
from typing import Callable, Deque, Optional, Tuple

from planparser.core.logging import get_logger

logger = get_logger("rate_limiter")

MIN_WAIT_SECONDS = 0.05


class RateLimiter:
    """Sliding one-minute window over request count and reported token usage."""

    def __init__(
        self,
        requests_per_minute: int,
        tokens_per_minute: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.requests_per_minute = requests_per_minute
        self.tokens_per_minute = tokens_per_minute
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Deque[float] = deque()
        self._tokens: Deque[Tuple[float, int]] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        horizon = now - self.window_seconds
        while self._requests and self._requests[0] <= horizon:
            self._requests.popleft()
        while self._tokens and self._tokens[0][0] <= horizon:
            self._tokens.popleft()

    def try_acquire(self) -> float:
        """Take a slot and return 0, or return how long to wait before retrying."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            tokens_used = sum(count for _, count in self._tokens)
            if len(self._requests) < self.requests_per_minute and tokens_used < self.tokens_per_minute:
                self._requests.append(now)
                return 0.0

            oldest = []
            if len(self._requests) >= self.requests_per_minute:
                oldest.append(self._requests[0])
            if tokens_used >= self.tokens_per_minute and self._tokens:
                oldest.append(self._tokens[0][0])
            wait = min(oldest) + self.window_seconds - now if oldest else MIN_WAIT_SECONDS
            return max(wait, MIN_WAIT_SECONDS)

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """Block until a slot is free. Returns False if cancelled while waiting."""
        while True:
            wait = self.try_acquire()
            if wait == 0.0:
                return True
            logger.debug(f"Rate limit reached, waiting {wait:.2f}s")
            if cancel_event is not None:
                if cancel_event.wait(wait):
                    return False
            else:
                time.sleep(wait)

    def record_tokens(self, tokens: int) -> None:
        if tokens <= 0:
            return
        with self._lock:
            self._tokens.append((self._clock(), tokens))

"""A rate-limited HTTP client."""

from __future__ import annotations

import threading
import time
from typing import Callable

import requests


class RateLimiter:
    """Token bucket allowing one event every ``interval`` seconds, up to ``burst``."""

    def __init__(
        self,
        interval: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = interval
        self.burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until an event is allowed."""
        with self._lock:
            now = self._clock()
            if self.interval > 0:
                self._tokens = min(
                    self.burst, self._tokens + (now - self._last) / self.interval
                )
            else:
                self._tokens = float(self.burst)
            self._last = now
            if self._tokens >= 1:
                self._tokens -= 1
                return
            delay = (1 - self._tokens) * self.interval
            self._tokens = 0.0
            self._last = now + delay
        self._sleep(delay)


class RateLimitedClient:
    """HTTP client whose requests honour a RateLimiter."""

    def __init__(self, session: requests.Session, limiter: RateLimiter) -> None:
        self.session = session
        self.limiter = limiter

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        self.limiter.wait()
        return self.session.request(method, url, **kwargs)

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request("GET", url, **kwargs)


def new_client(limiter: RateLimiter) -> RateLimitedClient:
    """Return a rate-limited client using a default session."""
    return RateLimitedClient(requests.Session(), limiter)
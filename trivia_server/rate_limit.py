"""Per-client request rate limiting for the REST API.

Each limiter keeps a sliding window of request timestamps per client key and
refuses a request once the window already holds ``max_requests`` entries.
"""
from __future__ import annotations

import logging
import math
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS = "Too many requests, please try again later"


class SlidingWindowLimiter:
    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        now: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._now = now
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def _prune(self, key: str, now: float) -> Deque[float]:
        hits = self._hits[key]
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def is_allowed(self, key: str) -> bool:
        """Record a request for *key* and report whether it fits in the window."""
        now = self._now()
        hits = self._prune(key, now)
        if len(hits) >= self.max_requests:
            logger.warning(
                "Rate limit exceeded for %s (%d requests in %.0fs)",
                key,
                len(hits),
                self.window_seconds,
            )
            return False
        hits.append(now)
        return True

    def get_wait_time(self, key: str) -> float:
        """Seconds until *key* may send again; 0 when it is not limited."""
        now = self._now()
        hits = self._prune(key, now)
        if not hits:
            del self._hits[key]
            return 0.0
        if len(hits) < self.max_requests:
            return 0.0
        return max(0.0, hits[0] + self.window_seconds - now)

    def reset_all(self) -> None:
        self._hits.clear()


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def retry_after(limiter: SlidingWindowLimiter, key: str) -> Dict[str, str]:
    return {"Retry-After": str(max(1, math.ceil(limiter.get_wait_time(key))))}


def rate_limited(name: str):
    """Route dependency enforcing the limiter registered as *name* on the app."""

    async def dependency(request: Request) -> None:
        limiter: SlidingWindowLimiter = request.app.state.rate_limiters[name]
        key = client_key(request)
        if not limiter.is_allowed(key):
            raise HTTPException(status_code=429, detail=TOO_MANY_REQUESTS, headers=retry_after(limiter, key))

    return dependency


__all__ = ["SlidingWindowLimiter", "TOO_MANY_REQUESTS", "client_key", "rate_limited", "retry_after"]

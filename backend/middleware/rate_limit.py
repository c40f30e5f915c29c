"""
Per-client throttling for the COD verification routes.

A COD code has only 10**6 possible values, so verify and resend are
limited per (client IP, route). Counters live in process memory; every
worker keeps its own window.
"""
import logging
import time
from collections import defaultdict, deque

from fastapi import Request

from domain.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding window of request timestamps per key."""

    def __init__(self):
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _window(self, key: str, window_seconds: int) -> deque[float]:
        hits = self._hits[key]
        cutoff = time.monotonic() - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def check(self, key: str, max_requests: int, window_seconds: int) -> bool:
        """Count one attempt; False once the window is full (the attempt is not counted)."""
        hits = self._window(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        hits.append(time.monotonic())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: int) -> int:
        return max(0, max_requests - len(self._window(key, window_seconds)))

    def reset(self):
        self._hits.clear()


limiter = RateLimiter()


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    Build a route dependency enforcing `max_requests` per `window_seconds`.

        @router.post("/verify-cod", dependencies=[Depends(rate_limit(10, 300))])
    """
    async def _enforce(request: Request):
        client_ip = request.client.host if request.client else "unknown"
        key = f"{client_ip}:{request.url.path}"

        if not limiter.check(key, max_requests, window_seconds):
            logger.warning(f"Throttled {client_ip} on {request.url.path} ({max_requests}/{window_seconds}s)")
            raise RateLimitError(
                f"Too many attempts. Try again in {window_seconds // 60 or 1} minute(s).",
                limit=max_requests,
                window_seconds=window_seconds,
            )

    return _enforce

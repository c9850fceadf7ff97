from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock

from pos_backend.core.config import RATE_LIMIT_PER_MINUTE

DEFAULT_WINDOW_SECONDS = 60

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def endpoint_key(method: str, path: str) -> str:
    """``POST /api/v1/orders/{id}/cancel``: ids collapse so one order does not get its own budget."""
    return f"{method.upper()} {_NUMERIC_SEGMENT.sub('/{id}', path.rstrip('/') or '/')}"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int = 0

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, tenant_id: str, endpoint: str) -> RateLimitDecision:
        """Consume one request from the tenant's budget for the endpoint."""

    def reset(self) -> None:
        """Forget every recorded hit (tests, config reloads)."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding window per (tenant, endpoint); state lives in this process only."""

    def __init__(self, *, limit: int = RATE_LIMIT_PER_MINUTE, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> None:
        self.limit = max(1, int(limit))
        self.window_seconds = window_seconds
        self._hits: dict[tuple[str, str], deque[float]] = {}
        self._lock = Lock()

    def _prune(self, hits: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def check(self, *, tenant_id: str, endpoint: str) -> RateLimitDecision:
        now = time.monotonic()
        with self._lock:
            hits = self._hits.setdefault((tenant_id, endpoint), deque())
            self._prune(hits, now)

            if len(hits) >= self.limit:
                oldest_age = now - hits[0]
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=max(1, int(self.window_seconds - oldest_age)),
                )

            hits.append(now)
            return RateLimitDecision(allowed=True, limit=self.limit, remaining=self.limit - len(hits))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

"""
SlidingWindowRateLimiter - Per-provider request ceilings over a trailing minute.

Each provider owns an ordered list of call timestamps (epoch milliseconds).
Checks discard everything older than the window before counting, so the list
never grows without bound.

The check and the record are two separate calls. Two overlapping requests can
both pass ``can_make_request`` before either records, which makes the ceiling
a best-effort limit. The limiter never sleeps or blocks.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

WINDOW_MS = 60_000


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class RateUsage:
    """Snapshot of a provider's window."""

    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict[str, Any]:
        return {"used": self.used, "limit": self.limit, "remaining": self.remaining}


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter keyed by provider id.

    Usage:
        limiter = SlidingWindowRateLimiter({"fanza": 10, "duga": 60})

        if limiter.can_make_request("fanza"):
            data = await fetch()
            limiter.record_request("fanza")
    """

    def __init__(
        self,
        limits: dict[str, int],
        default_limit: int = 10,
        window_ms: int = WINDOW_MS,
        clock: Callable[[], float] | None = None,
    ):
        self._limits = dict(limits)
        self._default_limit = default_limit
        self._window_ms = window_ms
        self._clock = clock or _now_ms
        self._windows: dict[str, list[float]] = {}

    def limit_for(self, provider: str) -> int:
        return self._limits.get(provider, self._default_limit)

    def _prune(self, provider: str) -> list[float]:
        """Drop timestamps outside the window and store the result."""
        cutoff = self._clock() - self._window_ms
        window = [t for t in self._windows.get(provider, []) if t > cutoff]
        self._windows[provider] = window
        return window

    def can_make_request(self, provider: str) -> bool:
        """Check whether another call to ``provider`` fits in the window."""
        window = self._prune(provider)
        limit = self.limit_for(provider)
        if len(window) >= limit:
            logger.warning(
                f"[RateLimit] {provider}: {len(window)}/{limit} requests in the last minute"
            )
            return False
        return True

    def record_request(self, provider: str) -> None:
        """Record a call to ``provider`` at the current time."""
        self._windows.setdefault(provider, []).append(self._clock())

    def usage(self, provider: str) -> RateUsage:
        window = self._prune(provider)
        return RateUsage(used=len(window), limit=self.limit_for(provider))

    def get_all_usage(self) -> dict[str, dict[str, Any]]:
        providers = set(self._limits) | set(self._windows)
        return {p: self.usage(p).to_dict() for p in sorted(providers)}

    def reset(self, provider: str | None = None) -> None:
        if provider is None:
            self._windows.clear()
        else:
            self._windows.pop(provider, None)

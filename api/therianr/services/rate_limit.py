import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Depends, HTTPException

from ..auth.deps import get_current_user


@dataclass
class RateDecision:
    allowed: bool
    retry_after_seconds: int


class InMemoryRateLimiter:
    """Sliding-window burst guard, per process."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._clock = clock

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        cutoff = now - window_seconds
        with self._lock:
            dq = self._events[key]
            while dq and dq[0] <= cutoff:
                dq.popleft()
            if len(dq) >= limit:
                retry_after = max(1, int(dq[0] + window_seconds - now))
                return RateDecision(allowed=False, retry_after_seconds=retry_after)
            dq.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


class IntervalGate:
    """Spaces calls at least ``min_interval_seconds`` apart across threads."""

    def __init__(
        self,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last = float("-inf")
        self._lock = threading.Lock()

    def wait(self) -> float:
        with self._lock:
            elapsed = self._clock() - self._last
            delay = max(0.0, self.min_interval_seconds - elapsed)
            if delay:
                self._sleep(delay)
            self._last = self._clock()
            return delay


limiter = InMemoryRateLimiter()


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    """Per-user burst limit; separate from the daily swipe quota."""

    def _dep(current_user: dict[str, Any] = Depends(get_current_user)) -> None:
        key = f"{route_key}:{current_user['id']}"
        decision = limiter.check(key, limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return Depends(_dep)

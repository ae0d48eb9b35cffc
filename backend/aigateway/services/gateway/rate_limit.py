"""
Sliding-window rate limiting per caller identity.

Every rule configured for a provider must admit a call. State lives in a
RateLimitStore; the in-memory store is per-process, so limits are not
shared between multiple gateway instances.
"""
import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from aigateway.core.logging import get_logger
from aigateway.services.gateway.errors import RateLimitError

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    requests: int
    period: int  # seconds
    burst: Optional[int] = None

    def __post_init__(self):
        if self.requests < 1 or self.period < 1:
            raise ValueError(f"Rate limit rule needs requests >= 1 and period >= 1, got {self.requests}/{self.period}s")

    @property
    def label(self) -> str:
        return f"{self.requests}/{self.period}s"


@dataclass(frozen=True)
class RequestRecord:
    timestamp: float  # milliseconds
    count: int = 1


class RateLimitStore(ABC):
    """Storage for request records keyed by "identity:period"."""

    @abstractmethod
    def window(self, key: str, period_ms: float, now: float) -> List[RequestRecord]:
        """Records under key younger than period_ms, expired ones dropped."""

    @abstractmethod
    def increment(self, key: str, now: float, count: int = 1) -> int:
        """Record a call and return the total count now held under key."""

    @abstractmethod
    def clear(self, prefix: str) -> None:
        """Drop every key starting with prefix."""

    @abstractmethod
    def sweep(self, now: float) -> int:
        """Drop expired records for all keys; return how many were removed."""


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self):
        self._records: Dict[str, List[RequestRecord]] = {}

    def window(self, key: str, period_ms: float, now: float) -> List[RequestRecord]:
        valid = [r for r in self._records.get(key, []) if now - r.timestamp < period_ms]
        if valid:
            self._records[key] = valid
        else:
            self._records.pop(key, None)
        return valid

    def increment(self, key: str, now: float, count: int = 1) -> int:
        records = self._records.setdefault(key, [])
        records.append(RequestRecord(timestamp=now, count=count))
        return sum(r.count for r in records)

    def clear(self, prefix: str) -> None:
        for key in [k for k in self._records if k.startswith(prefix)]:
            del self._records[key]

    def sweep(self, now: float) -> int:
        removed = 0
        for key in list(self._records):
            # keys end in the rule period, in seconds
            period_ms = int(key.rsplit(":", 1)[1]) * 1000
            records = self._records[key]
            valid = [r for r in records if now - r.timestamp < period_ms]
            removed += len(records) - len(valid)
            if valid:
                self._records[key] = valid
            else:
                del self._records[key]
        return removed

    def __len__(self) -> int:
        return len(self._records)


def _wall_clock_ms() -> float:
    return time.time() * 1000


class RateLimiter:
    """Enforces a set of rules for one provider."""

    def __init__(
        self,
        rules: Iterable[RateLimitRule],
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = _wall_clock_ms,
    ):
        self.rules = list(rules)
        self.store = store or InMemoryRateLimitStore()
        self._clock = clock

    def check_limit(self, identity: str) -> None:
        """
        Admit one call for identity or raise RateLimitError.

        All rules are checked before anything is recorded, so a rejected
        call does not consume quota under the rules it did pass.
        """
        now = self._clock()
        for rule in self.rules:
            key = f"{identity}:{rule.period}"
            records = self.store.window(key, rule.period * 1000, now)
            used = sum(r.count for r in records)
            if used >= rule.requests:
                oldest = min(r.timestamp for r in records)
                retry_after = max(1, math.ceil((oldest + rule.period * 1000 - now) / 1000))
                logger.warning(
                    "Rate limit exceeded",
                    identity=identity,
                    rule=rule.label,
                    retry_after=retry_after,
                )
                raise RateLimitError(retry_after)

        for rule in self.rules:
            self.store.increment(f"{identity}:{rule.period}", now)

    def reset(self, identity: str) -> None:
        self.store.clear(f"{identity}:")

    def cleanup(self) -> int:
        return self.store.sweep(self._clock())

    def get_remaining_requests(self, identity: str) -> Dict[str, int]:
        now = self._clock()
        remaining = {}
        for rule in self.rules:
            records = self.store.window(f"{identity}:{rule.period}", rule.period * 1000, now)
            remaining[rule.label] = max(0, rule.requests - sum(r.count for r in records))
        return remaining


class RateLimiterManager:
    """Holds one RateLimiter per provider and runs the periodic sweep."""

    def __init__(self, store_factory: Callable[[], RateLimitStore] = InMemoryRateLimitStore, clock: Callable[[], float] = _wall_clock_ms):
        self._limiters: Dict[str, RateLimiter] = {}
        self._store_factory = store_factory
        self._clock = clock
        self._cleanup_task: Optional[asyncio.Task] = None

    def register(self, provider: str, rules: Iterable[RateLimitRule]) -> RateLimiter:
        limiter = RateLimiter(rules, store=self._store_factory(), clock=self._clock)
        self._limiters[provider] = limiter
        return limiter

    def get(self, provider: str) -> Optional[RateLimiter]:
        return self._limiters.get(provider)

    def check_limit(self, provider: str, identity: str) -> None:
        """Providers without registered rules are unlimited."""
        limiter = self._limiters.get(provider)
        if limiter is not None:
            limiter.check_limit(identity)

    def reset_user(self, identity: str) -> None:
        for limiter in self._limiters.values():
            limiter.reset(identity)

    def get_remaining_requests(self, provider: str, identity: str) -> Dict[str, int]:
        limiter = self._limiters.get(provider)
        return limiter.get_remaining_requests(identity) if limiter else {}

    def cleanup(self) -> int:
        removed = sum(limiter.cleanup() for limiter in self._limiters.values())
        if removed:
            logger.debug("Rate limit records swept", removed=removed)
        return removed

    def start_cleanup_task(self, interval: float) -> asyncio.Task:
        """Sweep expired records every interval seconds on the running loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval))
        return self._cleanup_task

    async def stop_cleanup_task(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup()

"""Per-domain request rate limiting.

Each hostname gets its own window of request timestamps. ``check`` is a
synchronous admission test; ``wait_for``/``execute`` sleep until admitted;
``enqueue`` adds a FIFO queue with per-item retry and backoff on top; and
``batch_process`` fans a list of URLs out with bounded concurrency.

State is only mutated between awaits, so the limiter is safe to share across
tasks on one event loop without locks.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, TypeVar
from urllib.parse import urlparse

import structlog

from pageschema.errors import ErrorCode, PageSchemaError

if TYPE_CHECKING:
    from pageschema.config import RateLimitSettings
    from pageschema.protocols import ProgressObserver

log = structlog.get_logger()

T = TypeVar("T")

MAX_EXPONENTIAL_BACKOFF = 30.0
MAX_LINEAR_BACKOFF = 10.0
UNKNOWN_DOMAIN = "unknown"


def domain_of(url: str) -> str:
    """Return the hostname of ``url``, or ``'unknown'`` if it has none."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return UNKNOWN_DOMAIN
    return hostname or UNKNOWN_DOMAIN


# ---------------------------------------------------------------------------
# Config and state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Immutable limiter configuration. Durations in seconds."""

    max_requests: int = 10
    window: float = 60.0
    strategy: Literal["sliding", "fixed"] = "sliding"
    backoff: Literal["exponential", "linear"] = "exponential"
    max_retries: int = 3
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be > 0, got {self.max_requests}")
        if self.window <= 0:
            raise ValueError(f"window must be > 0, got {self.window}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> RateLimitConfig:
        return cls(
            max_requests=settings.max_requests,
            window=settings.window_seconds,
            strategy=settings.strategy,
            backoff=settings.backoff,
            max_retries=settings.max_retries,
            enabled=settings.enabled,
        )


@dataclass(slots=True)
class DomainState:
    requests: list[float] = field(default_factory=list)
    retry_count: int = 0
    last_request: float = 0.0
    window_start: float = 0.0


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    wait: float = 0.0  # Seconds until the next slot frees up
    retry_after: float | None = None  # Clock value at which to retry


@dataclass(slots=True)
class RateLimitStats:
    total_requests: int = 0
    throttled_requests: int = 0
    retries: int = 0
    failures: int = 0


@dataclass(slots=True)
class _QueueItem:
    url: str
    fn: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]
    attempts: int = 0


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._domains: dict[str, DomainState] = {}
        self._queue: deque[_QueueItem] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._stats = RateLimitStats()

    def _state(self, domain: str) -> DomainState:
        state = self._domains.get(domain)
        if state is None:
            state = self._domains[domain] = DomainState()
        return state

    def check(self, url: str) -> RateLimitDecision:
        """Admit a request for ``url`` now, or report how long to wait.

        An admitted request is recorded against its domain immediately.
        """
        if not self.config.enabled:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        state = self._state(domain_of(url))
        window = self.config.window

        if self.config.strategy == "fixed":
            if now - state.window_start >= window:
                state.window_start = now
                state.requests.clear()
            oldest = state.window_start
        else:
            cutoff = now - window
            state.requests = [t for t in state.requests if t > cutoff]
            oldest = state.requests[0] if state.requests else now

        if len(state.requests) >= self.config.max_requests:
            wait = max(0.0, window - (now - oldest))
            self._stats.throttled_requests += 1
            return RateLimitDecision(allowed=False, wait=wait, retry_after=now + wait)

        state.requests.append(now)
        state.last_request = now
        self._stats.total_requests += 1
        return RateLimitDecision(allowed=True)

    async def wait_for(self, url: str) -> None:
        """Sleep until ``url``'s domain has a free slot, then take it."""
        while True:
            decision = self.check(url)
            if decision.allowed:
                return
            log.debug("rate_limit_wait", domain=domain_of(url), wait=decision.wait)
            await self._sleep(decision.wait)

    async def execute(self, url: str, fn: Callable[[], Awaitable[T]]) -> T:
        await self.wait_for(url)
        return await fn()

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def _backoff(self, attempts: int) -> float:
        if self.config.backoff == "linear":
            return min(1.0 * attempts, MAX_LINEAR_BACKOFF)
        return min(1.0 * 2**attempts, MAX_EXPONENTIAL_BACKOFF)

    async def enqueue(self, url: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` through the FIFO queue, retrying it on failure.

        Items run one at a time in submission order. A failing item is
        retried after a backoff until it has failed ``max_retries`` times,
        at which point its error is raised here and the queue moves on.
        """
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.append(_QueueItem(url=url, fn=fn, future=future))
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        while self._queue:
            item = self._queue[0]
            if item.future.done():
                self._queue.popleft()
                continue
            try:
                await self.wait_for(item.url)
                result = await item.fn()
            except Exception as exc:
                item.attempts += 1
                state = self._state(domain_of(item.url))
                state.retry_count += 1
                if item.attempts >= self.config.max_retries:
                    log.warning(
                        "rate_limit_queue_item_failed",
                        url=item.url,
                        attempts=item.attempts,
                        error=str(exc),
                    )
                    self._stats.failures += 1
                    self._finish(item, exc=exc)
                else:
                    self._stats.retries += 1
                    await self._sleep(self._backoff(item.attempts))
                continue
            self._finish(item, result=result)

    def _finish(
        self, item: _QueueItem, *, result: Any = None, exc: Exception | None = None
    ) -> None:
        if self._queue and self._queue[0] is item:
            self._queue.popleft()
        if item.future.done():
            return
        if exc is not None:
            item.future.set_exception(exc)
        else:
            item.future.set_result(result)

    def get_queue_size(self) -> int:
        return len(self._queue)

    def clear_queue(self) -> None:
        """Reject every pending queued item."""
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(
                    PageSchemaError(
                        code=ErrorCode.QUEUE_CLEARED,
                        message="Queue cleared",
                        suggestion="Resubmit the request.",
                        recoverable=True,
                    )
                )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def batch_process(
        self,
        urls: list[str],
        fn: Callable[[str], Awaitable[T]],
        *,
        concurrency: int = 3,
        progress: ProgressObserver | None = None,
    ) -> list[T | dict[str, str]]:
        """Run ``fn`` for every URL, at most ``concurrency`` at a time.

        Results are returned in input order. A URL whose call raises gets an
        ``{"error": ..., "url": ...}`` entry instead of a result.
        """
        results: list[T | dict[str, str]] = [{"error": "not processed", "url": u} for u in urls]
        semaphore = asyncio.Semaphore(max(1, concurrency))
        completed = 0

        async def run(index: int, url: str) -> None:
            nonlocal completed
            async with semaphore:
                try:
                    results[index] = await self.execute(url, lambda: fn(url))
                except Exception as exc:
                    log.warning("batch_item_failed", url=url, error=str(exc))
                    results[index] = {"error": str(exc), "url": url}
                completed += 1
                if progress is not None:
                    progress.on_progress(url, completed, len(urls))

        await asyncio.gather(*(run(i, url) for i, url in enumerate(urls)))
        return results

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_requests": self._stats.total_requests,
            "throttled_requests": self._stats.throttled_requests,
            "retries": self._stats.retries,
            "failures": self._stats.failures,
            "queue_size": len(self._queue),
            "domains": len(self._domains),
        }

    def get_domain_stats(self, domain: str) -> dict[str, Any] | None:
        state = self._domains.get(domain)
        if state is None:
            return None
        cutoff = self._clock() - self.config.window
        active = [t for t in state.requests if t > cutoff]
        return {
            "domain": domain,
            "active_requests": len(active),
            "remaining": max(0, self.config.max_requests - len(active)),
            "retry_count": state.retry_count,
            "last_request": state.last_request,
        }

    def reset_domain(self, domain: str) -> None:
        self._domains.pop(domain, None)

    def reset_all(self) -> None:
        self._domains.clear()
        self._stats = RateLimitStats()

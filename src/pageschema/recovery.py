"""Retry, fallback, partial-batch and circuit breaker helpers.

``ErrorRecovery.retry`` decides retryability by substring match: an error is
retried when any entry of ``retryable_errors`` appears in its code, its class
name or its message. Everything else propagates on the first failure.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from pageschema.config import DEFAULT_RETRYABLE_ERRORS
from pageschema.errors import CircuitOpenError, FallbackError

if TYPE_CHECKING:
    from pageschema.config import RecoverySettings

log = structlog.get_logger()

T = TypeVar("T")
ItemT = TypeVar("ItemT")


def _jittered_delay(base_seconds: float) -> float:
    return base_seconds * random.uniform(0.8, 1.2)


def error_signature(exc: BaseException) -> str:
    """Code, class name and message of ``exc``, for allow-list matching."""
    code = getattr(exc, "code", None)
    parts = [type(exc).__name__, str(exc)]
    if code is not None:
        parts.insert(0, str(code))
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class BatchSuccess(Generic[ItemT, T]):
    item: ItemT
    result: T
    index: int


@dataclass(slots=True)
class BatchFailure(Generic[ItemT]):
    item: ItemT
    error: str
    index: int


@dataclass(slots=True)
class PartialResults(Generic[ItemT, T]):
    successful: list[BatchSuccess[ItemT, T]] = field(default_factory=list)
    failed: list[BatchFailure[ItemT]] = field(default_factory=list)
    total: int = 0
    failure_count: int = 0  # Counted even when failures are not collected

    @property
    def success_count(self) -> int:
        return len(self.successful)


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing; reject calls immediately
    HALF_OPEN = "half_open"  # Next call probes recovery


class CircuitBreaker(Generic[T]):
    """Guards an async callable against repeated failure.

    Closed until ``failure_threshold`` consecutive failures, then open. While
    open every call raises ``CircuitOpenError`` without invoking the wrapped
    function. Once ``reset_timeout`` seconds have passed the next call is let
    through (half-open): success closes the circuit, failure re-opens it.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[T]],
        *,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fn = fn
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failures = 0
        self._opened_at = 0.0

    async def __call__(self, *args: Any, **kwargs: Any) -> T:
        if self.state is CircuitState.OPEN:
            if self._clock() - self._opened_at < self.reset_timeout:
                raise CircuitOpenError()
            self.state = CircuitState.HALF_OPEN
            log.info("circuit_half_open")

        try:
            result = await self._fn(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise

        if self.state is CircuitState.HALF_OPEN:
            log.info("circuit_closed")
        self.state = CircuitState.CLOSED
        self.failures = 0
        return result

    def _record_failure(self) -> None:
        self.failures += 1
        if self.state is CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self._opened_at = self._clock()
            log.warning("circuit_opened", failures=self.failures)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


class ErrorRecovery:
    def __init__(
        self,
        *,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_multiplier: float = 2.0,
        retryable_errors: Sequence[str] = DEFAULT_RETRYABLE_ERRORS,
        enabled: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.retryable_errors = tuple(retryable_errors)
        self.enabled = enabled
        self._sleep = sleep
        self._stats = {"attempts": 0, "retries": 0, "successes": 0, "failures": 0}

    @classmethod
    def from_settings(cls, settings: RecoverySettings) -> ErrorRecovery:
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            backoff_multiplier=settings.backoff_multiplier,
            retryable_errors=settings.retryable_errors,
            enabled=settings.enabled,
        )

    def is_retryable(self, exc: BaseException) -> bool:
        signature = error_signature(exc)
        return any(marker in signature for marker in self.retryable_errors)

    def _delay(self, attempt: int) -> float:
        base = min(self.initial_delay * self.backoff_multiplier**attempt, self.max_delay)
        return _jittered_delay(base)

    async def retry(self, fn: Callable[[], Awaitable[T]], *, max_retries: int | None = None) -> T:
        """Call ``fn`` until it succeeds, retrying retryable errors.

        Makes at most ``max_retries + 1`` attempts. Non-retryable errors and
        the last error after exhaustion are re-raised unchanged.
        """
        retries = self.max_retries if max_retries is None else max_retries
        if not self.enabled:
            retries = 0

        attempt = 0
        while True:
            self._stats["attempts"] += 1
            try:
                result = await fn()
            except Exception as exc:
                if attempt >= retries or not self.is_retryable(exc):
                    self._stats["failures"] += 1
                    raise
                delay = self._delay(attempt)
                log.info("retry_scheduled", attempt=attempt + 1, delay=delay, error=str(exc))
                self._stats["retries"] += 1
                attempt += 1
                await self._sleep(delay)
                continue
            self._stats["successes"] += 1
            return result

    async def batch_with_partial_results(
        self,
        items: Sequence[ItemT],
        fn: Callable[[ItemT, int], Awaitable[T]],
        *,
        continue_on_error: bool = True,
        collect_errors: bool = True,
    ) -> PartialResults[ItemT, T]:
        """Process ``items`` one by one, each under ``retry``.

        With ``continue_on_error`` false processing stops after the first
        failure and the partial results so far are returned. With
        ``collect_errors`` false failures are counted but not listed.
        """
        outcome: PartialResults[ItemT, T] = PartialResults(total=len(items))
        for index, item in enumerate(items):
            try:
                result = await self.retry(lambda: fn(item, index))
            except Exception as exc:
                log.warning("batch_item_failed", index=index, error=str(exc))
                outcome.failure_count += 1
                if collect_errors:
                    outcome.failed.append(BatchFailure(item=item, error=str(exc), index=index))
                if not continue_on_error:
                    break
                continue
            outcome.successful.append(BatchSuccess(item=item, result=result, index=index))
        return outcome

    async def with_fallback(
        self,
        fn: Callable[[], Awaitable[T]],
        fallback: Callable[[Exception], Awaitable[T]],
    ) -> T:
        """Run ``fn`` under ``retry``; on failure run ``fallback(error)`` once."""
        try:
            return await self.retry(fn)
        except Exception as primary_error:
            log.info("fallback_invoked", error=str(primary_error))
            try:
                return await fallback(primary_error)
            except Exception as fallback_error:
                raise FallbackError(primary_error, fallback_error) from fallback_error

    def create_circuit_breaker(
        self,
        fn: Callable[..., Awaitable[T]],
        *,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> CircuitBreaker[T]:
        return CircuitBreaker(
            fn, failure_threshold=failure_threshold, reset_timeout=reset_timeout, clock=clock
        )

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        for key in self._stats:
            self._stats[key] = 0

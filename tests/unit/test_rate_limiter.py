"""Unit tests for pageschema.rate_limiter."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from pageschema.config import RateLimitSettings
from pageschema.errors import ErrorCode, PageSchemaError
from pageschema.rate_limiter import RateLimitConfig, RateLimiter, domain_of

if TYPE_CHECKING:
    from tests.conftest import FakeClock

URL = "https://example.com/page"


def _limiter(clock: FakeClock, **overrides: object) -> RateLimiter:
    config = RateLimitConfig(**{"max_requests": 3, "window": 1.0, **overrides})
    return RateLimiter(config, clock=clock, sleep=clock.sleep)


class _Progress:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int]] = []

    def on_progress(self, url: str, completed: int, total: int) -> None:
        self.calls.append((url, completed, total))


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestRateLimitConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [{"max_requests": 0}, {"window": 0}, {"window": -1.0}, {"max_retries": 0}],
    )
    def test_invalid_values_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)

    def test_from_settings(self) -> None:
        config = RateLimitConfig.from_settings(
            RateLimitSettings(max_requests=5, window_seconds=2.5, strategy="fixed")
        )
        assert config.max_requests == 5
        assert config.window == 2.5
        assert config.strategy == "fixed"


class TestDomainOf:
    def test_hostname(self) -> None:
        assert domain_of("https://Example.com:8080/x") == "example.com"

    def test_unknown(self) -> None:
        assert domain_of("not a url") == "unknown"


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


class TestCheck:
    def test_sliding_window(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        assert all(limiter.check(URL).allowed for _ in range(3))

        denied = limiter.check(URL)
        assert denied.allowed is False
        assert denied.wait == pytest.approx(1.0)
        assert denied.retry_after == pytest.approx(clock.now + 1.0)

        clock.advance(1.0)
        assert limiter.check(URL).allowed is True

    def test_sliding_window_frees_oldest_first(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        limiter.check(URL)
        clock.advance(0.6)
        limiter.check(URL)
        limiter.check(URL)
        assert limiter.check(URL).wait == pytest.approx(0.4)
        clock.advance(0.4)
        assert limiter.check(URL).allowed is True

    def test_fixed_window(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, strategy="fixed")
        for _ in range(3):
            assert limiter.check(URL).allowed
        clock.advance(0.5)
        assert limiter.check(URL).wait == pytest.approx(0.5)
        clock.advance(0.5)
        assert limiter.check(URL).allowed is True

    def test_domains_are_independent(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        for _ in range(3):
            limiter.check(URL)
        assert limiter.check(URL).allowed is False
        assert limiter.check("https://other.org/").allowed is True

    def test_disabled_always_allows(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, enabled=False)
        assert all(limiter.check(URL).allowed for _ in range(10))

    async def test_wait_for_sleeps_until_slot(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        for _ in range(3):
            await limiter.wait_for(URL)
        await limiter.wait_for(URL)
        assert clock.sleeps == [pytest.approx(1.0)]

    async def test_execute_returns_result(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)

        async def fn() -> str:
            return "ok"

        assert await limiter.execute(URL, fn) == "ok"
        assert limiter.get_stats()["total_requests"] == 1


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class TestEnqueue:
    async def test_retries_with_exponential_backoff(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise RuntimeError("boom")
            return "done"

        assert await limiter.enqueue(URL, flaky) == "done"
        assert calls == 3
        assert clock.sleeps == [2.0, 4.0]
        assert limiter.get_stats()["retries"] == 2

    async def test_linear_backoff(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100, backoff="linear")
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise RuntimeError("boom")
            return "done"

        await limiter.enqueue(URL, flaky)
        assert clock.sleeps == [1.0, 2.0]

    async def test_gives_up_after_max_retries(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        calls = 0

        async def broken() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("always")

        with pytest.raises(RuntimeError, match="always"):
            await limiter.enqueue(URL, broken)
        assert calls == 3
        assert limiter.get_stats()["failures"] == 1
        assert limiter.get_domain_stats("example.com")["retry_count"] == 3

    async def test_fifo_order(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        order: list[int] = []

        def job(n: int):
            async def run() -> int:
                order.append(n)
                return n

            return run

        results = await asyncio.gather(*(limiter.enqueue(URL, job(n)) for n in range(4)))
        assert results == [0, 1, 2, 3]
        assert order == [0, 1, 2, 3]
        assert limiter.get_queue_size() == 0

    async def test_clear_queue_rejects_pending(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        release = asyncio.Event()

        async def blocked() -> str:
            await release.wait()
            return "late"

        first = asyncio.create_task(limiter.enqueue(URL, blocked))
        second = asyncio.create_task(limiter.enqueue(URL, blocked))
        for _ in range(5):
            await asyncio.sleep(0)
        assert limiter.get_queue_size() == 2

        limiter.clear_queue()
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        for result in results:
            assert isinstance(result, PageSchemaError)
            assert result.code == ErrorCode.QUEUE_CLEARED
        assert limiter.get_queue_size() == 0


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


class TestBatchProcess:
    async def test_order_errors_and_progress(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        urls = [f"https://example.com/{n}" for n in range(5)]
        progress = _Progress()

        async def fn(url: str) -> str:
            if url.endswith("/3"):
                raise RuntimeError("bad page")
            return url.upper()

        results = await limiter.batch_process(urls, fn, concurrency=2, progress=progress)
        assert results[0] == "HTTPS://EXAMPLE.COM/0"
        assert results[3] == {"error": "bad page", "url": "https://example.com/3"}
        assert len(results) == 5
        assert sorted(c for _, c, _ in progress.calls) == [1, 2, 3, 4, 5]
        assert all(total == 5 for _, _, total in progress.calls)

    async def test_concurrency_bound(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, max_requests=100)
        active = peak = 0

        async def fn(url: str) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            active -= 1

        await limiter.batch_process([f"{URL}/{n}" for n in range(6)], fn, concurrency=2)
        assert peak == 2

    async def test_empty(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)

        async def fn(url: str) -> str:
            return url

        assert await limiter.batch_process([], fn) == []


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class TestStats:
    def test_domain_stats_and_reset(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        limiter.check(URL)
        limiter.check(URL)
        stats = limiter.get_domain_stats("example.com")
        assert stats is not None
        assert stats["active_requests"] == 2
        assert stats["remaining"] == 1

        limiter.reset_domain("example.com")
        assert limiter.get_domain_stats("example.com") is None

    def test_reset_all(self, clock: FakeClock) -> None:
        limiter = _limiter(clock)
        for _ in range(4):
            limiter.check(URL)
        assert limiter.get_stats()["throttled_requests"] == 1
        limiter.reset_all()
        assert limiter.get_stats() == {
            "total_requests": 0,
            "throttled_requests": 0,
            "retries": 0,
            "failures": 0,
            "queue_size": 0,
            "domains": 0,
        }

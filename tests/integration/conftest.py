"""Integration test fixtures.

Provides a fully wired GeneratorContext around a real httpx client (mocked
per test with respx) and a fake clock, so retries, backoff and rate limiting
run without real waiting.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import httpx
import pytest

from pageschema.cache import CacheManager
from pageschema.config import Settings
from pageschema.fetcher import Fetcher
from pageschema.generator import URLSchemaGenerator
from pageschema.rate_limiter import RateLimitConfig, RateLimiter
from pageschema.recovery import ErrorRecovery
from pageschema.schema_cache import SchemaCache
from pageschema.state import GeneratorContext

if TYPE_CHECKING:
    from tests.conftest import FakeClock


@pytest.fixture()
async def context(clock: FakeClock) -> AsyncIterator[GeneratorContext]:
    """GeneratorContext with in-memory caches and no real sleeping."""
    settings = Settings()
    async with httpx.AsyncClient(follow_redirects=True) as client:
        yield GeneratorContext(
            settings=settings,
            fetcher=Fetcher(client, settings.fetch, sleep=clock.sleep),
            cache=CacheManager(clock=clock),
            rate_limiter=RateLimiter(
                RateLimitConfig(max_requests=100, window=60.0), clock=clock, sleep=clock.sleep
            ),
            recovery=ErrorRecovery(sleep=clock.sleep),
            schema_cache=SchemaCache(clock=clock),
        )


@pytest.fixture()
def generator(context: GeneratorContext) -> URLSchemaGenerator:
    return URLSchemaGenerator(context)

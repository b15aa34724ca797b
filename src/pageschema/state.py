"""Generator context container.

A GeneratorContext bundles every collaborator the generator needs: the
fetcher and its httpx client, the result cache, the schema cache, the rate
limiter, the error recovery policy and the detector/extractor/optimizer
strategies. Pass one to URLSchemaGenerator explicitly, or use
get_default_context() for the lazily built process-wide default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from pageschema.cache import CacheManager
from pageschema.config import Settings
from pageschema.detector import SchemaDetector
from pageschema.extractors import DataExtractor
from pageschema.fetcher import Fetcher, build_http_client
from pageschema.optimizer import LLMOptimizer
from pageschema.rate_limiter import RateLimitConfig, RateLimiter
from pageschema.recovery import ErrorRecovery
from pageschema.schema_cache import SchemaCache

if TYPE_CHECKING:
    import httpx

    from pageschema.protocols import (
        CacheProtocol,
        DataExtractorProtocol,
        FetcherProtocol,
        OptimizerProtocol,
        SchemaDetectorProtocol,
    )

log = structlog.get_logger()


@dataclass
class GeneratorContext:
    """Holds all shared runtime state. Passed to URLSchemaGenerator."""

    settings: Settings
    fetcher: FetcherProtocol
    cache: CacheProtocol
    rate_limiter: RateLimiter
    recovery: ErrorRecovery
    schema_cache: SchemaCache = field(default_factory=SchemaCache)
    detector: SchemaDetectorProtocol = field(default_factory=SchemaDetector)
    extractor: DataExtractorProtocol = field(default_factory=DataExtractor)
    optimizer: OptimizerProtocol = field(default_factory=LLMOptimizer)

    # Set only when this context created the client and must close it.
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None


def build_context(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> GeneratorContext:
    """Wire a context from settings.

    When ``http_client`` is supplied the caller keeps ownership of it and
    ``aclose()`` leaves it open.
    """
    settings = settings or Settings()
    owned_client = None
    if http_client is None:
        http_client = owned_client = build_http_client(settings.fetch)

    return GeneratorContext(
        settings=settings,
        fetcher=Fetcher(http_client, settings.fetch),
        cache=CacheManager.from_settings(settings.cache),
        rate_limiter=RateLimiter(RateLimitConfig.from_settings(settings.rate_limit)),
        recovery=ErrorRecovery.from_settings(settings.recovery),
        http_client=owned_client,
    )


_default_context: GeneratorContext | None = None


def get_default_context() -> GeneratorContext:
    """Return the process-wide default context, building it on first use."""
    global _default_context
    if _default_context is None:
        _default_context = build_context()
        log.debug("default_context_created")
    return _default_context


async def reset_default_context() -> None:
    """Tear down the default context. The next get_default_context() rebuilds it."""
    global _default_context
    context, _default_context = _default_context, None
    if context is not None:
        await context.aclose()

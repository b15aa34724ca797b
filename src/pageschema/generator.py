"""URL schema generator: the pipeline that ties every component together.

    URL -> cache lookup -> rate-limited fetch -> parse -> analyze -> detect
        -> extract -> related schemas -> optimizers -> validation
        -> suggestions -> cache store -> result

``generate_from_url`` never raises for expected failures. Bad input, fetch
errors and unexpected pipeline errors all come back as a GenerationFailure
carrying an error message and an actionable suggestion. Failures are never
cached.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import structlog
from pydantic import ValidationError

from pageschema.analyzer import analyze
from pageschema.cache import generate_key
from pageschema.errors import ErrorCode, PageSchemaError
from pageschema.fetcher import filter_urls, parse_sitemap
from pageschema.models.page import ParsedPage
from pageschema.models.result import (
    GenerationFailure,
    GenerationOptions,
    GenerationOutcome,
    GenerationResult,
    PageMetadata,
)
from pageschema.models.schema import Schema, SchemaType, schema_family
from pageschema.parser import parse_html
from pageschema.related import build_relationships, detect_related
from pageschema.state import get_default_context
from pageschema.validator import validate_schema

if TYPE_CHECKING:
    from pageschema.protocols import CacheProtocol, ProgressObserver
    from pageschema.state import GeneratorContext

log = structlog.get_logger()

MAX_SUGGESTIONS = 5
SITEMAP_SUGGESTION = "Check that the sitemap URL is reachable and returns sitemap XML"


def _is_http_url(url: object) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _invalid_url(url: object) -> GenerationFailure:
    return GenerationFailure(
        url=url if isinstance(url, str) else "",
        error="Invalid URL provided",
        suggestion="Provide an absolute http:// or https:// URL",
        error_code=ErrorCode.INVALID_INPUT,
    )


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


def _missing_offer_price(schema: Schema) -> bool:
    offers = schema.get("offers")
    return not isinstance(offers, dict) or not offers.get("price")


# (predicate that flags a gap, message) per family; checked in order.
_SuggestionRule = tuple[Callable[[Schema], bool], str]

SUGGESTION_RULES: dict[SchemaType, tuple[_SuggestionRule, ...]] = {
    SchemaType.PRODUCT: (
        (_missing_offer_price, "Product schema: Add price information for better visibility"),
        (lambda s: not s.get("brand"), "Product schema: Add brand information"),
        (lambda s: not s.get("aggregateRating"), "Product schema: Consider adding ratings"),
    ),
    SchemaType.ARTICLE: (
        (lambda s: not s.get("author"), "Article schema: Add author information"),
        (lambda s: not s.get("datePublished"), "Article schema: Add publication date"),
        (lambda s: not s.get("publisher"), "Article schema: Add publisher information"),
    ),
    SchemaType.LOCAL_BUSINESS: (
        (lambda s: not s.get("address"), "Business schema: Add complete address"),
        (lambda s: not s.get("telephone"), "Business schema: Add phone number"),
        (lambda s: not s.get("openingHours"), "Business schema: Add opening hours"),
    ),
    SchemaType.EVENT: (
        (lambda s: not s.get("location"), "Event schema: Add event location"),
        (lambda s: not s.get("startDate"), "Event schema: Add start date/time"),
        (lambda s: not s.get("offers"), "Event schema: Consider adding ticket information"),
    ),
    SchemaType.RECIPE: (
        (lambda s: not s.get("recipeIngredient"), "Recipe schema: Add an ingredients list"),
        (lambda s: not s.get("recipeInstructions"), "Recipe schema: Add instructions"),
    ),
    SchemaType.VIDEO: (
        (lambda s: not s.get("thumbnailUrl"), "Video schema: Add a thumbnail URL"),
        (lambda s: not s.get("uploadDate"), "Video schema: Add the upload date"),
    ),
    SchemaType.WEB_PAGE: (),
}


def build_suggestions(schemas: Sequence[Schema], parsed: ParsedPage) -> list[str]:
    """Improvement hints for the generated schemas, at most five."""
    suggestions: list[str] = []
    if not schemas:
        return suggestions

    primary = schemas[0]
    if primary.get("@type") == SchemaType.WEB_PAGE:
        suggestions.append(
            "Consider adding a more specific schema type (Product, Article, LocalBusiness, etc.)"
        )
    if not primary.get("image") and parsed.images:
        suggestions.append("Add images from page to improve schema visibility")
    if not primary.get("description") and parsed.description:
        suggestions.append("Add description to improve search result appearance")

    for schema in schemas:
        family = schema_family(schema.get("@type"))
        if family is None:
            continue
        for is_missing, message in SUGGESTION_RULES[family]:
            if is_missing(schema) and message not in suggestions:
                suggestions.append(message)
    return suggestions[:MAX_SUGGESTIONS]


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class URLSchemaGenerator:
    def __init__(self, context: GeneratorContext) -> None:
        self._context = context

    async def generate_from_url(
        self,
        url: str,
        options: GenerationOptions | None = None,
        *,
        cache: CacheProtocol | None = None,
    ) -> GenerationOutcome:
        """Generate schemas for one URL.

        ``cache`` overrides the context's result cache for this call.
        """
        return await self._generate(url, options or GenerationOptions(), cache=cache)

    async def generate_from_urls(
        self,
        urls: Sequence[str],
        options: GenerationOptions | None = None,
        *,
        progress: ProgressObserver | None = None,
    ) -> list[GenerationOutcome]:
        """Generate schemas for many URLs. Results keep input order."""
        if not urls:
            return []
        options = options or GenerationOptions()
        concurrency = options.concurrency or self._context.settings.generator.concurrency

        async def run(url: str) -> GenerationOutcome:
            return await self._generate(url, options, admitted=True, retry=options.retry_on_fail)

        # batch_process already waits on the rate limiter for each URL.
        raw = await self._context.rate_limiter.batch_process(
            list(urls), run, concurrency=concurrency, progress=progress
        )
        return [_as_outcome(item) for item in raw]

    async def generate_from_sitemap(
        self,
        sitemap_url: str,
        options: GenerationOptions | None = None,
        *,
        progress: ProgressObserver | None = None,
    ) -> list[GenerationOutcome]:
        """Generate schemas for every ``<loc>`` in a sitemap.

        A sitemap that cannot be fetched yields a single failure result.
        """
        options = options or GenerationOptions()
        if not _is_http_url(sitemap_url):
            return [_invalid_url(sitemap_url)]

        try:
            xml = await self._context.rate_limiter.execute(
                sitemap_url,
                lambda: self._context.fetcher.fetch(sitemap_url, options.fetch_options),
            )
        except PageSchemaError as exc:
            log.warning("sitemap_failed", url=sitemap_url, error=exc.message)
            return [
                GenerationFailure(
                    url=sitemap_url,
                    error=f"Sitemap processing failed: {exc.message}",
                    suggestion=SITEMAP_SUGGESTION,
                    error_code=ErrorCode.SITEMAP_FAILED,
                )
            ]

        urls = parse_sitemap(xml)
        if options.filter:
            urls = filter_urls(urls, options.filter)
        log.info("sitemap_parsed", url=sitemap_url, urls=len(urls), filter=options.filter)
        return await self.generate_from_urls(urls, options, progress=progress)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _generate(
        self,
        url: str,
        options: GenerationOptions,
        *,
        cache: CacheProtocol | None = None,
        admitted: bool = False,
        retry: bool = False,
    ) -> GenerationOutcome:
        if not _is_http_url(url):
            return _invalid_url(url)

        cache = cache if cache is not None else self._context.cache
        cache_key = generate_key(url, options.target_types, options.optimize_for)
        if options.use_cache:
            hit = self._cached_result(cache, cache_key)
            if hit is not None:
                return hit

        async def build() -> GenerationResult:
            return await self._build(url, options, admitted=admitted)

        try:
            result = await (self._context.recovery.retry(build) if retry else build())
        except PageSchemaError as exc:
            log.info("generation_failed", url=url, code=exc.code, error=exc.message)
            return GenerationFailure(
                url=url, error=exc.message, suggestion=exc.suggestion, error_code=exc.code
            )
        except Exception as exc:
            log.warning("generation_failed", url=url, exc_info=True)
            return GenerationFailure(url=url, error=str(exc) or type(exc).__name__)

        if options.use_cache:
            cache.set(cache_key, result.model_dump(mode="json"), options.cache_ttl)
        return result

    def _cached_result(self, cache: CacheProtocol, key: str) -> GenerationResult | None:
        payload = cache.get(key)
        if payload is None:
            return None
        try:
            cached = GenerationResult.model_validate(payload)
        except ValidationError:
            log.warning("cache_entry_invalid", key=key, exc_info=True)
            return None
        return cached.model_copy(update={"cached": True, "cache_key": key})

    async def _build(
        self, url: str, options: GenerationOptions, *, admitted: bool
    ) -> GenerationResult:
        context = self._context

        async def fetch() -> str:
            return await context.fetcher.fetch(url, options.fetch_options)

        html = await (fetch() if admitted else context.rate_limiter.execute(url, fetch))

        parsed = parse_html(html, url)
        analysis = analyze(parsed.content)
        detections = context.detector.detect(parsed, options.target_types or None)
        top = detections[0]

        primary = context.extractor.extract(parsed, top.type)
        if options.include_related:
            schemas = build_relationships(primary, detect_related(primary, parsed, analysis))
        else:
            schemas = [primary]

        optimized = self._optimize(schemas, options.optimize_for)
        validation = None
        if options.validate_with_google:
            validation = validate_schema(optimized[0]).model_dump(mode="json")

        log.info(
            "generation_complete",
            url=url,
            detected_type=top.type,
            confidence=top.confidence,
            schemas=len(optimized),
        )
        return GenerationResult(
            url=url,
            detected_type=top.type,
            confidence=top.confidence,
            schemas=optimized,
            metadata=PageMetadata(
                title=parsed.title,
                description=parsed.description,
                images=parsed.images,
                existing_schemas=len(parsed.existing),
            ),
            suggestions=build_suggestions(schemas, parsed),
            validation=validation,
        )

    def _optimize(self, schemas: list[Schema], targets: list[str]) -> list[Schema]:
        """Run the optimizer over every schema. A failing schema is kept as is."""
        if not targets:
            return schemas
        context = self._context
        cache_options: dict[str, Any] = {"target": sorted(targets)}
        voice = "voice" in targets

        optimized: list[Schema] = []
        for schema in schemas:
            cached = context.schema_cache.get(schema, cache_options)
            if cached is not None:
                optimized.append(cached)
                continue
            try:
                result = context.optimizer.optimize_for_llm(
                    schema,
                    target=targets,
                    semantic_enhancement=True,
                    voice_optimization=voice,
                )
            except Exception:
                log.warning("optimizer_failed", schema_type=schema.get("@type"), exc_info=True)
                optimized.append(schema)
                continue
            context.schema_cache.set(schema, cache_options, result)
            optimized.append(result)
        return optimized


def _as_outcome(item: GenerationOutcome | dict[str, str]) -> GenerationOutcome:
    if isinstance(item, (GenerationResult, GenerationFailure)):
        return item
    return GenerationFailure(url=item.get("url", ""), error=item.get("error", "unknown error"))


# ---------------------------------------------------------------------------
# Default-context helpers
# ---------------------------------------------------------------------------


async def generate_from_url(
    url: str,
    options: GenerationOptions | None = None,
    *,
    cache: CacheProtocol | None = None,
) -> GenerationOutcome:
    return await URLSchemaGenerator(get_default_context()).generate_from_url(
        url, options, cache=cache
    )


async def generate_from_urls(
    urls: Sequence[str],
    options: GenerationOptions | None = None,
    *,
    progress: ProgressObserver | None = None,
) -> list[GenerationOutcome]:
    return await URLSchemaGenerator(get_default_context()).generate_from_urls(
        urls, options, progress=progress
    )


async def generate_from_sitemap(
    sitemap_url: str,
    options: GenerationOptions | None = None,
    *,
    progress: ProgressObserver | None = None,
) -> list[GenerationOutcome]:
    return await URLSchemaGenerator(get_default_context()).generate_from_sitemap(
        sitemap_url, options, progress=progress
    )

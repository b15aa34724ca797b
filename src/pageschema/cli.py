"""Command-line entrypoint.

Responsibilities (and nothing more):
- Configure structlog (to stderr, so stdout carries only JSON results)
- Build a GeneratorContext from Settings and close it on exit
- Translate options into GenerationOptions and print the results

Per-URL failures are part of the output, not the exit status. Only an
uncaught error makes the process exit non-zero.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sys
from collections.abc import Awaitable, Callable, Sequence
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import urlparse

import click
import structlog

from pageschema import __version__
from pageschema.config import Settings
from pageschema.generator import URLSchemaGenerator
from pageschema.models.result import (
    FetchOptions,
    GenerationFailure,
    GenerationOptions,
    GenerationResult,
)
from pageschema.state import build_context

if TYPE_CHECKING:
    from pageschema.models.result import GenerationOutcome

T = TypeVar("T")

_SLUG_RE = re.compile(r"[^A-Za-z0-9]+")


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once per invocation before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _StderrProgress:
    def on_progress(self, url: str, completed: int, total: int) -> None:
        click.echo(f"[{completed}/{total}] {url}", err=True)


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _dump(outcome: GenerationOutcome) -> dict[str, Any]:
    return outcome.model_dump(mode="json")


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _output_name(index: int, url: str) -> str:
    parsed = urlparse(url)
    slug = _SLUG_RE.sub("-", f"{parsed.netloc}{parsed.path}").strip("-")[:80]
    return f"{index:03d}-{slug or 'page'}.json"


def read_url_file(path: Path) -> list[str]:
    """URLs from a text file, one per line. Blank lines and ``#`` comments are skipped."""
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def _run_with_generator(
    settings: Settings, fn: Callable[[URLSchemaGenerator], Awaitable[T]]
) -> T:
    async def _main() -> T:
        context = build_context(settings)
        try:
            return await fn(URLSchemaGenerator(context))
        finally:
            await context.aclose()

    return asyncio.run(_main())


def _write_results(results: Sequence[GenerationOutcome], output_dir: Path | None) -> None:
    succeeded = sum(1 for r in results if isinstance(r, GenerationResult))
    if output_dir is None:
        click.echo(_to_json([_dump(r) for r in results]))
    else:
        output_dir.mkdir(parents=True, exist_ok=True)
        for index, result in enumerate(results, start=1):
            path = output_dir / _output_name(index, result.url)
            path.write_text(_to_json(_dump(result)), encoding="utf-8")
        click.echo(f"Wrote {len(results)} result file(s) to {output_dir}", err=True)
    click.echo(f"{succeeded}/{len(results)} URL(s) succeeded", err=True)


def generation_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every generate-* command."""

    @click.option("--type", "-t", "types", help="Comma-separated schema type hints.")
    @click.option("--optimize", help="Comma-separated optimizer targets (chatgpt,voice,...).")
    @click.option("--validate", is_flag=True, help="Attach a validation report.")
    @click.option("--no-related", is_flag=True, help="Skip breadcrumb/website/related schemas.")
    @click.option("--no-cache", is_flag=True, help="Bypass the result cache.")
    @click.option("--timeout", type=float, default=None, help="Fetch timeout in seconds.")
    @wraps(fn)
    def wrapper(
        *args: Any,
        types: str | None,
        optimize: str | None,
        validate: bool,
        no_related: bool,
        no_cache: bool,
        timeout: float | None,
        **kwargs: Any,
    ) -> Any:
        options = GenerationOptions(
            target_types=_split(types),
            optimize_for=_split(optimize),
            validate_with_google=validate,
            include_related=not no_related,
            use_cache=not no_cache,
            fetch_options=FetchOptions(timeout=timeout),
        )
        return fn(*args, options=options, **kwargs)

    return wrapper


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(__version__, prog_name="pageschema")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.option("--log-format", type=click.Choice(["json", "text"]), default=None)
@click.pass_context
def main(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """Generate schema.org JSON-LD from web pages."""
    settings = Settings()
    overrides = {}
    if log_level:
        overrides["level"] = log_level.upper()
    if log_format:
        overrides["format"] = log_format
    if overrides:
        settings.logging = settings.logging.model_copy(update=overrides)
    _setup_logging(settings)
    ctx.obj = settings


@main.command("generate-url")
@click.argument("url")
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write JSON here."
)
@generation_options
@click.pass_obj
def generate_url(
    settings: Settings, url: str, output: Path | None, options: GenerationOptions
) -> None:
    """Generate schemas for a single URL."""
    result = _run_with_generator(settings, lambda gen: gen.generate_from_url(url, options))
    payload = _to_json(_dump(result))
    if output is None:
        click.echo(payload)
    else:
        output.write_text(payload, encoding="utf-8")
        click.echo(f"Saved to: {output}", err=True)
    if isinstance(result, GenerationFailure):
        click.echo(f"Failed: {result.error} ({result.suggestion})", err=True)


@main.command("generate-batch")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--concurrency", "-c", type=click.IntRange(min=1), default=None)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write one JSON file per URL instead of printing a list.",
)
@click.option("--retry", is_flag=True, help="Retry failed URLs with backoff.")
@generation_options
@click.pass_obj
def generate_batch(
    settings: Settings,
    file: Path,
    concurrency: int | None,
    output_dir: Path | None,
    retry: bool,
    options: GenerationOptions,
) -> None:
    """Generate schemas for every URL listed in FILE."""
    urls = read_url_file(file)
    if not urls:
        raise click.UsageError(f"No URLs found in {file}")
    options = options.model_copy(update={"concurrency": concurrency, "retry_on_fail": retry})
    results = _run_with_generator(
        settings,
        lambda gen: gen.generate_from_urls(urls, options, progress=_StderrProgress()),
    )
    _write_results(results, output_dir)


@main.command("generate-sitemap")
@click.argument("sitemap_url")
@click.option("--filter", "url_filter", help='URL glob, e.g. "*/products/*".')
@click.option("--concurrency", "-c", type=click.IntRange(min=1), default=None)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Write one JSON file per URL instead of printing a list.",
)
@generation_options
@click.pass_obj
def generate_sitemap(
    settings: Settings,
    sitemap_url: str,
    url_filter: str | None,
    concurrency: int | None,
    output_dir: Path | None,
    options: GenerationOptions,
) -> None:
    """Generate schemas for the pages listed in a sitemap."""
    options = options.model_copy(update={"concurrency": concurrency, "filter": url_filter})
    results = _run_with_generator(
        settings,
        lambda gen: gen.generate_from_sitemap(sitemap_url, options, progress=_StderrProgress()),
    )
    _write_results(results, output_dir)

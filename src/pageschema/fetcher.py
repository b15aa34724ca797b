"""HTTP page fetcher.

All network I/O goes through a single Fetcher instance. The Fetcher receives
an httpx.AsyncClient via constructor injection; whoever builds the
GeneratorContext owns the client lifecycle.

Retry policy: network errors, 5xx responses and empty bodies are retried
with exponential backoff. Timeouts and 4xx responses fail immediately.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from html import unescape
from typing import TYPE_CHECKING

import httpx
import structlog

from pageschema.config import FetchSettings
from pageschema.errors import ErrorCode, PageSchemaError

if TYPE_CHECKING:
    from pageschema.models.result import FetchOptions

log = structlog.get_logger()

_LOC_RE = re.compile(r"<loc>\s*(.*?)\s*</loc>", re.I | re.S)


def build_http_client(settings: FetchSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client."""
    settings = settings or FetchSettings()
    return httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=settings.max_redirects,
        timeout=httpx.Timeout(settings.timeout),
        headers={
            "User-Agent": settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class Fetcher:
    """Fetches page HTML with bounded retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: FetchSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._settings = settings or FetchSettings()
        self._sleep = sleep

    async def fetch(self, url: str, options: FetchOptions | None = None) -> str:
        """GET ``url`` and return the body text.

        Raises PageSchemaError with FETCH_TIMEOUT on timeout, HTTP_CLIENT_ERROR
        on 4xx, and FETCH_FAILED once retries are exhausted.
        """
        timeout = self._settings.timeout
        max_retries = self._settings.max_retries
        headers: dict[str, str] = {}
        if options is not None:
            timeout = options.timeout if options.timeout is not None else timeout
            max_retries = options.max_retries if options.max_retries is not None else max_retries
            headers = options.headers

        attempts = max_retries + 1
        last_error: PageSchemaError | None = None
        for attempt in range(attempts):
            try:
                return await self._fetch_once(url, timeout, headers)
            except PageSchemaError as exc:
                if not exc.recoverable:
                    raise
                last_error = exc
            if attempt < attempts - 1:
                delay = self._settings.backoff_base * 2**attempt
                log.info("fetch_retry", url=url, attempt=attempt + 1, delay=delay)
                await self._sleep(delay)

        assert last_error is not None
        raise PageSchemaError(
            code=ErrorCode.FETCH_FAILED,
            message=f"Failed to fetch URL after {attempts} attempts: {last_error.message}",
            suggestion="Check if URL is accessible and returns valid HTML",
            recoverable=True,
        ) from last_error

    async def _fetch_once(self, url: str, timeout: float, headers: dict[str, str]) -> str:
        try:
            response = await self._client.get(url, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise PageSchemaError(
                code=ErrorCode.FETCH_TIMEOUT,
                message=f"Request timeout after {timeout:g}s fetching {url}",
                suggestion="The site may be slow; try a longer timeout.",
                recoverable=False,
            ) from exc
        except httpx.HTTPError as exc:
            raise PageSchemaError(
                code=ErrorCode.FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The site may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if response.is_client_error:
            raise PageSchemaError(
                code=ErrorCode.HTTP_CLIENT_ERROR,
                message=f"HTTP {response.status_code}: {response.reason_phrase}",
                suggestion="Check that the URL exists and is publicly accessible.",
                recoverable=False,
            )
        if not response.is_success:
            raise PageSchemaError(
                code=ErrorCode.FETCH_FAILED,
                message=f"HTTP {response.status_code}: {response.reason_phrase}",
                suggestion="The site may be temporarily unavailable.",
                recoverable=True,
            )
        if not response.text.strip():
            raise PageSchemaError(
                code=ErrorCode.EMPTY_RESPONSE,
                message="Empty response received",
                suggestion="The page returned no content.",
                recoverable=True,
            )

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text


def parse_sitemap(xml: str) -> list[str]:
    """Return every ``<loc>`` URL in a sitemap document, in order."""
    return [unescape(loc) for loc in _LOC_RE.findall(xml) if loc]


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a sitemap filter glob: ``*`` matches any run, ``?`` one character."""
    return re.compile(re.escape(pattern).replace(r"\*", ".*").replace(r"\?", "."))


def filter_urls(urls: list[str], pattern: str) -> list[str]:
    """Keep the URLs in which ``pattern`` matches anywhere."""
    regex = glob_to_regex(pattern)
    return [url for url in urls if regex.search(url)]

"""Shared test fixtures for the pageschema test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog

PRODUCT_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Wireless Headphones Pro</title>
  <meta name="description" content="Premium noise-cancelling headphones &amp; more">
  <meta property="og:type" content="product">
  <meta property="og:image" content="/img/headphones.jpg">
</head>
<body>
  <main>
    <h1>Wireless Headphones Pro</h1>
    <p>Price: $199.99. Brand: AudioTech. Rating: 4.5 stars (127 reviews)</p>
    <p>In stock. Add to cart today.</p>
    <img src="/img/side.jpg">
  </main>
</body>
</html>
"""

ARTICLE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Understanding Async Python | Dev Journal</title>
  <meta property="og:type" content="article">
  <meta property="og:site_name" content="Dev Journal">
  <meta property="article:published_time" content="2024-03-15T09:30:00Z">
  <meta name="author" content="Jane Doe">
</head>
<body>
  <article>
    <h1>Understanding Async Python</h1>
    <p>By Jane Doe. Published March 15, 2024.</p>
    <p>Event loops schedule coroutines cooperatively.</p>
  </article>
</body>
</html>
"""


class FakeClock:
    """Manually advanced clock with a sleep that advances it instead of waiting."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def product_html() -> str:
    return PRODUCT_HTML


@pytest.fixture()
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """CLI tests reconfigure structlog against a temporary stderr; undo that."""
    yield
    structlog.reset_defaults()

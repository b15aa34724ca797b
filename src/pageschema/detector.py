"""Heuristic schema type detection.

Every supported family is scored independently from weighted indicators
(Open Graph type, metadata keys, text patterns, keywords). Scores are capped
at 1.0 and returned highest first. When nothing scores at least
``MIN_CONFIDENCE`` a ``WebPage`` fallback is placed at the front.
"""

from __future__ import annotations

import re
from collections.abc import Callable

import structlog

from pageschema.models.page import Detection, ParsedPage
from pageschema.models.schema import SchemaType, schema_family

log = structlog.get_logger()

MIN_CONFIDENCE = 0.3
TARGET_TYPE_BOOST = 1.2
FALLBACK_CONFIDENCE = 0.5

_MONTHS = "january|february|march|april|may|june|july|august|september|october|november|december"

_PRICE_PATTERNS = (
    re.compile(r"[$€£]\d+\.?\d*"),
    re.compile(r"\d+\s*(?:usd|eur|gbp)\b"),
    re.compile(r"price[:\s]+\$?\d+"),
    re.compile(r"\d+\.\d{2}"),
)
_PRODUCT_KEYWORDS = (
    "add to cart",
    "buy now",
    "purchase",
    "in stock",
    "out of stock",
    "product details",
    "product description",
    "sku",
    "brand",
    "shipping",
    "delivery",
    "availability",
    "add to bag",
)
_RATING_RE = re.compile(r"\d+\.?\d*\s*(?:stars?|rating)")
_REVIEWS_RE = re.compile(r"\d+\s*reviews?")

_DATE_PATTERNS = (
    re.compile(r"published[:\s]+"),
    re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(rf"(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}"),
)
_BYLINE_RE = re.compile(r"\bby\s+[A-Z][a-z]+\s+[A-Z][a-z]+")
_ARTICLE_KEYWORDS = (
    "read more",
    "continue reading",
    "share this article",
    "related articles",
    "tags:",
    "category:",
    "posted in",
)

_ADDRESS_PATTERNS = (
    re.compile(r"\d+\s+[a-z]+\s+(?:street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr)\b"),
    re.compile(r"\b\d{5}(?:-\d{4})?\b"),
)
_STATE_ZIP_RE = re.compile(r"\b[A-Z]{2}\s+\d{5}\b")
_PHONE_PATTERNS = (
    re.compile(r"\(\d{3}\)\s*\d{3}-\d{4}"),
    re.compile(r"\d{3}-\d{3}-\d{4}"),
    re.compile(r"\+\d{1,3}\s*\d{3}\s*\d{3}\s*\d{4}"),
)
_HOURS_RE = re.compile(r"hours?[:\s]+(?:mon|tue|wed|thu|fri|sat|sun)")
_CLOCK_TIME_RE = re.compile(r"\d{1,2}:\d{2}\s*(?:am|pm)")
_BUSINESS_KEYWORDS = (
    "visit us",
    "our location",
    "directions",
    "contact us",
    "call us",
    "email us",
    "get in touch",
    "store hours",
    "open now",
    "closed",
    "reservations",
    "book now",
)

_EVENT_KEYWORDS = (
    "register now",
    "rsvp",
    "buy tickets",
    "get tickets",
    "event details",
    "venue",
    "location:",
    "when:",
    "where:",
    "join us",
    "attend",
    "conference",
    "workshop",
    "seminar",
)
_EVENT_DATE_RE = re.compile(rf"(?:{_MONTHS})\s+\d{{1,2}}")

_DURATION_RE = re.compile(r"\d+:\d+")

_RECIPE_KEYWORDS = (
    "ingredients",
    "instructions",
    "directions",
    "recipe",
    "prep time",
    "cook time",
    "servings",
    "yield",
    "calories",
    "nutrition",
    "bake",
    "mix",
    "stir",
)
_MEASUREMENT_RE = re.compile(r"\d+\s*(?:cup|tbsp|tsp|oz|lb|gram|ml)")


class _Score:
    """Accumulates a confidence score and its de-duplicated indicators."""

    def __init__(self, schema_type: SchemaType) -> None:
        self.schema_type = schema_type
        self.score = 0.0
        self.indicators: list[str] = []

    def add(self, indicator: str, weight: float) -> None:
        self.score += weight
        if indicator not in self.indicators:
            self.indicators.append(indicator)

    def keywords(self, text: str, keywords: tuple[str, ...], weight: float) -> None:
        for keyword in keywords:
            if keyword in text:
                self.add(f"keyword: {keyword}", weight)

    def detection(self) -> Detection:
        return Detection(
            type=self.schema_type.value,
            confidence=round(min(1.0, self.score), 4),
            indicators=self.indicators,
        )


def _combined(page: ParsedPage, *, with_description: bool = True) -> str:
    if with_description:
        return f"{page.title} {page.description} {page.content}"
    return f"{page.title} {page.content}"


def _detect_product(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.PRODUCT)
    text = _combined(page).lower()
    if page.open_graph.get("type") == "product":
        result.add("og:type=product", 0.4)
    for pattern in _PRICE_PATTERNS:
        if pattern.search(text):
            result.add("price detected", 0.15)
    result.keywords(text, _PRODUCT_KEYWORDS, 0.05)
    if page.meta.get("product:price:amount") or page.meta.get("og:price:amount"):
        result.add("product meta tags", 0.2)
    if _RATING_RE.search(text):
        result.add("rating found", 0.1)
    if _REVIEWS_RE.search(text):
        result.add("reviews found", 0.1)
    return result


def _detect_article(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.ARTICLE)
    original = _combined(page)
    text = original.lower()
    if page.open_graph.get("type") == "article":
        result.add("og:type=article", 0.4)
    if page.meta.get("article:published_time") or page.meta.get("article:author"):
        result.add("article meta tags", 0.3)
    for pattern in _DATE_PATTERNS:
        if pattern.search(text):
            result.add("publication date found", 0.1)
    if _BYLINE_RE.search(original):
        result.add("author name pattern", 0.1)
    if page.meta.get("author") or page.open_graph.get("author"):
        result.add("author meta tag", 0.15)
    result.keywords(text, _ARTICLE_KEYWORDS, 0.05)
    if len(page.content) > 1000:
        result.add("substantial content length", 0.1)
    return result


def _detect_local_business(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.LOCAL_BUSINESS)
    original = _combined(page)
    text = original.lower()
    for pattern in _ADDRESS_PATTERNS:
        if pattern.search(text):
            result.add("address pattern found", 0.15)
    # State abbreviations only survive in the original casing
    if _STATE_ZIP_RE.search(original):
        result.add("address pattern found", 0.15)
    for pattern in _PHONE_PATTERNS:
        if pattern.search(text):
            result.add("phone number found", 0.15)
    if _HOURS_RE.search(text):
        result.add("business hours found", 0.15)
    if _CLOCK_TIME_RE.search(text):
        result.add("time format found", 0.1)
    result.keywords(text, _BUSINESS_KEYWORDS, 0.05)
    if page.meta.get("geo.position") or page.meta.get("latitude") or page.meta.get("longitude"):
        result.add("geo coordinates in meta", 0.2)
    return result


def _detect_event(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.EVENT)
    text = _combined(page, with_description=False).lower()
    if page.open_graph.get("type") == "event":
        result.add("og:type=event", 0.4)
    if page.meta.get("event:start_time") or page.meta.get("event:end_time"):
        result.add("event meta tags", 0.3)
    result.keywords(text, _EVENT_KEYWORDS, 0.08)
    if _EVENT_DATE_RE.search(text):
        result.add("event date pattern", 0.1)
    return result


def _detect_video(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.VIDEO)
    text = page.content.lower()
    if page.open_graph.get("type") in ("video", "video.other", "video.movie"):
        result.add("og:type=video", 0.5)
    if page.meta.get("og:video") or page.meta.get("video:duration"):
        result.add("video meta tags", 0.3)
    if "youtube" in text or "vimeo" in text:
        result.add("video platform detected", 0.2)
    if _DURATION_RE.search(text):
        result.add("duration format found", 0.1)
    return result


def _detect_recipe(page: ParsedPage) -> _Score:
    result = _Score(SchemaType.RECIPE)
    text = _combined(page, with_description=False).lower()
    result.keywords(text, _RECIPE_KEYWORDS, 0.1)
    if _MEASUREMENT_RE.search(text):
        result.add("measurement units found", 0.15)
    return result


_SCORERS: tuple[Callable[[ParsedPage], _Score], ...] = (
    _detect_product,
    _detect_article,
    _detect_local_business,
    _detect_event,
    _detect_video,
    _detect_recipe,
)


class SchemaDetector:
    """Default detector strategy."""

    def detect(self, parsed: ParsedPage, target_types: list[str] | None = None) -> list[Detection]:
        """Return candidate types for ``parsed``, highest confidence first.

        Families named in ``target_types`` (aliases such as ``BlogPosting``
        included) get their confidence multiplied by ``TARGET_TYPE_BOOST``,
        still capped at 1.0.
        """
        targets = {schema_family(t) for t in target_types or ()} - {None}
        detections: list[Detection] = []
        for scorer in _SCORERS:
            scored = scorer(parsed)
            if scored.score <= 0:
                continue
            if scored.schema_type in targets:
                scored.score *= TARGET_TYPE_BOOST
                scored.indicators.append("target type hint")
            detections.append(scored.detection())

        detections.sort(key=lambda d: d.confidence, reverse=True)
        if not detections or detections[0].confidence < MIN_CONFIDENCE:
            detections.insert(
                0,
                Detection(
                    type=SchemaType.WEB_PAGE.value,
                    confidence=FALLBACK_CONFIDENCE,
                    indicators=["default fallback"],
                ),
            )
        log.debug(
            "schema_detected",
            schema_type=detections[0].type,
            confidence=detections[0].confidence,
            candidates=len(detections),
        )
        return detections

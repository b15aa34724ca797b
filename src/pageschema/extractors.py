"""Per-type schema.org field extraction.

Each ``extract_*`` function builds one JSON-LD object from a ``ParsedPage``
using metadata first and text patterns second. They never raise: missing
input produces a schema with placeholder names, and fields that cannot be
found are left out rather than guessed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime

import structlog

from pageschema.models.page import ParsedPage
from pageschema.models.schema import SCHEMA_CONTEXT, Schema, SchemaType, schema_family

log = structlog.get_logger()

_EMPTY_PAGE = ParsedPage()

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
_CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}
_AVAILABILITY = "https://schema.org/{}"

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)"
_PRICE_PREFIX_RE = re.compile(rf"([$€£])\s?{_AMOUNT}")
_PRICE_SUFFIX_RE = re.compile(rf"{_AMOUNT}\s*(USD|EUR|GBP)\b", re.I)
_PRICE_LABEL_RE = re.compile(rf"\bprice[:\s]+{_AMOUNT}", re.I)

_BRAND_RE = re.compile(r"\b(?i:brand)[:\s]+([A-Z][A-Za-z0-9&]*(?:[ \t]+[A-Z&][A-Za-z0-9&]*)*)")
_SKU_RE = re.compile(r"\bSKU[:#\s]+([A-Z0-9][A-Z0-9-]*)", re.I)
_RATING_RE = re.compile(r"\b(?:rating|rated)[:\s]*(\d(?:\.\d+)?)", re.I)
_STARS_RE = re.compile(r"\b(\d(?:\.\d+)?)\s*(?:out of 5\s*)?stars?\b", re.I)
_REVIEWS_RE = re.compile(r"(\d[\d,]*)\s*(?:customer\s+)?reviews?\b", re.I)

_BYLINE_RE = re.compile(r"\bby\s+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+)")
_CREDIT_RE = re.compile(
    r"\b(?i:written|posted|published)\s+by[:\s]+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)+)"
)
_CAPITALIZED_WORD_RE = re.compile(r"\b[A-Z][a-z]{3,}\b")

_ISO_DATETIME_RE = re.compile(
    r"\b\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:\d{2})?"
)
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_LONG_DATE_RE = re.compile(rf"\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b")

_STREET_RE = re.compile(
    r"\b(\d+[ \t]+(?:[A-Z][a-z]+[ \t]+){1,3}"
    r"(?i:street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln|way|court|ct)\b\.?)"
)
_CITY_STATE_ZIP_RE = re.compile(
    r"\b([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*),[ \t]*([A-Z]{2})[ \t]+(\d{5}(?:-\d{4})?)\b"
)
_STATE_ZIP_RE = re.compile(r"\b([A-Z]{2})[ \t]+(\d{5}(?:-\d{4})?)\b")
_ZIP_RE = re.compile(r"\b(\d{5}(?:-\d{4})?)\b")
_PHONE_RES = (
    re.compile(r"\(\d{3}\)\s*\d{3}-\d{4}"),
    re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),
    re.compile(r"\+1\s*\d{3}\s*\d{3}\s*\d{4}\b"),
)
_HOURS_RE = re.compile(
    r"\b(?:opening hours|hours|open)\b[:\s]+((?:mon|tue|wed|thu|fri|sat|sun|daily)[^\n]{0,100})",
    re.I,
)

_VENUE_RE = re.compile(
    r"(?:\b(?i:location|venue)[:\s]+|\bat\s+the\s+)([A-Z][A-Za-z0-9 ,'&-]+?)(?=[.\n]|$)", re.M
)
_ORGANIZER_RE = re.compile(
    r"\b(?i:organi[sz]ed|hosted|presented)\s+by[:\s]+"
    r"([A-Z][A-Za-z&]*(?:[ \t]+[A-Z&][A-Za-z&.]*)*)"
)

_INGREDIENT_RE = re.compile(
    r"^\s*(?:[-*•]\s*)?((?:\d+(?:[./]\d+)?|[½¼¾⅓⅔])\s*"
    r"(?:cups?|tbsp|tsp|tablespoons?|teaspoons?|oz|ounces?|lbs?|pounds?|g|grams?|kg|ml|"
    r"l|liters?|pinch|cloves?)\b.*)$",
    re.I | re.M,
)
_STEP_RE = re.compile(r"^\s*(?:step\s*)?\d+[.):]\s+(.+)$", re.I | re.M)
_INSTRUCTIONS_RE = re.compile(
    r"\b(?:instructions?|directions|method)[:\s]+(.{50,500})", re.I | re.S
)
_TIME_UNIT = r"(\d+)\s*(min|minutes?|hours?|hrs?)\b"
_DURATION_RES = {
    "prepTime": re.compile(rf"\bprep(?:aration)?\s*time[:\s]*{_TIME_UNIT}", re.I),
    "cookTime": re.compile(rf"\bcook(?:ing)?\s*time[:\s]*{_TIME_UNIT}", re.I),
    "totalTime": re.compile(rf"\btotal\s*time[:\s]*{_TIME_UNIT}", re.I),
}
_YIELD_RE = re.compile(r"\b(?:serves|servings|yield)[:\s]+(\d+)", re.I)

_DATE_META_KEYS: dict[str, tuple[str, ...]] = {
    "published": ("article:published_time", "datepublished", "date", "pubdate", "publish-date"),
    "modified": ("article:modified_time", "datemodified", "og:updated_time"),
    "start": ("event:start_time", "startdate"),
    "end": ("event:end_time", "enddate"),
}

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def truncate(text: str, max_length: int) -> str:
    """Cap ``text`` at ``max_length`` characters, marking the cut with '...'."""
    if not text or len(text) <= max_length:
        return text or ""
    return text[:max_length].rstrip() + "..."


def normalize_date(value: str) -> str | None:
    """Return an ISO-8601 date or datetime string, or None if unparsable."""
    text = " ".join(value.split())
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        pass
    else:
        return parsed.date().isoformat() if len(text) == 10 else parsed.isoformat()

    cleaned = text.replace(",", " ")
    cleaned = " ".join(cleaned.split())
    for fmt in ("%B %d %Y", "%b %d %Y", "%d %B %Y"):
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _base(schema_type: SchemaType) -> Schema:
    return {"@context": SCHEMA_CONTEXT, "@type": schema_type.value}


def _page(parsed: ParsedPage | None) -> ParsedPage:
    return parsed if isinstance(parsed, ParsedPage) else _EMPTY_PAGE


def _name(page: ParsedPage, placeholder: str) -> str:
    return page.open_graph.get("title") or page.title or placeholder


def _first_meta(page: ParsedPage, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        if page.meta.get(key):
            return page.meta[key]
    return None


def _text(page: ParsedPage) -> str:
    return f"{page.content}\n{page.description}" if page.description else page.content


def find_date(page: ParsedPage, role: str, *, search_text: bool = True) -> str | None:
    """Find a date for ``role`` in metadata, then (optionally) in page text."""
    raw = _first_meta(page, _DATE_META_KEYS[role])
    if raw:
        normalized = normalize_date(raw)
        if normalized:
            return normalized
    if not search_text:
        return None
    for pattern in (_ISO_DATETIME_RE, _ISO_DATE_RE, _LONG_DATE_RE):
        match = pattern.search(page.content)
        if match:
            normalized = normalize_date(match.group(0))
            if normalized:
                return normalized
    return None


def find_author(page: ParsedPage) -> str | None:
    meta_author = _first_meta(page, ("author", "article:author", "twitter:creator"))
    if meta_author and not meta_author.startswith(("http://", "https://")):
        return meta_author
    for pattern in (_BYLINE_RE, _CREDIT_RE):
        match = pattern.search(page.content)
        if match:
            return match.group(1)
    return None


def _set_common(schema: Schema, page: ParsedPage, description_limit: int) -> None:
    description = page.description or truncate(page.content, description_limit)
    if description:
        schema["description"] = description
    if page.url:
        schema["url"] = page.url


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------


def extract_price(page: ParsedPage) -> tuple[str, str] | None:
    """Return ``(amount, currency)`` with thousands separators removed."""
    amount = _first_meta(page, ("product:price:amount", "og:price:amount", "price"))
    if amount:
        currency = _first_meta(page, ("product:price:currency", "og:price:currency"))
        return amount.replace(",", ""), (currency or "USD").upper()

    text = _text(page)
    match = _PRICE_PREFIX_RE.search(text)
    if match:
        return match.group(2).replace(",", ""), _CURRENCY_SYMBOLS[match.group(1)]
    match = _PRICE_SUFFIX_RE.search(text)
    if match:
        return match.group(1).replace(",", ""), match.group(2).upper()
    match = _PRICE_LABEL_RE.search(text)
    if match:
        return match.group(1).replace(",", ""), "USD"
    return None


def _availability(page: ParsedPage) -> str:
    declared = (_first_meta(page, ("product:availability", "og:availability")) or "").lower()
    lower = declared or page.content.lower()
    if "out of stock" in lower or lower == "oos" or "sold out" in lower:
        return _AVAILABILITY.format("OutOfStock")
    if "pre-order" in lower or "preorder" in lower:
        return _AVAILABILITY.format("PreOrder")
    return _AVAILABILITY.format("InStock")


def _rating(text: str) -> Schema | None:
    match = _RATING_RE.search(text) or _STARS_RE.search(text)
    if not match:
        return None
    reviews = _REVIEWS_RE.search(text)
    return {
        "@type": "AggregateRating",
        "ratingValue": float(match.group(1)),
        "bestRating": 5,
        "reviewCount": int(reviews.group(1).replace(",", "")) if reviews else 1,
    }


def extract_product(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.PRODUCT)
    schema["name"] = _name(page, "Untitled Product")
    _set_common(schema, page, 300)
    if page.images:
        schema["image"] = page.images[:5]

    price = extract_price(page)
    if price:
        amount, currency = price
        offer: Schema = {
            "@type": "Offer",
            "price": amount,
            "priceCurrency": currency,
            "availability": _availability(page),
        }
        if page.url:
            offer["url"] = page.url
        schema["offers"] = offer

    text = _text(page)
    brand = _first_meta(page, ("product:brand", "og:brand", "brand"))
    if not brand:
        match = _BRAND_RE.search(text)
        brand = match.group(1).strip() if match else None
    if brand:
        schema["brand"] = {"@type": "Brand", "name": brand}

    rating = _rating(text)
    if rating:
        schema["aggregateRating"] = rating

    sku = _first_meta(page, ("product:retailer_item_id", "sku"))
    if not sku:
        match = _SKU_RE.search(text)
        sku = match.group(1) if match else None
    if sku:
        schema["sku"] = sku
    return schema


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------


def _keywords(page: ParsedPage) -> str | None:
    if page.meta.get("keywords"):
        return page.meta["keywords"]
    words: list[str] = []
    for word in _CAPITALIZED_WORD_RE.findall(page.content):
        if word not in words:
            words.append(word)
        if len(words) == 5:
            break
    return ", ".join(words) or None


def extract_article(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.ARTICLE)
    schema["headline"] = _name(page, "Untitled Article")
    _set_common(schema, page, 200)
    if page.images:
        schema["image"] = page.images[:3]

    author = find_author(page)
    if author:
        schema["author"] = {"@type": "Person", "name": author}
    published = find_date(page, "published")
    if published:
        schema["datePublished"] = published
    modified = find_date(page, "modified", search_text=False)
    if modified:
        schema["dateModified"] = modified
    publisher = page.open_graph.get("site_name") or page.meta.get("publisher")
    if publisher:
        schema["publisher"] = {"@type": "Organization", "name": publisher}
    keywords = _keywords(page)
    if keywords:
        schema["keywords"] = keywords
    return schema


# ---------------------------------------------------------------------------
# LocalBusiness
# ---------------------------------------------------------------------------


def extract_address(text: str) -> Schema | None:
    address: Schema = {"@type": "PostalAddress"}
    street = _STREET_RE.search(text)
    if street:
        address["streetAddress"] = street.group(1)
    locality = _CITY_STATE_ZIP_RE.search(text)
    if locality:
        address["addressLocality"] = locality.group(1)
        address["addressRegion"] = locality.group(2)
        address["postalCode"] = locality.group(3)
    else:
        state_zip = _STATE_ZIP_RE.search(text)
        if state_zip:
            address["addressRegion"] = state_zip.group(1)
            address["postalCode"] = state_zip.group(2)
        elif street:
            zip_match = _ZIP_RE.search(text, street.end())
            if zip_match:
                address["postalCode"] = zip_match.group(1)
    return address if len(address) > 1 else None


def extract_phone(text: str) -> str | None:
    for pattern in _PHONE_RES:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def _geo(page: ParsedPage) -> Schema | None:
    lat = _first_meta(page, ("place:location:latitude", "latitude", "geo.latitude"))
    lon = _first_meta(page, ("place:location:longitude", "longitude", "geo.longitude"))
    if not (lat and lon) and page.meta.get("geo.position"):
        parts = page.meta["geo.position"].replace(",", ";").split(";")
        if len(parts) == 2:
            lat, lon = parts
    if not (lat and lon):
        return None
    try:
        return {"@type": "GeoCoordinates", "latitude": float(lat), "longitude": float(lon)}
    except ValueError:
        return None


def extract_local_business(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.LOCAL_BUSINESS)
    schema["name"] = _name(page, "Untitled Business")
    _set_common(schema, page, 300)
    if page.images:
        schema["image"] = page.images[0]

    text = _text(page)
    address = extract_address(text)
    if address:
        schema["address"] = address
    phone = _first_meta(page, ("business:contact_data:phone_number", "telephone"))
    phone = phone or extract_phone(text)
    if phone:
        schema["telephone"] = phone
    hours = _HOURS_RE.search(text)
    if hours:
        schema["openingHours"] = hours.group(1).strip()
    geo = _geo(page)
    if geo:
        schema["geo"] = geo
    return schema


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


def extract_event(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.EVENT)
    schema["name"] = _name(page, "Untitled Event")
    _set_common(schema, page, 300)
    if page.images:
        schema["image"] = page.images[:3]

    start = find_date(page, "start")
    if start:
        schema["startDate"] = start
    end = find_date(page, "end", search_text=False)
    if end:
        schema["endDate"] = end

    venue = _VENUE_RE.search(page.content)
    if venue:
        place: Schema = {"@type": "Place", "name": venue.group(1).strip(" ,")}
        address = extract_address(page.content)
        if address:
            place["address"] = address
        schema["location"] = place
    organizer = _ORGANIZER_RE.search(page.content)
    if organizer:
        schema["organizer"] = {"@type": "Organization", "name": organizer.group(1).strip()}
    return schema


# ---------------------------------------------------------------------------
# Recipe
# ---------------------------------------------------------------------------


def _iso_duration(amount: str, unit: str) -> str:
    return f"PT{int(amount)}H" if unit.lower().startswith("h") else f"PT{int(amount)}M"


def _instructions(text: str) -> list[Schema] | str | None:
    steps = [step.strip() for step in _STEP_RE.findall(text) if step.strip()]
    if steps:
        return [
            {"@type": "HowToStep", "position": i, "text": step}
            for i, step in enumerate(steps, start=1)
        ]
    match = _INSTRUCTIONS_RE.search(text)
    return " ".join(match.group(1).split()) if match else None


def extract_recipe(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.RECIPE)
    schema["name"] = _name(page, "Untitled Recipe")
    _set_common(schema, page, 300)
    if page.images:
        schema["image"] = page.images[:3]
    author = find_author(page)
    if author:
        schema["author"] = {"@type": "Person", "name": author}

    ingredients = [line.strip() for line in _INGREDIENT_RE.findall(page.content)]
    if ingredients:
        schema["recipeIngredient"] = ingredients[:50]
    instructions = _instructions(page.content)
    if instructions:
        schema["recipeInstructions"] = instructions
    for field, pattern in _DURATION_RES.items():
        match = pattern.search(page.content)
        if match:
            schema[field] = _iso_duration(match.group(1), match.group(2))
    servings = _YIELD_RE.search(page.content)
    if servings:
        schema["recipeYield"] = f"{servings.group(1)} servings"
    return schema


# ---------------------------------------------------------------------------
# VideoObject and WebPage
# ---------------------------------------------------------------------------


def extract_video(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.VIDEO)
    schema["name"] = _name(page, "Untitled Video")
    _set_common(schema, page, 300)

    thumbnail = page.open_graph.get("image") or (page.images[0] if page.images else None)
    if thumbnail:
        schema["thumbnailUrl"] = thumbnail
    release = page.open_graph.get("video:release_date") or page.meta.get("uploaddate")
    if release:
        upload = normalize_date(release)
    else:
        upload = find_date(page, "published", search_text=False)
    if upload:
        schema["uploadDate"] = upload

    seconds = page.open_graph.get("video:duration") or page.meta.get("video:duration")
    if seconds and seconds.strip().isdigit():
        schema["duration"] = f"PT{int(seconds)}S"
    content_url = (
        page.open_graph.get("video:secure_url")
        or page.open_graph.get("video:url")
        or page.open_graph.get("video")
    )
    if content_url:
        schema["contentUrl"] = content_url
    if page.twitter_card.get("player"):
        schema["embedUrl"] = page.twitter_card["player"]
    return schema


def extract_web_page(parsed: ParsedPage | None) -> Schema:
    page = _page(parsed)
    schema = _base(SchemaType.WEB_PAGE)
    schema["name"] = _name(page, "Untitled Page")
    _set_common(schema, page, 300)
    if page.images:
        schema["primaryImageOfPage"] = {"@type": "ImageObject", "url": page.images[0]}
    return schema


EXTRACTORS: dict[SchemaType, Callable[[ParsedPage | None], Schema]] = {
    SchemaType.PRODUCT: extract_product,
    SchemaType.ARTICLE: extract_article,
    SchemaType.LOCAL_BUSINESS: extract_local_business,
    SchemaType.EVENT: extract_event,
    SchemaType.RECIPE: extract_recipe,
    SchemaType.VIDEO: extract_video,
    SchemaType.WEB_PAGE: extract_web_page,
}


class DataExtractor:
    """Default extractor strategy: dispatches on the schema family."""

    def extract(self, parsed: ParsedPage | None, schema_type: str) -> Schema:
        """Build a schema of ``schema_type``. Unsupported types become WebPage.

        An extractor failure degrades to a minimal schema carrying only the
        page name and description.
        """
        family = schema_family(schema_type)
        if family is None:
            log.debug("extractor_unsupported_type", schema_type=schema_type)
            return extract_web_page(parsed)
        try:
            schema = EXTRACTORS[family](parsed)
        except Exception:
            log.warning("extraction_failed", schema_type=schema_type, exc_info=True)
            return basic_schema(parsed, schema_type)
        schema["@type"] = schema_type
        return schema


def basic_schema(parsed: ParsedPage | None, schema_type: str) -> Schema:
    page = _page(parsed)
    schema: Schema = {
        "@context": SCHEMA_CONTEXT,
        "@type": schema_type,
        "name": page.title or "Untitled",
    }
    if page.description:
        schema["description"] = page.description
    if page.url:
        schema["url"] = page.url
    return schema

"""Related schema detection and cross-referencing.

Given a primary schema, builds the supporting entities a search engine
expects next to it (breadcrumbs, author, publisher, brand, venue, website)
and links them back to the primary through ``@id`` references.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable
from urllib.parse import unquote, urlparse

import structlog

from pageschema.models.analysis import ContentAnalysis
from pageschema.models.page import ParsedPage
from pageschema.models.schema import SCHEMA_CONTEXT, Schema, SchemaType, schema_family

log = structlog.get_logger()

_TITLE_SEPARATOR_RE = re.compile(r"\s*[|\-–]\s*")


def _origin(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def _title_case(segment: str) -> str:
    words = re.sub(r"[-_]", " ", unquote(segment)).split(" ")
    return " ".join(word[:1].upper() + word[1:] for word in words)


# ---------------------------------------------------------------------------
# Breadcrumb and WebSite
# ---------------------------------------------------------------------------


def build_breadcrumb(url: str) -> Schema | None:
    """Home plus one ``ListItem`` per path segment. None for the site root."""
    origin = _origin(url)
    if origin is None:
        return None
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return None

    items: list[Schema] = [
        {"@type": "ListItem", "position": 1, "name": "Home", "item": f"{origin}/"}
    ]
    path = ""
    for position, segment in enumerate(segments, start=2):
        path += f"/{segment}"
        items.append(
            {
                "@type": "ListItem",
                "position": position,
                "name": _title_case(segment),
                "item": f"{origin}{path}",
            }
        )
    return {"@context": SCHEMA_CONTEXT, "@type": "BreadcrumbList", "itemListElement": items}


def _site_name(parsed: ParsedPage, hostname: str) -> str:
    if parsed.open_graph.get("site_name"):
        return parsed.open_graph["site_name"]
    parts = [p for p in _TITLE_SEPARATOR_RE.split(parsed.title) if p]
    if len(parts) > 1:
        return parts[-1].strip()
    return hostname.removeprefix("www.")


def build_website(parsed: ParsedPage) -> Schema | None:
    origin = _origin(parsed.url)
    if origin is None:
        return None
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": "WebSite",
        "@id": f"{origin}/",
        "url": f"{origin}/",
        "name": _site_name(parsed, urlparse(parsed.url).hostname or ""),
        "potentialAction": {
            "@type": "SearchAction",
            "target": {
                "@type": "EntryPoint",
                "urlTemplate": f"{origin}/search?q={{search_term_string}}",
            },
            "query-input": "required name=search_term_string",
        },
    }


# ---------------------------------------------------------------------------
# Type-specific related entities
# ---------------------------------------------------------------------------


def _name_of(value: object) -> str | None:
    if isinstance(value, dict):
        name = value.get("name")
        return name if isinstance(name, str) and name else None
    if isinstance(value, str) and value:
        return value
    return None


def _article_related(
    primary: Schema, parsed: ParsedPage, analysis: ContentAnalysis
) -> list[Schema]:
    related: list[Schema] = []
    origin = _origin(parsed.url)

    author = _name_of(primary.get("author"))
    if author:
        person: Schema = {"@context": SCHEMA_CONTEXT, "@type": "Person", "name": author}
        if parsed.url:
            person["@id"] = f"{parsed.url}#author"
        related.append(person)

    publisher = _name_of(primary.get("publisher"))
    if publisher:
        org: Schema = {"@context": SCHEMA_CONTEXT, "@type": "Organization", "name": publisher}
        if origin:
            org["@id"] = f"{origin}/#organization"
            org["url"] = origin
        if parsed.images:
            org["logo"] = {"@type": "ImageObject", "url": parsed.images[0]}
        related.append(org)

    if parsed.url and origin:
        page: Schema = {
            "@context": SCHEMA_CONTEXT,
            "@type": "WebPage",
            "@id": parsed.url,
            "url": parsed.url,
            "name": parsed.title or primary.get("headline", ""),
            "isPartOf": {"@id": f"{origin}/"},
        }
        if parsed.images:
            page["primaryImageOfPage"] = {"@type": "ImageObject", "url": parsed.images[0]}
        related.append(page)
    return related


def _product_related(
    primary: Schema, parsed: ParsedPage, analysis: ContentAnalysis
) -> list[Schema]:
    related: list[Schema] = []
    organizations = analysis.entities.organizations
    origin = _origin(parsed.url)

    brand = _name_of(primary.get("brand"))
    if brand:
        brand_type = "Organization" if brand in organizations else "Brand"
        related.append({"@context": SCHEMA_CONTEXT, "@type": brand_type, "name": brand})

    if organizations and organizations[0] != brand:
        org: Schema = {
            "@context": SCHEMA_CONTEXT,
            "@type": "Organization",
            "name": organizations[0],
        }
        if origin:
            org["@id"] = f"{origin}/#organization"
        related.append(org)
    return related


def _business_related(
    primary: Schema, parsed: ParsedPage, analysis: ContentAnalysis
) -> list[Schema]:
    address = primary.get("address")
    if not isinstance(address, dict):
        return []
    place: Schema = {
        "@context": SCHEMA_CONTEXT,
        "@type": "Place",
        "name": _name_of(primary.get("name")) or "Location",
        "address": copy.deepcopy(address),
    }
    if isinstance(primary.get("geo"), dict):
        place["geo"] = copy.deepcopy(primary["geo"])
    return [place, {"@context": SCHEMA_CONTEXT, **copy.deepcopy(address)}]


def _event_related(
    primary: Schema, parsed: ParsedPage, analysis: ContentAnalysis
) -> list[Schema]:
    related: list[Schema] = []
    location = _name_of(primary.get("location"))
    if location:
        place: Schema = {"@context": SCHEMA_CONTEXT, "@type": "Place", "name": location}
        if isinstance(primary["location"], dict) and "address" in primary["location"]:
            place["address"] = copy.deepcopy(primary["location"]["address"])
        related.append(place)

    organizer = _name_of(primary.get("organizer"))
    if organizer:
        related.append({"@context": SCHEMA_CONTEXT, "@type": "Organization", "name": organizer})

    performer = _name_of(primary.get("performer"))
    if performer is None and analysis.entities.people:
        performer = analysis.entities.people[0]
    if performer:
        related.append({"@context": SCHEMA_CONTEXT, "@type": "Person", "name": performer})
    return related


def _no_related(
    primary: Schema, parsed: ParsedPage, analysis: ContentAnalysis
) -> list[Schema]:
    return []


_RelatedBuilder = Callable[[Schema, ParsedPage, ContentAnalysis], list[Schema]]

RELATED_BUILDERS: dict[SchemaType, _RelatedBuilder] = {
    SchemaType.ARTICLE: _article_related,
    SchemaType.PRODUCT: _product_related,
    SchemaType.LOCAL_BUSINESS: _business_related,
    SchemaType.EVENT: _event_related,
    SchemaType.RECIPE: _no_related,
    SchemaType.VIDEO: _no_related,
    SchemaType.WEB_PAGE: _no_related,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_related(
    primary: Schema | None,
    parsed: ParsedPage,
    analysis: ContentAnalysis | None = None,
) -> list[Schema]:
    """Return supporting schemas for ``primary``. Never raises."""
    if not isinstance(primary, dict) or not primary.get("@type"):
        return []
    analysis = analysis or ContentAnalysis()

    related: list[Schema] = []
    breadcrumb = build_breadcrumb(parsed.url)
    if breadcrumb:
        related.append(breadcrumb)

    family = schema_family(primary["@type"])
    if family is not None:
        try:
            related.extend(RELATED_BUILDERS[family](primary, parsed, analysis))
        except (KeyError, TypeError, ValueError):
            log.warning("related_detection_failed", schema_type=primary["@type"], exc_info=True)

    website = build_website(parsed)
    if website:
        related.append(website)
    return related


# Back-reference property on the primary for each related @type, per family.
_BACK_REFERENCES: dict[str, dict[SchemaType, str]] = {
    "Person": {SchemaType.ARTICLE: "author"},
    "Organization": {SchemaType.ARTICLE: "publisher", SchemaType.PRODUCT: "manufacturer"},
    "Place": {SchemaType.EVENT: "location"},
    "WebPage": dict.fromkeys(SchemaType, "isPartOf"),
}


def build_relationships(primary: Schema, related: list[Schema]) -> list[Schema]:
    """Return ``[enhanced_primary, *related]``.

    The primary is deep-copied and given ``{"@id": ...}`` references to
    related entities it does not already describe. ``primary`` itself is
    never modified.
    """
    enhanced = copy.deepcopy(primary)
    family = schema_family(enhanced.get("@type"))

    for schema in related:
        related_type = schema.get("@type")
        reference = schema.get("@id") or schema.get("name")
        prop = _BACK_REFERENCES.get(related_type, {}).get(family) if family else None
        if prop and reference and prop not in enhanced:
            enhanced[prop] = {"@id": reference}
    return [enhanced, *related]

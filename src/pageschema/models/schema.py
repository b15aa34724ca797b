"""Supported schema.org entity families."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

SCHEMA_CONTEXT = "https://schema.org"

# A generated JSON-LD object. Always carries ``@context`` and ``@type``.
Schema = dict[str, Any]


class SchemaType(StrEnum):
    PRODUCT = "Product"
    ARTICLE = "Article"
    LOCAL_BUSINESS = "LocalBusiness"
    EVENT = "Event"
    RECIPE = "Recipe"
    VIDEO = "VideoObject"
    WEB_PAGE = "WebPage"


_ALIASES: dict[str, SchemaType] = {
    "BlogPosting": SchemaType.ARTICLE,
    "NewsArticle": SchemaType.ARTICLE,
    "Restaurant": SchemaType.LOCAL_BUSINESS,
    "Store": SchemaType.LOCAL_BUSINESS,
    "Video": SchemaType.VIDEO,
}


def schema_family(type_name: object) -> SchemaType | None:
    """Map a ``@type`` value to its entity family, or ``None`` if unsupported."""
    if not isinstance(type_name, str):
        return None
    if type_name in _ALIASES:
        return _ALIASES[type_name]
    try:
        return SchemaType(type_name)
    except ValueError:
        return None

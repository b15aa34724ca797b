from __future__ import annotations

from pageschema.models.analysis import (
    ContentAnalysis,
    ContentMetadata,
    ContentType,
    Entities,
    Readability,
    Relationship,
)
from pageschema.models.cache import CacheEntry, CacheStats, SchemaCacheMetrics
from pageschema.models.page import Detection, MicrodataItem, ParsedPage
from pageschema.models.result import (
    FetchOptions,
    GenerationFailure,
    GenerationOptions,
    GenerationOutcome,
    GenerationResult,
    PageMetadata,
)
from pageschema.models.schema import SCHEMA_CONTEXT, Schema, SchemaType, schema_family
from pageschema.models.validation import SchemaFix, ValidationReport

__all__ = [
    # page
    "ParsedPage",
    "MicrodataItem",
    "Detection",
    # analysis
    "ContentAnalysis",
    "ContentMetadata",
    "ContentType",
    "Entities",
    "Readability",
    "Relationship",
    # cache
    "CacheEntry",
    "CacheStats",
    "SchemaCacheMetrics",
    # results
    "FetchOptions",
    "GenerationOptions",
    "GenerationResult",
    "GenerationFailure",
    "GenerationOutcome",
    "PageMetadata",
    # schema
    "SCHEMA_CONTEXT",
    "Schema",
    "SchemaType",
    "schema_family",
    # validation
    "SchemaFix",
    "ValidationReport",
]

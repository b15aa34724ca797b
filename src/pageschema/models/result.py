from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from pageschema.errors import ErrorCode
from pageschema.models.schema import Schema

DEFAULT_FAILURE_SUGGESTION = "Check if URL is accessible and returns valid HTML"


class FetchOptions(BaseModel):
    """Per-call overrides for the HTTP fetch."""

    timeout: float | None = None
    max_retries: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class GenerationOptions(BaseModel):
    target_types: list[str] = Field(default_factory=list)
    include_related: bool = True
    optimize_for: list[str] = Field(default_factory=list)
    validate_with_google: bool = False
    fetch_options: FetchOptions = Field(default_factory=FetchOptions)
    use_cache: bool = True
    cache_ttl: float | None = None
    concurrency: int | None = None  # Falls back to GeneratorSettings.concurrency
    filter: str | None = None  # Sitemap URL glob
    retry_on_fail: bool = False  # Batch only: rerun failed URLs under ErrorRecovery


class PageMetadata(BaseModel):
    title: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)
    existing_schemas: int = 0


class GenerationResult(BaseModel):
    """Successful generation for one URL."""

    success: Literal[True] = True
    url: str
    detected_type: str
    confidence: float
    schemas: list[Schema]
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    suggestions: list[str] = Field(default_factory=list)
    validation: dict[str, Any] | None = None
    cached: bool = False
    cache_key: str | None = None


class GenerationFailure(BaseModel):
    """Failed generation for one URL. Never cached."""

    success: Literal[False] = False
    url: str
    error: str
    suggestion: str = DEFAULT_FAILURE_SUGGESTION
    error_code: ErrorCode | None = None
    cached: bool = False


GenerationOutcome = GenerationResult | GenerationFailure

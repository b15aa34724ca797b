from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ContentType(StrEnum):
    FAQ = "faq"
    RECIPE = "recipe"
    PRODUCT = "product"
    EVENT = "event"
    BUSINESS = "business"
    ARTICLE = "article"
    HOWTO = "howto"
    GENERAL = "general"
    UNKNOWN = "unknown"  # Only for empty input


class Entities(BaseModel):
    people: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    products: list[str] = Field(default_factory=list)


class Relationship(BaseModel):
    subject: str
    predicate: str
    object: str
    confidence: float


class Readability(BaseModel):
    flesch_score: float = 0.0
    grade_level: float = 0.0
    difficulty: str = ""


class ContentMetadata(BaseModel):
    word_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    average_word_length: float = 0.0


class ContentAnalysis(BaseModel):
    """Heuristic semantic summary of a page's text."""

    keywords: list[str] = Field(default_factory=list)
    entities: Entities = Field(default_factory=Entities)
    relationships: list[Relationship] = Field(default_factory=list)
    content_type: ContentType = ContentType.UNKNOWN
    readability: Readability = Field(default_factory=Readability)
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MicrodataItem(BaseModel):
    """An ``itemscope`` element found in the page markup."""

    model_config = ConfigDict(frozen=True)

    itemtype: str


class ParsedPage(BaseModel):
    """Structured view of a fetched HTML document.

    Produced once per fetch by ``parse_html`` and never modified afterwards.
    Keys of ``meta`` are lower-cased; ``open_graph`` and ``twitter_card`` hold
    the ``og:*`` and ``twitter:*`` entries with the prefix stripped.
    """

    model_config = ConfigDict(frozen=True)

    url: str = ""
    title: str = ""
    description: str = ""
    content: str = ""  # Visible text, block elements on separate lines
    images: list[str] = Field(default_factory=list)
    meta: dict[str, str] = Field(default_factory=dict)
    open_graph: dict[str, str] = Field(default_factory=dict)
    twitter_card: dict[str, str] = Field(default_factory=dict)
    existing: list[Any] = Field(default_factory=list)  # Decoded ld+json blocks
    structured: list[MicrodataItem] = Field(default_factory=list)


class Detection(BaseModel):
    """A candidate schema type with its heuristic confidence."""

    type: str
    confidence: float = Field(ge=0.0, le=1.0)
    indicators: list[str] = Field(default_factory=list)

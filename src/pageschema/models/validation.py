from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SchemaFix(BaseModel):
    """A mechanical repair for one field, addressed by dotted path."""

    field: str
    value: Any
    reason: str


class ValidationReport(BaseModel):
    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    fixes: list[SchemaFix] = Field(default_factory=list)
    score: int = 100  # 0..100

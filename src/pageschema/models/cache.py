from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """A cached value with its lifecycle timestamps (epoch seconds)."""

    value: Any
    created: float
    accessed: float  # Bumped on every hit; drives LRU eviction
    expires: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    size: int = 0
    hit_rate: float = 0.0


class SchemaCacheMetrics(BaseModel):
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    compression_savings: int = 0  # Bytes removed by separator compaction
    rejected_entries: int = 0
    size: int = 0
    hit_rate: float = 0.0
    average_access_time: float | None = None  # Milliseconds; None until sampled

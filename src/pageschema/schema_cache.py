"""Cache for per-schema processing results (e.g. optimizer output).

Keys are derived from the schema itself: small schemas are keyed by their
full canonical JSON, large ones by a fingerprint of type, name, the start of
the description and the serialized length. Stored values are kept as compact
JSON; the bytes saved versus the default separators are reported as
``compression_savings``. This is separator compaction, not real compression.
"""

from __future__ import annotations

import hashlib
import json
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

import structlog
from pydantic import BaseModel

from pageschema.models.cache import SchemaCacheMetrics
from pageschema.models.schema import Schema, SchemaType

log = structlog.get_logger()

FINGERPRINT_THRESHOLD = 500
ACCESS_SAMPLE_WINDOW = 50
_REUSABLE_TYPES = frozenset(
    {SchemaType.PRODUCT, SchemaType.ARTICLE, SchemaType.LOCAL_BUSINESS, SchemaType.EVENT}
)


class SchemaCacheConfig(BaseModel):
    strategy: Literal["none", "basic", "intelligent"] = "intelligent"
    ttl: float = 3600.0  # Seconds; 0 disables expiry
    max_size: int = 50
    max_entry_size: int = 1_048_576  # Serialized characters
    enable_compression: bool = True
    enable_metrics: bool = True


@dataclass(slots=True)
class _Entry:
    data: str
    timestamp: float
    last_accessed: float
    schema_type: str
    size: int


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class SchemaCache:
    def __init__(
        self,
        config: SchemaCacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or SchemaCacheConfig()
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._metrics = SchemaCacheMetrics()
        self._access_times: deque[float] = deque(maxlen=ACCESS_SAMPLE_WINDOW)

    def configure(self, **options: Any) -> None:
        """Update configuration in place. Switching to ``none`` empties the cache."""
        self.config = self.config.model_copy(update=options)
        if self.config.strategy == "none":
            self.clear()
        self._enforce_max_size()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def fingerprint(schema: Schema) -> str:
        serialized = _canonical(schema)
        if len(serialized) < FINGERPRINT_THRESHOLD:
            return serialized
        description = schema.get("description")
        return _canonical(
            {
                "t": schema.get("@type"),
                "n": schema.get("name", ""),
                "d": description[:50] if isinstance(description, str) else "",
                "l": len(serialized),
            }
        )

    def generate_key(self, schema: Schema, options: Mapping[str, Any] | None = None) -> str:
        opts = _canonical(dict(options)) if options else ""
        raw = f"{schema.get('@type')}:{self.fingerprint(schema)}:{opts}"
        return hashlib.sha256(raw.encode()).hexdigest()[:16]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get(self, schema: Schema, options: Mapping[str, Any] | None = None) -> Any | None:
        if self.config.strategy == "none":
            return None
        started = time.perf_counter()
        key = self.generate_key(schema, options)
        entry = self._entries.get(key)

        if entry is None or self._is_expired(entry):
            if entry is not None:
                del self._entries[key]
            self._record_access(started, hit=False)
            return None

        entry.last_accessed = self._clock()
        self._record_access(started, hit=True)
        return json.loads(entry.data)

    def set(self, schema: Schema, options: Mapping[str, Any] | None, result: Any) -> bool:
        """Store ``result`` for ``schema``. Returns False when it was not cached."""
        if self.config.strategy == "none" or not self.should_cache(schema):
            return False

        original = json.dumps(result, default=str)
        if len(original) > self.config.max_entry_size:
            if self.config.enable_metrics:
                self._metrics.rejected_entries += 1
            log.debug("schema_cache_rejected", size=len(original))
            return False

        data = original
        if self.config.enable_compression:
            data = json.dumps(result, separators=(",", ":"), default=str)
            if self.config.enable_metrics:
                self._metrics.compression_savings += len(original) - len(data)

        now = self._clock()
        self._entries[self.generate_key(schema, options)] = _Entry(
            data=data,
            timestamp=now,
            last_accessed=now,
            schema_type=str(schema.get("@type", "")),
            size=len(original),
        )
        self._enforce_max_size()
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._metrics = SchemaCacheMetrics()
        self._access_times.clear()

    def should_cache(self, schema: Schema) -> bool:
        if self.config.strategy == "none":
            return False
        if self.config.strategy == "basic":
            return True
        return (
            len(_canonical(schema)) > FINGERPRINT_THRESHOLD
            or len(schema) > 5
            or schema.get("@type") in _REUSABLE_TYPES
        )

    def get_metrics(self) -> SchemaCacheMetrics:
        lookups = self._metrics.hits + self._metrics.misses
        return self._metrics.model_copy(
            update={
                "size": len(self._entries),
                "hit_rate": round(self._metrics.hits / lookups, 4) if lookups else 0.0,
                "average_access_time": (
                    sum(self._access_times) / len(self._access_times)
                    if self._access_times
                    else None
                ),
            }
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_expired(self, entry: _Entry) -> bool:
        if not self.config.ttl:
            return False
        return self._clock() - entry.timestamp > self.config.ttl

    def _record_access(self, started: float, *, hit: bool) -> None:
        if not self.config.enable_metrics:
            return
        if hit:
            self._metrics.hits += 1
        else:
            self._metrics.misses += 1
        self._access_times.append((time.perf_counter() - started) * 1000)

    def _enforce_max_size(self) -> None:
        overflow = len(self._entries) - self.config.max_size
        if overflow <= 0:
            return
        by_age = sorted(self._entries, key=lambda k: self._entries[k].last_accessed)
        for key in by_age[:overflow]:
            del self._entries[key]
        self._metrics.evictions += overflow

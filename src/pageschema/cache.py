"""Generic TTL + LRU result cache with optional JSON file persistence.

Entries expire lazily: an expired entry is only removed when it is read (or
by ``clean_expired``). When the in-memory map is full the least recently
accessed entry is evicted. With ``storage="file"`` every write also lands in
``{cache_dir}/{key}.json`` and memory misses read through to disk.

File I/O failures are logged and degrade gracefully: a failed read is a
miss and a failed write is ignored. They never cross the CacheManager
boundary, so a broken cache directory cannot fail a generation.
"""

from __future__ import annotations

import hashlib
import json
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import ValidationError

from pageschema.models.cache import CacheEntry, CacheStats

if TYPE_CHECKING:
    from pageschema.config import CacheSettings

log = structlog.get_logger()


def generate_key(
    url: str,
    target_types: Sequence[str] = (),
    optimize_for: Sequence[str] = (),
) -> str:
    """Deterministic cache key for a generation request.

    SHA-256 of the canonical JSON of ``{url, targetTypes, optimizeFor}``.
    Equal inputs always produce equal keys.
    """
    payload = json.dumps(
        {"url": url, "targetTypes": list(target_types), "optimizeFor": list(optimize_for)},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode()).hexdigest()


class CacheManager:
    def __init__(
        self,
        *,
        ttl: float = 3600.0,
        max_size: int = 100,
        storage: Literal["memory", "file"] = "memory",
        cache_dir: str | Path | None = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if storage == "file" and cache_dir is None:
            raise ValueError("cache_dir is required for file storage")
        self.ttl = ttl
        self.max_size = max_size
        self.storage = storage
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.enabled = enabled
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> CacheManager:
        return cls(
            ttl=settings.ttl_seconds,
            max_size=settings.max_size,
            storage=settings.storage,
            cache_dir=settings.cache_dir,
            enabled=settings.enabled,
        )

    @staticmethod
    def generate_key(url: str, options: Mapping[str, Any] | None = None) -> str:
        options = options or {}
        return generate_key(
            url,
            options.get("target_types") or (),
            options.get("optimize_for") or (),
        )

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on miss or expiry."""
        if not self.enabled:
            return None
        now = self._clock()

        entry = self._entries.get(key)
        if entry is None and self.storage == "file":
            entry = self._load_from_file(key)
            if entry is not None:
                if len(self._entries) >= self.max_size:
                    self._evict_lru()
                self._entries[key] = entry

        if entry is None:
            self._stats.misses += 1
            return None
        if entry.is_expired(now):
            self.delete(key)
            self._stats.misses += 1
            return None

        entry.accessed = now
        self._stats.hits += 1
        log.debug("cache_hit", key=key)
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if not self.enabled:
            return
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()

        entry = CacheEntry(
            value=value,
            created=now,
            accessed=now,
            expires=now + (self.ttl if ttl is None else ttl),
        )
        self._entries[key] = entry
        self._stats.sets += 1
        if self.storage == "file":
            self._save_to_file(key, entry)

    def delete(self, key: str) -> bool:
        existed = self._entries.pop(key, None) is not None
        if self.storage == "file":
            existed = self._remove_file(key) or existed
        if existed:
            self._stats.deletes += 1
        return existed

    def clear(self) -> None:
        self._entries.clear()
        if self.storage == "file" and self.cache_dir is not None and self.cache_dir.exists():
            for path in self.cache_dir.glob("*.json"):
                try:
                    path.unlink()
                except OSError:
                    log.warning("cache_delete_error", path=str(path), exc_info=True)
        log.debug("cache_cleared")

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].accessed)
        del self._entries[oldest]
        self._stats.evictions += 1
        log.debug("cache_evicted", key=oldest)

    # ------------------------------------------------------------------
    # Maintenance and introspection
    # ------------------------------------------------------------------

    def clean_expired(self) -> int:
        """Drop every expired in-memory entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self.delete(key)
        if expired:
            log.info("cache_cleanup_complete", removed=len(expired))
        return len(expired)

    def get_size(self) -> int:
        return len(self._entries)

    def get_stats(self) -> CacheStats:
        lookups = self._stats.hits + self._stats.misses
        return self._stats.model_copy(
            update={
                "size": len(self._entries),
                "hit_rate": self._stats.hits / lookups if lookups else 0.0,
            }
        )

    def reset_stats(self) -> None:
        self._stats = CacheStats()

    def export(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every in-memory entry, keyed by cache key."""
        return {key: entry.model_dump(mode="json") for key, entry in self._entries.items()}

    def import_entries(self, data: Mapping[str, Mapping[str, Any]]) -> int:
        """Load entries produced by ``export``. Expired or malformed ones are skipped."""
        now = self._clock()
        imported = 0
        for key, raw in data.items():
            try:
                entry = CacheEntry.model_validate(raw)
            except ValidationError:
                log.warning("cache_import_skipped", key=key)
                continue
            if entry.is_expired(now):
                continue
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_lru()
            self._entries[key] = entry
            imported += 1
        return imported

    # ------------------------------------------------------------------
    # File layer
    # ------------------------------------------------------------------

    def _path(self, key: str) -> Path:
        assert self.cache_dir is not None
        return self.cache_dir / f"{key}.json"

    def _load_from_file(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

    def _save_to_file(self, key: str, entry: CacheEntry) -> None:
        try:
            self._path(key).parent.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(entry.model_dump_json(), encoding="utf-8")
        except (OSError, TypeError, ValueError):
            log.warning("cache_write_error", key=key, exc_info=True)

    def _remove_file(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError:
            log.warning("cache_delete_error", key=key, exc_info=True)
            return False
        return True

"""Protocol interfaces for swappable pipeline components.

URLSchemaGenerator and GeneratorContext reference these protocols, not the
concrete implementations in detector.py, extractors.py, optimizer.py and
fetcher.py. Tests pass lightweight fakes through the context instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from pageschema.models.page import Detection, ParsedPage
    from pageschema.models.result import FetchOptions
    from pageschema.models.schema import Schema


class SchemaDetectorProtocol(Protocol):
    """Ranks candidate schema types for a page, highest confidence first."""

    def detect(
        self, parsed: ParsedPage, target_types: list[str] | None = None
    ) -> list[Detection]: ...


class DataExtractorProtocol(Protocol):
    """Builds a schema of the requested type from a parsed page. Never raises."""

    def extract(self, parsed: ParsedPage | None, schema_type: str) -> Schema: ...


class OptimizerProtocol(Protocol):
    """Annotates a copy of a schema for answer engines. May raise."""

    def optimize_for_llm(
        self,
        schema: Schema,
        *,
        target: Sequence[str],
        semantic_enhancement: bool,
        voice_optimization: bool,
    ) -> Schema: ...


class FetcherProtocol(Protocol):
    """Interface for the HTTP page fetcher."""

    async def fetch(self, url: str, options: FetchOptions | None = None) -> str: ...


class CacheProtocol(Protocol):
    """Interface for the generation result cache."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float | None = None) -> None: ...


class ProgressObserver(Protocol):
    """Notified once per URL as batch items finish, in completion order."""

    def on_progress(self, url: str, completed: int, total: int) -> None: ...

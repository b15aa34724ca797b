"""LLM-facing schema tagging.

The optimizer does not change what a schema says. It annotates a copy with
hints that answer engines pick up: an ``ai-optimized`` property naming the
targets, an ``alternateName``, a stable ``@id`` and, for voice assistants,
a ``SearchAction`` plus a ``SpeakableSpecification``.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence

from pageschema.models.schema import Schema

SUPPORTED_TARGETS = frozenset({"chatgpt", "bard", "claude", "perplexity", "bing", "voice"})


class LLMOptimizer:
    def optimize_for_llm(
        self,
        schema: Schema,
        *,
        target: Sequence[str] = ("chatgpt",),
        semantic_enhancement: bool = True,
        voice_optimization: bool = False,
    ) -> Schema:
        """Return an annotated copy of ``schema``.

        Raises ValueError for a non-object schema or an unknown target.
        """
        if not isinstance(schema, dict) or not schema.get("@type"):
            raise ValueError("optimize_for_llm requires a schema object with @type")
        targets = [t.lower() for t in target]
        unknown = sorted(set(targets) - SUPPORTED_TARGETS)
        if unknown:
            raise ValueError(f"Unsupported optimization target(s): {', '.join(unknown)}")

        optimized = copy.deepcopy(schema)
        properties = _as_list(optimized.get("additionalProperty"))
        properties.append(
            {"@type": "PropertyValue", "name": "ai-optimized", "value": ",".join(targets)}
        )
        optimized["additionalProperty"] = properties

        if semantic_enhancement:
            _enhance(optimized)
        if voice_optimization:
            _add_voice_hints(optimized)
        return optimized


def _as_list(value: object) -> list:
    if isinstance(value, list):
        return list(value)
    return [value] if value else []


def _enhance(schema: Schema) -> None:
    name = schema.get("name") or schema.get("headline")
    if isinstance(name, str) and name and "alternateName" not in schema:
        schema["alternateName"] = f"{name} ({schema['@type']})"
    url = schema.get("url")
    if isinstance(url, str) and url and "@id" not in schema:
        schema["@id"] = f"{url}#{str(schema['@type']).lower()}"


def _add_voice_hints(schema: Schema) -> None:
    actions = _as_list(schema.get("potentialAction"))
    if not any(isinstance(a, dict) and a.get("@type") == "SearchAction" for a in actions):
        action: Schema = {"@type": "SearchAction", "query-input": "required name=query"}
        if isinstance(schema.get("url"), str):
            action["target"] = f"{schema['url']}?q={{query}}"
        actions.append(action)
    schema["potentialAction"] = actions
    schema.setdefault(
        "speakable",
        {"@type": "SpeakableSpecification", "cssSelector": ["h1", "[itemprop='description']"]},
    )

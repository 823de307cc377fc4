"""Cultural context configuration loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from engines.needs_types import NEED_CATEGORIES


class CulturalConfigError(ValueError):
    """Raised when ``cultural_context.json`` contains invalid data."""


class UnknownCultureError(CulturalConfigError):
    """Raised when a cultural tag has no entry in the configuration."""

    def __init__(self, tag: str):
        super().__init__(f"No cultural context configured for '{tag}'")
        self.tag = tag


@dataclass(frozen=True)
class CulturalProfile:
    """Immutable per-culture weights and content adaptations."""

    tag: str
    weights: Mapping[str, float] = field(default_factory=dict)
    language_support: Tuple[str, ...] = ()
    cultural_relevance: Tuple[str, ...] = ()
    contextual_examples: Tuple[str, ...] = ()

    def weight(self, category: str) -> float:
        return float(self.weights.get(category, 1.0))

    def adaptations(self) -> Dict[str, List[str]]:
        return {
            "language_support": list(self.language_support),
            "cultural_relevance": list(self.cultural_relevance),
            "contextual_examples": list(self.contextual_examples),
        }


def _normalise_tag(tag: str) -> str:
    return str(tag).strip().lower()


def _string_list(entry: Mapping, key: str, tag: str) -> Tuple[str, ...]:
    raw = entry.get(key, [])
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise CulturalConfigError(f"Entry {tag} field '{key}' must be a list of strings")
    return tuple(raw)


def _parse_entry(tag: str, entry: object) -> CulturalProfile:
    if not isinstance(entry, dict):
        raise CulturalConfigError(f"Entry {tag} must be a JSON object")

    raw_weights = entry.get("weights", {})
    if not isinstance(raw_weights, dict):
        raise CulturalConfigError(f"Entry {tag} 'weights' must be an object")
    weights: Dict[str, float] = {}
    for category, value in raw_weights.items():
        if category not in NEED_CATEGORIES:
            raise CulturalConfigError(f"Entry {tag} references unknown category '{category}'")
        try:
            weight = float(value)
        except (TypeError, ValueError) as exc:
            raise CulturalConfigError(f"Entry {tag} has non-numeric weight for {category}") from exc
        if weight < 0:
            raise CulturalConfigError(f"Entry {tag} weight for {category} must not be negative")
        weights[category] = weight

    return CulturalProfile(
        tag=tag,
        weights=weights,
        language_support=_string_list(entry, "language_support", tag),
        cultural_relevance=_string_list(entry, "cultural_relevance", tag),
        contextual_examples=_string_list(entry, "contextual_examples", tag),
    )


class CulturalContextRegistry:
    """Load cultural weights and adaptations from ``cultural_context.json``."""

    def __init__(self, path: str | Path | None = None) -> None:
        base_path = Path(__file__).resolve().parent
        env_path = os.getenv("CULTURAL_CONTEXT_PATH")
        if path is not None:
            self.path = Path(path)
        elif env_path:
            self.path = Path(env_path)
        else:
            self.path = base_path / "cultural_context.json"
        self._default = CulturalProfile(tag="default")
        self._cultures: Dict[str, CulturalProfile] = {}
        self.reload()

    # ------------------------------------------------------------------
    def reload(self) -> None:
        """Reload the configuration from disk and validate the structure."""

        if not self.path.exists():
            raise FileNotFoundError(f"Cultural context file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, dict):
            raise CulturalConfigError("Cultural context file must contain a JSON object")

        cultures_raw = raw.get("cultures", {})
        if not isinstance(cultures_raw, dict):
            raise CulturalConfigError("'cultures' must be a JSON object")

        default = _parse_entry("default", raw.get("default", {}))
        cultures: Dict[str, CulturalProfile] = {}
        for tag, entry in cultures_raw.items():
            key = _normalise_tag(tag)
            if not key:
                raise CulturalConfigError("Cultural tags may not be empty")
            if key in cultures:
                raise CulturalConfigError(f"Duplicate cultural tag detected: {key}")
            cultures[key] = _parse_entry(key, entry)

        self._default = default
        self._cultures = cultures

    # ------------------------------------------------------------------
    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(sorted(self._cultures))

    @property
    def default(self) -> CulturalProfile:
        return self._default

    def lookup(self, tag: str) -> CulturalProfile:
        """Return the profile for ``tag``; raises ``UnknownCultureError`` if absent."""

        try:
            return self._cultures[_normalise_tag(tag)]
        except KeyError:
            raise UnknownCultureError(tag) from None

    def lookup_or_default(self, tag: str) -> CulturalProfile:
        try:
            return self.lookup(tag)
        except UnknownCultureError:
            return self._default


CULTURAL_CONTEXTS = CulturalContextRegistry()

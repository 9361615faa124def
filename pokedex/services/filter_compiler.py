"""Catalog filter sets and their compilation from a semantic analysis."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from pokedex.services.semantic_dictionary import THRESHOLD_KEYS
from pokedex.services.semantic_parser import SemanticAnalysis

_UNSET: Any = object()


@dataclass(frozen=True)
class SearchFilterSet:
    """Immutable set of catalog constraints, all ANDed together.

    ``types`` and ``generations`` are match-any. ``thresholds`` uses flat
    ``min_<stat>`` / ``max_<stat>`` keys. Several filter sets handed to the
    repository at once are ANDed as well.
    """

    text: str | None = None
    types: tuple[str, ...] = ()
    generations: tuple[int, ...] = ()
    thresholds: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_empty(self) -> bool:
        return not (self.text or self.types or self.generations or self.thresholds)

    def with_(
        self,
        *,
        text: str | None = _UNSET,
        types: Iterable[str] = _UNSET,
        generations: Iterable[int] = _UNSET,
        thresholds: Mapping[str, int] = _UNSET,
    ) -> "SearchFilterSet":
        """Return a copy with the given fields replaced."""
        changes: dict[str, Any] = {}
        if text is not _UNSET:
            changes["text"] = _clean_text(text)
        if types is not _UNSET:
            changes["types"] = _clean_types(types)
        if generations is not _UNSET:
            changes["generations"] = tuple(dict.fromkeys(generations))
        if thresholds is not _UNSET:
            changes["thresholds"] = _clean_thresholds(thresholds)
        return replace(self, **changes)

    def to_log(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "types": list(self.types),
            "generations": list(self.generations),
            "thresholds": dict(self.thresholds),
        }


def build_filter_set(
    *,
    text: str | None = None,
    types: Iterable[str] | None = None,
    generations: Iterable[int] | None = None,
    thresholds: Mapping[str, int | None] | None = None,
) -> SearchFilterSet:
    """Validate and normalize raw values into a new SearchFilterSet.

    Raises:
        ValueError: On an unknown threshold key.
    """
    return SearchFilterSet(
        text=_clean_text(text),
        types=_clean_types(types or ()),
        generations=tuple(dict.fromkeys(generations or ())),
        thresholds=_clean_thresholds(thresholds or {}),
    )


def _clean_text(text: str | None) -> str | None:
    if text is None:
        return None
    stripped = text.strip()
    return stripped or None


def _clean_types(types: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(t.strip().lower() for t in types if t and t.strip()))


def _clean_thresholds(thresholds: Mapping[str, int | None]) -> Mapping[str, int]:
    unknown = set(thresholds) - THRESHOLD_KEYS
    if unknown:
        raise ValueError(f"Unknown threshold keys: {sorted(unknown)}")
    return MappingProxyType({k: v for k, v in thresholds.items() if v is not None})


@dataclass(frozen=True)
class CompiledFilters:
    """Strict and loosened filter sets for one query."""

    primary: SearchFilterSet
    fallback: SearchFilterSet
    has_semantic_intent: bool


class FilterCompiler:
    """Turns a SemanticAnalysis into primary and fallback filter sets."""

    def compile(self, analysis: SemanticAnalysis) -> CompiledFilters:
        # Primary keeps the literal query so exact name hits win when they exist;
        # fallback drops it so a descriptive phrase cannot hide tag-only matches.
        primary = build_filter_set(
            text=analysis.original_query,
            types=analysis.inferred_types,
            thresholds=analysis.inferred_characteristics,
        )
        fallback = primary.with_(text=None)
        return CompiledFilters(
            primary=primary,
            fallback=fallback,
            has_semantic_intent=analysis.has_semantic_intent,
        )

"""Turn a free-text query into inferred Pokemon types and stat thresholds."""

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from rapidfuzz.distance import Levenshtein

from pokedex.services.semantic_dictionary import (
    SemanticDictionary,
    SemanticMapping,
    default_dictionary,
)

logger = logging.getLogger(__name__)

# Fuzzy matches need strictly more than this normalized similarity
FUZZY_MATCH_THRESHOLD = 0.6
# Matching through a synonym is slightly less trustworthy than a dictionary key
SYNONYM_CONFIDENCE_FACTOR = 0.9
MAX_FUZZY_MATCHES = 3


class ThresholdMergePolicy(str, enum.Enum):
    """How conflicting thresholds from several matched mappings combine.

    LAST_WINS keeps the value of the last merged mapping (the historical
    behaviour; it can silently loosen a bound). TIGHTEST keeps the max of
    minimums and the min of maximums.
    """

    LAST_WINS = "last_wins"
    TIGHTEST = "tightest"


@dataclass(frozen=True)
class SemanticMatch:
    """A dictionary concept recognised in the query."""

    term: str
    mapping: SemanticMapping
    confidence: float
    fuzzy: bool = False


@dataclass(frozen=True)
class SemanticAnalysis:
    """Everything the parser inferred from one query."""

    original_query: str
    tokens: tuple[str, ...]
    semantic_matches: tuple[SemanticMatch, ...]
    inferred_types: tuple[str, ...]
    inferred_characteristics: Mapping[str, int]

    @property
    def has_semantic_intent(self) -> bool:
        return bool(self.semantic_matches)


def string_similarity(first: str, second: str) -> float:
    """Normalized Levenshtein similarity: ``(max_len - distance) / max_len``."""
    if not first:
        return 1.0 if not second else 0.0
    if not second:
        return 0.0
    longest = max(len(first), len(second))
    return (longest - Levenshtein.distance(first, second)) / longest


def merge_thresholds(
    current: Mapping[str, int],
    incoming: Mapping[str, int],
    policy: ThresholdMergePolicy,
) -> dict[str, int]:
    """Merge ``incoming`` threshold bundle into ``current``, returning a new dict."""
    merged = dict(current)
    for key, value in incoming.items():
        if policy is ThresholdMergePolicy.LAST_WINS or key not in merged:
            merged[key] = value
        elif key.startswith("min_"):
            merged[key] = max(merged[key], value)
        else:
            merged[key] = min(merged[key], value)
    return merged


class SemanticQueryParser:
    """Matches query tokens against a SemanticDictionary, exactly then fuzzily.

    Stateless between calls: parsing the same string twice yields equal
    analyses.
    """

    def __init__(
        self,
        dictionary: SemanticDictionary | None = None,
        merge_policy: ThresholdMergePolicy = ThresholdMergePolicy.LAST_WINS,
    ) -> None:
        self.dictionary = dictionary if dictionary is not None else default_dictionary()
        self.merge_policy = merge_policy

    def parse(self, query: str) -> SemanticAnalysis:
        """Analyse a query. Never raises; an empty query gives an empty analysis."""
        original_query = query.lower().strip()
        tokens = tuple(original_query.split())
        claimed: set[SemanticMapping] = set()

        matches: list[SemanticMatch] = []
        for token in tokens:
            mapping = self.dictionary.lookup(token)
            if mapping is None or mapping in claimed:
                continue
            matches.append(SemanticMatch(term=token, mapping=mapping, confidence=1.0))
            claimed.add(mapping)

        matches.extend(self._fuzzy_matches(tokens, claimed))

        inferred_types: list[str] = []
        characteristics: dict[str, int] = {}
        for match in matches:
            for type_name in match.mapping.types:
                if type_name not in inferred_types:
                    inferred_types.append(type_name)
            characteristics = merge_thresholds(
                characteristics, match.mapping.thresholds, self.merge_policy
            )

        return SemanticAnalysis(
            original_query=original_query,
            tokens=tokens,
            semantic_matches=tuple(matches),
            inferred_types=tuple(inferred_types),
            inferred_characteristics=MappingProxyType(characteristics),
        )

    def _fuzzy_matches(
        self,
        tokens: tuple[str, ...],
        claimed: set[SemanticMapping],
    ) -> list[SemanticMatch]:
        """Best fuzzy candidates for tokens without an exact hit, capped per query.

        ``claimed`` is updated with every mapping accepted here.
        """
        candidates: list[SemanticMatch] = []
        for token in tokens:
            if token in self.dictionary:
                continue
            for mapping in self.dictionary.mappings:
                if mapping in claimed:
                    continue
                candidate = self._best_candidate(token, mapping)
                if candidate is not None:
                    candidates.append(candidate)

        # Stable sort keeps token order for equal confidences
        candidates.sort(key=lambda m: m.confidence, reverse=True)

        accepted: list[SemanticMatch] = []
        for candidate in candidates:
            if len(accepted) >= MAX_FUZZY_MATCHES:
                break
            if candidate.mapping in claimed:
                continue
            accepted.append(candidate)
            claimed.add(candidate.mapping)
        return accepted

    @staticmethod
    def _best_candidate(token: str, mapping: SemanticMapping) -> SemanticMatch | None:
        best_term, best_similarity = "", 0.0
        for term in mapping.terms:
            similarity = string_similarity(token, term)
            if similarity > FUZZY_MATCH_THRESHOLD and similarity > best_similarity:
                best_term, best_similarity = term, similarity
        if best_term:
            return SemanticMatch(
                term=best_term, mapping=mapping, confidence=best_similarity, fuzzy=True
            )

        # Synonyms are only consulted when no dictionary key is close enough
        for synonym in mapping.synonyms:
            similarity = string_similarity(token, synonym)
            if similarity > FUZZY_MATCH_THRESHOLD and similarity > best_similarity:
                best_term, best_similarity = synonym, similarity
        if best_term:
            return SemanticMatch(
                term=best_term,
                mapping=mapping,
                confidence=best_similarity * SYNONYM_CONFIDENCE_FACTOR,
                fuzzy=True,
            )
        return None

    def log_analysis(self, analysis: SemanticAnalysis) -> None:
        logger.info(
            "Semantic analysis for %r: tokens=%s matches=%d types=%s characteristics=%s",
            analysis.original_query,
            list(analysis.tokens),
            len(analysis.semantic_matches),
            list(analysis.inferred_types),
            dict(analysis.inferred_characteristics),
        )

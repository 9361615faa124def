"""Hybrid vector + lexical scoring for vector search hits."""

from collections.abc import Iterable
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from pokedex.core.config import settings
from pokedex.models.pokemon import EmbeddingChannel, Pokemon


@dataclass
class VectorSearchResult:
    """One nearest-neighbour hit, optionally re-scored by HybridRanker."""

    pokemon: Pokemon
    similarity: float
    channel: EmbeddingChannel
    hybrid_score: float | None = None

    @property
    def score(self) -> float:
        return self.hybrid_score if self.hybrid_score is not None else self.similarity


class HybridRanker:
    """Blend cosine similarity with name similarity.

    Weights are applied as given and not normalized, so scores may exceed
    1.0 when they sum to more than one.
    """

    def __init__(
        self,
        vector_weight: float | None = None,
        text_weight: float | None = None,
    ) -> None:
        self.vector_weight = (
            settings.hybrid_vector_weight if vector_weight is None else vector_weight
        )
        self.text_weight = settings.hybrid_text_weight if text_weight is None else text_weight

    @staticmethod
    def text_similarity(query: str, name: str) -> float:
        """1.0 on a case-insensitive exact match, else normalized Levenshtein similarity."""
        query, name = query.strip().lower(), name.strip().lower()
        if query == name:
            return 1.0
        return Levenshtein.normalized_similarity(query, name)

    def score(self, vector_similarity: float, text_similarity: float) -> float:
        return self.vector_weight * vector_similarity + self.text_weight * text_similarity

    def apply(self, query: str, result: VectorSearchResult) -> VectorSearchResult:
        result.hybrid_score = self.score(
            result.similarity, self.text_similarity(query, result.pokemon.name)
        )
        return result

    @staticmethod
    def rank(results: Iterable[VectorSearchResult]) -> list[VectorSearchResult]:
        """Keep the best-scoring hit per Pokemon, ordered by score desc then id asc."""
        best: dict[int, VectorSearchResult] = {}
        for result in results:
            pokemon_id = result.pokemon.pokemon_id
            current = best.get(pokemon_id)
            if current is None or result.score > current.score:
                best[pokemon_id] = result
        return sorted(best.values(), key=lambda r: (-r.score, r.pokemon.pokemon_id))

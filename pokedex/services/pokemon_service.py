"""Pokemon search, comparison, seeding and embedding administration."""

import logging
import math
from collections.abc import Sequence
from typing import Any

from pokedex.core.config import settings
from pokedex.core.exceptions import NotFoundError, ValidationError
from pokedex.models.pokemon import EmbeddingChannel, Pokemon
from pokedex.repositories.pokemon_repository import PokemonStore
from pokedex.schemas.pokemon import (
    CompareResponse,
    EmbeddingBatchResponse,
    EmbeddingStatsResponse,
    PokemonResponse,
    PokemonSeed,
    PokemonStats,
    SearchMeta,
    SearchMetadataResponse,
    SearchParams,
    SearchResponse,
    SimilarPokemon,
    SimilarResponse,
)
from pokedex.services.cache import (
    ResponseCache,
    build_compare_cache_key,
    build_search_cache_key,
    compare_keys,
)
from pokedex.services.filter_compiler import SearchFilterSet, build_filter_set
from pokedex.services.search_service import SearchOrchestrator, SearchRequest
from pokedex.services.vector_search_service import VectorSearchService

logger = logging.getLogger(__name__)

MIN_COMPARE = 2
MAX_COMPARE = 3


def structured_filters(params: SearchParams) -> SearchFilterSet:
    """Explicit filters from the request, without the free-text query."""
    return build_filter_set(
        types=params.types,
        generations=params.generations,
        thresholds={
            "min_hp": params.min_hp,
            "min_attack": params.min_attack,
            "min_defense": params.min_defense,
            "min_speed": params.min_speed,
        },
    )


def _is_pokedex_number(key: str) -> bool:
    return key.isdecimal() and key.isascii()


class PokemonService:
    """Facade used by the HTTP routes, scripts and workers."""

    def __init__(
        self,
        store: PokemonStore,
        cache: ResponseCache,
        vector_search: VectorSearchService,
        orchestrator: SearchOrchestrator | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.vector_search = vector_search
        self.orchestrator = orchestrator or SearchOrchestrator(store, vector_search)

    async def search_pokemon(self, params: SearchParams) -> SearchResponse:
        """Run a search through the fallback chain, serving repeats from cache."""
        cache_key = build_search_cache_key(params)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Search cache hit for %s", cache_key)
            return SearchResponse.model_validate(cached)

        outcome = await self.orchestrator.search(
            SearchRequest(
                query=params.search,
                structured=structured_filters(params),
                page=params.page,
                limit=params.limit,
                sort_by=params.sort_by,
                sort_order=params.sort_order,
            )
        )
        metadata = outcome.metadata
        response = SearchResponse(
            data=[PokemonResponse.model_validate(p) for p in outcome.pokemon],
            meta=SearchMeta(
                page=params.page,
                limit=params.limit,
                total=outcome.total,
                total_pages=math.ceil(outcome.total / params.limit),
                used_semantic_fallback=metadata.used_semantic_fallback,
                search_metadata=SearchMetadataResponse(
                    used_vector_search=metadata.used_vector_search,
                    average_similarity=metadata.average_similarity,
                    search_type=metadata.search_type,
                ),
            ),
        )
        await self.cache.set(cache_key, response.model_dump(mode="json"), settings.search_cache_ttl)
        return response

    async def compare_pokemon(self, keys: Sequence[str | int]) -> CompareResponse:
        """Compare two or three Pokemon given by id or by name.

        Raises:
            ValidationError: Fewer than two or more than three keys.
            NotFoundError: Any key does not resolve to a Pokemon.
        """
        if not MIN_COMPARE <= len(keys) <= MAX_COMPARE:
            raise ValidationError("Must provide 2-3 Pokémon for comparison")

        cache_key = build_compare_cache_key(keys)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return CompareResponse.model_validate(cached)

        # Results follow the sorted key order so cached and fresh responses agree
        normalized = compare_keys(keys)
        ids = [int(k) for k in normalized if _is_pokedex_number(k)]
        names = [k for k in normalized if not _is_pokedex_number(k)]
        by_key: dict[str, Pokemon] = {}
        if ids:
            by_key.update((str(p.pokemon_id), p) for p in await self.store.find_by_ids(ids))
        if names:
            by_key.update((p.name.lower(), p) for p in await self.store.find_by_names(names))
        ordered = [by_key.get(k) for k in normalized]

        if any(p is None for p in ordered):
            raise NotFoundError("One or more Pokémon not found")

        response = CompareResponse(data=[PokemonStats.model_validate(p) for p in ordered])
        await self.cache.set(cache_key, response.model_dump(mode="json"), settings.compare_cache_ttl)
        return response

    async def find_similar(
        self,
        pokemon_id: int,
        limit: int = 10,
        threshold: float | None = None,
        channel: EmbeddingChannel = EmbeddingChannel.COMBINED,
    ) -> SimilarResponse:
        results = await self.vector_search.find_similar_to(
            pokemon_id, channel=channel, limit=limit, threshold=threshold
        )
        return SimilarResponse(
            pokemon_id=pokemon_id,
            data=[
                SimilarPokemon(
                    pokemon=PokemonResponse.model_validate(r.pokemon), similarity=r.similarity
                )
                for r in results
            ],
        )

    async def seed_pokemon(self, records: Sequence[PokemonSeed]) -> int:
        """Insert or update catalog rows; cached responses expire by TTL."""
        rows = [record.model_dump() for record in records]
        for row in rows:
            row["types"] = [t.lower() for t in row["types"]]
            if not row["search_text"]:
                row["search_text"] = " ".join([row["name"], *row["types"], *row["abilities"]]).lower()
        count = await self.store.bulk_upsert(rows)
        logger.info("Seeded %d Pokemon", count)
        return count

    async def generate_embeddings(
        self, pokemon_ids: Sequence[int] | None = None, batch_size: int = 10
    ) -> EmbeddingBatchResponse:
        result = await self.vector_search.batch_generate_embeddings(pokemon_ids, batch_size)
        return EmbeddingBatchResponse(
            success=result.success, failed=result.failed, errors=result.errors
        )

    async def embedding_stats(self) -> EmbeddingStatsResponse:
        stats: dict[str, Any] = await self.vector_search.get_stats()
        return EmbeddingStatsResponse(**stats)

"""Vector similarity search over Pokemon embeddings and embedding backfill."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from pokedex.core.config import settings
from pokedex.core.exceptions import (
    EmbeddingMissingError,
    NotFoundError,
    PokedexError,
    VectorSearchError,
)
from pokedex.models.pokemon import EmbeddingChannel, Pokemon
from pokedex.repositories.pokemon_repository import PokemonStore
from pokedex.services.embedding_service import EmbeddingService, get_embedding_service
from pokedex.services.embedding_text import channel_texts
from pokedex.services.filter_compiler import SearchFilterSet
from pokedex.services.ranking import HybridRanker, VectorSearchResult

logger = logging.getLogger(__name__)

HYBRID_CHANNELS: tuple[EmbeddingChannel, ...] = (
    EmbeddingChannel.COMBINED,
    EmbeddingChannel.NAME,
    EmbeddingChannel.TYPE,
)
DEFAULT_LIMIT = 10
DEFAULT_BACKFILL_BATCH_SIZE = 10


@dataclass
class EmbeddingBatchResult:
    """Outcome of a backfill run; one error string per failed Pokemon."""

    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class VectorSearchService:
    """Nearest-neighbour search, hybrid re-ranking and embedding generation."""

    def __init__(
        self,
        store: PokemonStore,
        embedding_service: EmbeddingService | None = None,
        ranker: HybridRanker | None = None,
        backfill_delay: float | None = None,
    ) -> None:
        self.store = store
        self.embedding_service = embedding_service or get_embedding_service()
        self.ranker = ranker or HybridRanker()
        self.backfill_delay = (
            settings.embedding_backfill_delay_seconds if backfill_delay is None else backfill_delay
        )

    async def search(
        self,
        query_vector: list[float],
        channel: EmbeddingChannel = EmbeddingChannel.COMBINED,
        limit: int = DEFAULT_LIMIT,
        threshold: float | None = None,
        filters: Sequence[SearchFilterSet] = (),
        exclude_id: int | None = None,
    ) -> list[VectorSearchResult]:
        """Search one embedding channel.

        Only hits with ``similarity >= threshold`` are returned, ordered by
        similarity descending then pokemon_id ascending.

        Raises:
            VectorSearchError: The catalog store query failed.
        """
        if threshold is None:
            threshold = settings.vector_search_threshold
        try:
            rows = await self.store.vector_search(
                channel,
                query_vector,
                limit=limit,
                threshold=threshold,
                filter_sets=filters,
                exclude_id=exclude_id,
            )
        except SQLAlchemyError as exc:
            logger.warning("Vector search on %s channel failed: %s", channel.value, exc)
            raise VectorSearchError(f"Vector search failed: {exc}") from exc

        results = [
            VectorSearchResult(pokemon=pokemon, similarity=similarity, channel=channel)
            for pokemon, similarity in rows
            if similarity >= threshold
        ]
        results.sort(key=lambda r: (-r.similarity, r.pokemon.pokemon_id))
        return results[:limit]

    async def hybrid_search(
        self,
        query: str,
        *,
        channels: Sequence[EmbeddingChannel] = HYBRID_CHANNELS,
        limit: int = DEFAULT_LIMIT,
        threshold: float | None = None,
        filters: Sequence[SearchFilterSet] = (),
    ) -> list[VectorSearchResult]:
        """Embed the query, search every channel and blend in name similarity.

        Each Pokemon appears once, with its best-scoring hit.

        Raises:
            ServiceDisabledError: Embeddings are not configured.
            EmbeddingGenerationError: The query could not be embedded.
            VectorSearchError: A channel query failed.
        """
        query_vector = await self.embedding_service.embed(query)

        hits: list[VectorSearchResult] = []
        for channel in channels:
            for result in await self.search(
                query_vector, channel, limit=limit, threshold=threshold, filters=filters
            ):
                hits.append(self.ranker.apply(query, result))

        return self.ranker.rank(hits)[:limit]

    async def find_similar_to(
        self,
        pokemon_id: int,
        channel: EmbeddingChannel = EmbeddingChannel.COMBINED,
        limit: int = DEFAULT_LIMIT,
        threshold: float | None = None,
    ) -> list[VectorSearchResult]:
        """Pokemon closest to an existing one, excluding the source itself."""
        source = await self.store.find_by_id(pokemon_id)
        if source is None:
            raise NotFoundError(f"Pokemon {pokemon_id} not found")

        vector = source.embedding_for(channel)
        if vector is None:
            raise EmbeddingMissingError(
                f"Pokemon {source.name} has no {channel.value} embedding"
            )

        return await self.search(
            list(vector), channel, limit=limit, threshold=threshold, exclude_id=pokemon_id
        )

    async def generate_embeddings(self, pokemon: Pokemon) -> dict[EmbeddingChannel, list[float]]:
        return await self._embed_channels(channel_texts(pokemon))

    async def _embed_channels(
        self, texts: dict[EmbeddingChannel, str]
    ) -> dict[EmbeddingChannel, list[float]]:
        vectors = await asyncio.gather(*(self.embedding_service.embed(t) for t in texts.values()))
        return dict(zip(texts.keys(), vectors, strict=True))

    async def generate_and_store(self, pokemon: Pokemon) -> None:
        vectors = await self.generate_embeddings(pokemon)
        await self.store.update_embeddings(pokemon.pokemon_id, vectors)

    async def batch_generate_embeddings(
        self,
        pokemon_ids: Sequence[int] | None = None,
        batch_size: int = DEFAULT_BACKFILL_BATCH_SIZE,
    ) -> EmbeddingBatchResult:
        """Generate and store embeddings for many Pokemon.

        With no ids, targets every Pokemon missing at least one channel. A
        failure for one Pokemon is recorded and does not stop the run.
        """
        if pokemon_ids is not None:
            targets = await self.store.find_by_ids(pokemon_ids)
        else:
            targets = await self.store.find_missing_embeddings()

        logger.info("Starting embedding generation for %d Pokemon", len(targets))
        result = EmbeddingBatchResult()
        # Read every row before the first write; a failed write expires them
        prepared = [(p.pokemon_id, p.name, channel_texts(p)) for p in targets]

        for start in range(0, len(targets), batch_size):
            if start > 0 and self.backfill_delay > 0:
                await asyncio.sleep(self.backfill_delay)

            chunk = prepared[start : start + batch_size]
            # Embedding calls fan out; writes stay sequential on the one session
            generated = await asyncio.gather(
                *(self._embed_channels(texts) for _, _, texts in chunk), return_exceptions=True
            )
            for (pokemon_id, name, _), outcome in zip(chunk, generated, strict=True):
                if isinstance(outcome, BaseException):
                    self._record_failure(result, name, outcome)
                    continue
                try:
                    await self.store.update_embeddings(pokemon_id, outcome)
                except (PokedexError, SQLAlchemyError) as exc:
                    self._record_failure(result, name, exc)
                    continue
                result.success += 1

            logger.info(
                "Embedding batch %d completed: success=%d failed=%d",
                start // batch_size + 1,
                result.success,
                result.failed,
            )

        logger.info(
            "Embedding generation completed: success=%d failed=%d",
            result.success,
            result.failed,
        )
        return result

    @staticmethod
    def _record_failure(result: EmbeddingBatchResult, name: str, exc: BaseException) -> None:
        if not isinstance(exc, Exception):
            raise exc
        logger.warning("Embedding generation failed for %s: %s", name, exc)
        result.failed += 1
        result.errors.append(f"{name}: {exc}")

    async def get_stats(self) -> dict[str, Any]:
        total, with_embeddings = await self.store.embedding_stats()
        coverage = (with_embeddings / total * 100) if total else 0.0
        return {
            "total_pokemon": total,
            "pokemon_with_embeddings": with_embeddings,
            "embedding_coverage": round(coverage, 2),
            "embedding_cache": self.embedding_service.cache_stats(),
        }

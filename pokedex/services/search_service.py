"""Search orchestration: hybrid vector search, semantic tiers, plain text.

Each stage reports a tagged outcome instead of raising for expected
branching. The orchestrator walks the stages in order and returns the first
accepted result:

    vector (hybrid)  ->  semantic tiered / traditional  ->  plain text

Structured filters supplied by the caller are ANDed into every stage.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from pokedex.core.config import settings
from pokedex.core.exceptions import (
    EmbeddingGenerationError,
    ServiceDisabledError,
    VectorSearchError,
)
from pokedex.models.pokemon import Pokemon
from pokedex.repositories.pokemon_repository import PokemonStore, SortField, SortOrder
from pokedex.services.filter_compiler import FilterCompiler, SearchFilterSet, build_filter_set
from pokedex.services.semantic_parser import SemanticQueryParser, ThresholdMergePolicy
from pokedex.services.vector_search_service import VectorSearchService

logger = logging.getLogger(__name__)

SEARCH_TYPE_HYBRID = "hybrid"
SEARCH_TYPE_SEMANTIC_TIERED = "semantic_tiered"
SEARCH_TYPE_TRADITIONAL = "traditional"
SEARCH_TYPE_FALLBACK = "fallback"
SEARCH_TYPE_FILTER_ONLY = "filter_only"


@dataclass
class SearchMetadata:
    search_type: str
    used_vector_search: bool = False
    used_semantic_fallback: bool = False
    average_similarity: float | None = None


@dataclass
class SearchOutcome:
    pokemon: list[Pokemon]
    total: int
    metadata: SearchMetadata


@dataclass
class Accepted:
    result: SearchOutcome


@dataclass
class Insufficient:
    reason: str
    partial: SearchOutcome | None = None


@dataclass
class Failed:
    error: Exception


StageOutcome = Accepted | Insufficient | Failed


@dataclass
class SearchRequest:
    query: str | None
    structured: SearchFilterSet = field(default_factory=SearchFilterSet)
    page: int = 1
    limit: int = 20
    sort_by: SortField = SortField.POKEMON_ID
    sort_order: SortOrder = SortOrder.ASC


class SearchOrchestrator:
    """Runs the fallback chain for one query.

    The vector stage is only attempted when the embedding service is
    enabled; its errors and timeouts are logged and the chain advances.
    The plain text stage is last and its errors propagate.
    """

    def __init__(
        self,
        store: PokemonStore,
        vector_search: VectorSearchService,
        parser: SemanticQueryParser | None = None,
        compiler: FilterCompiler | None = None,
    ) -> None:
        self.store = store
        self.vector_search = vector_search
        self.parser = parser or SemanticQueryParser(
            merge_policy=ThresholdMergePolicy(settings.semantic_threshold_merge)
        )
        self.compiler = compiler or FilterCompiler()

    async def search(self, request: SearchRequest) -> SearchOutcome:
        query = (request.query or "").strip()
        if not query:
            return await self._filter_only(request)

        if self.vector_search.embedding_service.is_enabled:
            outcome = await self._vector_attempt(query, request)
            if isinstance(outcome, Accepted):
                return outcome.result
            self._log_transition("vector", outcome)

        outcome = await self._semantic_attempt(query, request)
        if isinstance(outcome, Accepted):
            return outcome.result
        self._log_transition("semantic", outcome)

        return await self._plain_text_attempt(query, request)

    async def _filter_only(self, request: SearchRequest) -> SearchOutcome:
        pokemon, total = await self._find(request, [request.structured])
        return SearchOutcome(pokemon, total, SearchMetadata(search_type=SEARCH_TYPE_FILTER_ONLY))

    async def _vector_attempt(self, query: str, request: SearchRequest) -> StageOutcome:
        candidates = request.page * request.limit * 2
        try:
            results = await asyncio.wait_for(
                self.vector_search.hybrid_search(
                    query,
                    limit=candidates,
                    threshold=settings.vector_search_threshold,
                    filters=self._structured(request),
                ),
                timeout=settings.vector_stage_timeout_seconds,
            )
        except ServiceDisabledError as exc:
            logger.debug("Vector search skipped: %s", exc)
            return Insufficient(reason="embeddings disabled")
        except (EmbeddingGenerationError, VectorSearchError, TimeoutError) as exc:
            logger.warning("Vector search failed for %r: %r", query, exc)
            return Failed(error=exc)

        if not results:
            return Insufficient(reason="no vector results")

        average = sum(r.similarity for r in results) / len(results)
        offset = (request.page - 1) * request.limit
        outcome = SearchOutcome(
            pokemon=[r.pokemon for r in results[offset : offset + request.limit]],
            total=len(results),
            metadata=SearchMetadata(
                search_type=SEARCH_TYPE_HYBRID,
                used_vector_search=True,
                average_similarity=average,
            ),
        )
        if average <= settings.vector_min_average_similarity:
            return Insufficient(reason=f"low average similarity {average:.3f}", partial=outcome)

        logger.info(
            "Vector search accepted for %r: %d results, avg similarity %.3f",
            query,
            len(results),
            average,
        )
        return Accepted(outcome)

    async def _semantic_attempt(self, query: str, request: SearchRequest) -> StageOutcome:
        analysis = self.parser.parse(query)
        self.parser.log_analysis(analysis)
        compiled = self.compiler.compile(analysis)
        logger.debug(
            "Compiled filters for %r: primary=%s fallback=%s",
            query,
            compiled.primary.to_log(),
            compiled.fallback.to_log(),
        )

        try:
            if not compiled.has_semantic_intent:
                pokemon, total = await self._find(request, [compiled.primary, request.structured])
                return Accepted(
                    SearchOutcome(pokemon, total, SearchMetadata(search_type=SEARCH_TYPE_TRADITIONAL))
                )

            pokemon, total = await self._find(request, [compiled.primary, request.structured])
            if total > 0:
                logger.info("Semantic primary filters matched %d Pokemon for %r", total, query)
                return Accepted(
                    SearchOutcome(
                        pokemon, total, SearchMetadata(search_type=SEARCH_TYPE_SEMANTIC_TIERED)
                    )
                )

            pokemon, total = await self._find(request, [compiled.fallback, request.structured])
            if total > 0:
                logger.info("Semantic fallback filters matched %d Pokemon for %r", total, query)
                return Accepted(
                    SearchOutcome(
                        pokemon,
                        total,
                        SearchMetadata(
                            search_type=SEARCH_TYPE_SEMANTIC_TIERED, used_semantic_fallback=True
                        ),
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("Semantic search failed for %r: %s", query, exc)
            return Failed(error=exc)

        return Insufficient(reason="semantic filters matched nothing")

    async def _plain_text_attempt(self, query: str, request: SearchRequest) -> SearchOutcome:
        text_filter = build_filter_set(text=query)
        pokemon, total = await self.store.find_all(
            [text_filter, request.structured],
            page=request.page,
            limit=request.limit,
            sort_by=SortField.POKEMON_ID,
            sort_order=SortOrder.ASC,
        )
        logger.info("Plain text search for %r matched %d Pokemon", query, total)
        return SearchOutcome(pokemon, total, SearchMetadata(search_type=SEARCH_TYPE_FALLBACK))

    async def _find(
        self, request: SearchRequest, filter_sets: Sequence[SearchFilterSet]
    ) -> tuple[list[Pokemon], int]:
        return await self.store.find_all(
            filter_sets,
            page=request.page,
            limit=request.limit,
            sort_by=request.sort_by,
            sort_order=request.sort_order,
        )

    @staticmethod
    def _structured(request: SearchRequest) -> list[SearchFilterSet]:
        return [] if request.structured.is_empty else [request.structured]

    @staticmethod
    def _log_transition(stage: str, outcome: StageOutcome) -> None:
        if isinstance(outcome, Insufficient):
            logger.info("%s stage insufficient (%s), falling back", stage, outcome.reason)
        elif isinstance(outcome, Failed):
            logger.info("%s stage failed (%s), falling back", stage, type(outcome.error).__name__)

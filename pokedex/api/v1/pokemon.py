"""Pokemon search, comparison, similarity and embedding endpoints."""

from fastapi import APIRouter, Query, Request
from pydantic import ValidationError as PydanticValidationError

from pokedex.core.config import settings
from pokedex.core.deps import PokemonServiceDep
from pokedex.core.exceptions import ValidationError
from pokedex.core.rate_limit import limiter
from pokedex.schemas.pokemon import (
    CompareRequest,
    CompareResponse,
    EmbeddingBatchRequest,
    EmbeddingBatchResponse,
    EmbeddingStatsResponse,
    SearchParams,
    SearchResponse,
    SimilarResponse,
)

router = APIRouter()


@router.get("", response_model=SearchResponse)
@limiter.limit(settings.search_rate_limit)
async def search_pokemon(
    request: Request,  # noqa: ARG001 - required by slowapi
    service: PokemonServiceDep,
    search: str | None = Query(None, max_length=200, description="Free-text query"),
    type: str | None = Query(None, description="Comma-separated types"),  # noqa: A002
    generation: str | None = Query(None, description="Comma-separated generations"),
    min_hp: int | None = Query(None, ge=0),
    min_attack: int | None = Query(None, ge=0),
    min_defense: int | None = Query(None, ge=0),
    min_speed: int | None = Query(None, ge=0),
    page: str | None = Query(None, description="Page number, clamped to >= 1"),
    limit: str | None = Query(None, description="Page size, clamped to 1-100"),
    sort_by: str = Query("pokemon_id"),
    sort_order: str = Query("asc"),
) -> SearchResponse:
    """Search the catalog.

    Free text goes through hybrid vector search when embeddings are
    configured, then semantic term inference, then a plain substring match.
    Explicit filters apply at every stage.
    """
    try:
        params = SearchParams(
            search=search,
            types=type,
            generations=generation,
            min_hp=min_hp,
            min_attack=min_attack,
            min_defense=min_defense,
            min_speed=min_speed,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid search parameters: {exc.errors()[0]['msg']}") from exc
    return await service.search_pokemon(params)


@router.post("/compare", response_model=CompareResponse)
async def compare_pokemon(
    body: CompareRequest,
    service: PokemonServiceDep,
) -> CompareResponse:
    """Compare the stats of two or three Pokemon given by id or name."""
    return await service.compare_pokemon(body.pokemon)


@router.get("/embeddings/stats", response_model=EmbeddingStatsResponse)
async def embedding_stats(service: PokemonServiceDep) -> EmbeddingStatsResponse:
    """Embedding coverage across the catalog."""
    return await service.embedding_stats()


@router.post("/embeddings", response_model=EmbeddingBatchResponse)
async def generate_embeddings(
    body: EmbeddingBatchRequest,
    service: PokemonServiceDep,
) -> EmbeddingBatchResponse:
    """Generate embeddings synchronously.

    Large backfills should go through the ``generate_pokemon_embeddings``
    Celery task instead.
    """
    return await service.generate_embeddings(body.pokemon_ids, body.batch_size)


@router.get("/{pokemon_id}/similar", response_model=SimilarResponse)
async def similar_pokemon(
    pokemon_id: int,
    service: PokemonServiceDep,
    limit: int = Query(10, ge=1, le=50),
    threshold: float | None = Query(None, ge=0.0, le=1.0),
) -> SimilarResponse:
    """Pokemon closest to the given one in the combined embedding space."""
    return await service.find_similar(pokemon_id, limit=limit, threshold=threshold)

"""Pydantic schemas for Pokemon search, comparison and embeddings."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from pokedex.repositories.pokemon_repository import SortField, SortOrder
from pokedex.schemas.common import BaseSchema

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _int_or(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class PokemonResponse(BaseSchema):
    """A Pokemon as returned by the API (embeddings are never exposed)."""

    pokemon_id: int
    name: str
    generation: int
    types: list[str] = []
    abilities: list[str] = []
    hp: int
    attack: int
    defense: int
    special_attack: int
    special_defense: int
    speed: int
    height: int = 0
    weight: int = 0


class SearchParams(BaseModel):
    """Search query parameters, normalized rather than rejected.

    Page and limit are clamped into range, or defaulted when not numeric;
    an unknown sort field or order
    falls back to ``pokemon_id`` / ``asc``.
    """

    search: str | None = None
    types: list[str] = Field(default_factory=list)
    generations: list[int] = Field(default_factory=list)
    min_hp: int | None = None
    min_attack: int | None = None
    min_defense: int | None = None
    min_speed: int | None = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: SortField = SortField.POKEMON_ID
    sort_order: SortOrder = SortOrder.ASC

    @field_validator("search", mode="before")
    @classmethod
    def _blank_search(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("types", mode="before")
    @classmethod
    def _split_types(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [t.strip().lower() for t in value if t and t.strip()]

    @field_validator("generations", mode="before")
    @classmethod
    def _split_generations(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [g for g in value.split(",") if g.strip()]
        return value

    @field_validator("page", mode="before")
    @classmethod
    def _clamp_page(cls, value: Any) -> Any:
        return max(1, _int_or(value, 1))

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> Any:
        return min(MAX_PAGE_SIZE, max(1, _int_or(value, DEFAULT_PAGE_SIZE)))

    @field_validator("sort_by", mode="before")
    @classmethod
    def _default_sort_by(cls, value: Any) -> Any:
        try:
            return SortField(value)
        except ValueError:
            return SortField.POKEMON_ID

    @field_validator("sort_order", mode="before")
    @classmethod
    def _default_sort_order(cls, value: Any) -> Any:
        try:
            return SortOrder(str(value).lower())
        except ValueError:
            return SortOrder.ASC


class SearchMetadataResponse(BaseSchema):
    used_vector_search: bool = False
    average_similarity: float | None = None
    search_type: str


class SearchMeta(BaseSchema):
    """Pagination plus details about which search strategy produced the page."""

    page: int
    limit: int
    total: int
    total_pages: int
    used_semantic_fallback: bool = False
    search_metadata: SearchMetadataResponse


class SearchResponse(BaseSchema):
    data: list[PokemonResponse]
    meta: SearchMeta


class CompareRequest(BaseModel):
    """Two or three Pokemon, each given by id or name."""

    pokemon: list[str | int] = Field(..., description="Pokemon ids or names")


class PokemonStats(BaseSchema):
    pokemon_id: int
    name: str
    hp: int
    attack: int
    defense: int
    special_attack: int
    special_defense: int
    speed: int


class CompareResponse(BaseSchema):
    data: list[PokemonStats]


class SimilarPokemon(BaseSchema):
    pokemon: PokemonResponse
    similarity: float


class SimilarResponse(BaseSchema):
    pokemon_id: int
    data: list[SimilarPokemon]


class EmbeddingBatchRequest(BaseModel):
    """Backfill request; omit ``pokemon_ids`` to target every Pokemon missing embeddings."""

    pokemon_ids: list[int] | None = None
    batch_size: int = Field(10, ge=1, le=100)


class EmbeddingBatchResponse(BaseSchema):
    success: int
    failed: int
    errors: list[str] = []


class EmbeddingStatsResponse(BaseSchema):
    total_pokemon: int
    pokemon_with_embeddings: int
    embedding_coverage: float
    embedding_cache: dict[str, Any] = {}


class PokemonSeed(BaseModel):
    """One catalog record for the seed script."""

    pokemon_id: int
    name: str
    generation: int
    types: list[str]
    abilities: list[str] = []
    hp: int
    attack: int
    defense: int
    special_attack: int = 0
    special_defense: int = 0
    speed: int
    height: int = 0
    weight: int = 0
    search_text: str = ""

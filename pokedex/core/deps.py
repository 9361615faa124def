"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pokedex.core.config import settings
from pokedex.core.database import get_async_session
from pokedex.repositories.pokemon_repository import PokemonRepository
from pokedex.services.cache import ResponseCache
from pokedex.services.embedding_service import get_embedding_service
from pokedex.services.pokemon_service import PokemonService
from pokedex.services.vector_search_service import VectorSearchService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session."""
    async for session in get_async_session():
        yield session


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


async def get_pokemon_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> PokemonService:
    """Build the Pokemon service for one request."""
    repository = PokemonRepository(db)
    vector_search = VectorSearchService(repository, get_embedding_service())
    return PokemonService(repository, ResponseCache(redis), vector_search)


PokemonServiceDep = Annotated[PokemonService, Depends(get_pokemon_service)]


__all__ = [
    "PokemonServiceDep",
    "get_db",
    "get_pokemon_service",
    "get_redis",
]

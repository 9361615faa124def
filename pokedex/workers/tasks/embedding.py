"""Celery tasks for embedding backfill."""

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from pokedex.core.database import async_session_maker
from pokedex.repositories.pokemon_repository import PokemonRepository
from pokedex.services.embedding_service import get_embedding_service
from pokedex.services.vector_search_service import (
    DEFAULT_BACKFILL_BATCH_SIZE,
    VectorSearchService,
)
from pokedex.workers.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.embedding.generate_pokemon_embeddings",
    base=BaseTask,
    bind=True,
)
def generate_pokemon_embeddings(
    self: BaseTask,  # noqa: ARG001
    pokemon_ids: list[int] | None = None,
    batch_size: int = DEFAULT_BACKFILL_BATCH_SIZE,
) -> dict[str, Any]:
    """Generate and store embeddings for Pokemon.

    Args:
        pokemon_ids: Pokemon to (re)embed. None targets every Pokemon that is
            missing at least one embedding channel.
        batch_size: Pokemon embedded concurrently per chunk

    Returns:
        Dict with success and failed counts and per-Pokemon errors
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        result = loop.run_until_complete(_generate_embeddings_async(pokemon_ids, batch_size))
        return result
    finally:
        loop.close()


async def _generate_embeddings_async(
    pokemon_ids: list[int] | None,
    batch_size: int,
) -> dict[str, Any]:
    """Async implementation of the embedding backfill."""
    async with async_session_maker() as session:
        service = VectorSearchService(PokemonRepository(session), get_embedding_service())
        result = await service.batch_generate_embeddings(pokemon_ids, batch_size)

    logger.info("Embedding backfill finished: %d ok, %d failed", result.success, result.failed)
    return {**asdict(result), "status": "completed"}

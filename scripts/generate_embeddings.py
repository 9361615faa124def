"""Generate vector embeddings for the Pokemon catalog.

Run after seeding. ``all`` embeds every Pokemon missing at least one
embedding channel; ``test`` embeds a handful of well-known Pokemon.

Usage:
    python -m scripts.generate_embeddings [all|test]
"""

import asyncio
import sys

from pokedex.core.config import settings
from pokedex.core.database import async_session_maker, engine
from pokedex.core.logging_config import setup_logging
from pokedex.repositories.pokemon_repository import PokemonRepository
from pokedex.services.embedding_service import get_embedding_service
from pokedex.services.vector_search_service import VectorSearchService

TEST_POKEMON = ["pikachu", "charizard", "blastoise", "venusaur", "mewtwo"]
# Smaller chunks than the API default to stay well under provider rate limits
SCRIPT_BATCH_SIZE = 5
MAX_ERRORS_SHOWN = 10


def _print_stats(title: str, stats: dict) -> None:
    print(f"{title}:")
    print(f"  Total Pokemon:            {stats['total_pokemon']}")
    print(f"  Pokemon with embeddings:  {stats['pokemon_with_embeddings']}")
    print(f"  Coverage:                 {stats['embedding_coverage']}%")


async def generate_all(service: VectorSearchService) -> int:
    _print_stats("Current status", await service.get_stats())
    result = await service.batch_generate_embeddings(batch_size=SCRIPT_BATCH_SIZE)
    print(f"\nSuccess: {result.success}  Failed: {result.failed}")
    for error in result.errors[:MAX_ERRORS_SHOWN]:
        print(f"  - {error}")
    if len(result.errors) > MAX_ERRORS_SHOWN:
        print(f"  ... and {len(result.errors) - MAX_ERRORS_SHOWN} more errors")
    print()
    _print_stats("Final status", await service.get_stats())
    return 1 if result.failed else 0


async def generate_test(service: VectorSearchService) -> int:
    found = {p.name.lower(): p for p in await service.store.find_by_names(TEST_POKEMON)}
    missing = 0
    for name in TEST_POKEMON:
        pokemon = found.get(name)
        if pokemon is None:
            print(f"  {name} not found in database")
            missing += 1
            continue
        await service.generate_and_store(pokemon)
        print(f"  {pokemon.name} embeddings generated")
    return 1 if missing else 0


async def main(command: str) -> int:
    setup_logging(debug=settings.debug)
    embedding_service = get_embedding_service()
    if not embedding_service.is_enabled:
        print("OPENAI_API_KEY is not set; cannot generate embeddings.")
        return 1

    try:
        async with async_session_maker() as session:
            service = VectorSearchService(PokemonRepository(session), embedding_service)
            if command == "test":
                return await generate_test(service)
            return await generate_all(service)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "all"
    if command not in ("all", "test"):
        print("Usage: python -m scripts.generate_embeddings [all|test]")
        sys.exit(1)
    sys.exit(asyncio.run(main(command)))

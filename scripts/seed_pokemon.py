"""Seed the catalog with Pokemon records.

Creates the pgvector extension and tables if needed, then upserts either the
bundled sample set or the records of a JSON file (a list of objects with the
fields of ``PokemonSeed``).

Usage:
    python -m scripts.seed_pokemon
    python -m scripts.seed_pokemon --file data/pokemon.json
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import text

from pokedex.core.config import settings
from pokedex.core.database import async_session_maker, engine
from pokedex.core.logging_config import setup_logging
from pokedex.models import Base
from pokedex.repositories.pokemon_repository import PokemonRepository
from pokedex.schemas.pokemon import PokemonSeed
from pokedex.services.cache import ResponseCache
from pokedex.services.embedding_service import get_embedding_service
from pokedex.services.pokemon_service import PokemonService
from pokedex.services.vector_search_service import VectorSearchService


def _pokemon(
    pokemon_id: int,
    name: str,
    generation: int,
    types: list[str],
    abilities: list[str],
    stats: tuple[int, int, int, int, int, int],
    height: int,
    weight: int,
) -> dict[str, Any]:
    hp, attack, defense, special_attack, special_defense, speed = stats
    return {
        "pokemon_id": pokemon_id,
        "name": name,
        "generation": generation,
        "types": types,
        "abilities": abilities,
        "hp": hp,
        "attack": attack,
        "defense": defense,
        "special_attack": special_attack,
        "special_defense": special_defense,
        "speed": speed,
        "height": height,
        "weight": weight,
    }


SAMPLE_POKEMON: list[dict[str, Any]] = [
    _pokemon(1, "bulbasaur", 1, ["grass", "poison"], ["overgrow", "chlorophyll"], (45, 49, 49, 65, 65, 45), 7, 69),
    _pokemon(4, "charmander", 1, ["fire"], ["blaze", "solar-power"], (39, 52, 43, 60, 50, 65), 6, 85),
    _pokemon(6, "charizard", 1, ["fire", "flying"], ["blaze", "solar-power"], (78, 84, 78, 109, 85, 100), 17, 905),
    _pokemon(7, "squirtle", 1, ["water"], ["torrent", "rain-dish"], (44, 48, 65, 50, 64, 43), 5, 90),
    _pokemon(9, "blastoise", 1, ["water"], ["torrent", "rain-dish"], (79, 83, 100, 85, 105, 78), 16, 855),
    _pokemon(25, "pikachu", 1, ["electric"], ["static", "lightning-rod"], (35, 55, 40, 50, 50, 90), 4, 60),
    _pokemon(94, "gengar", 1, ["ghost", "poison"], ["cursed-body"], (60, 65, 60, 130, 75, 110), 15, 405),
    _pokemon(113, "chansey", 1, ["normal"], ["natural-cure", "serene-grace"], (250, 5, 5, 35, 105, 50), 11, 346),
    _pokemon(130, "gyarados", 1, ["water", "flying"], ["intimidate", "moxie"], (95, 125, 79, 60, 100, 81), 65, 2350),
    _pokemon(143, "snorlax", 1, ["normal"], ["immunity", "thick-fat"], (160, 110, 65, 65, 110, 30), 21, 4600),
    _pokemon(150, "mewtwo", 1, ["psychic"], ["pressure", "unnerve"], (106, 110, 90, 154, 90, 130), 20, 1220),
    _pokemon(208, "steelix", 2, ["steel", "ground"], ["rock-head", "sturdy"], (75, 85, 200, 55, 65, 30), 92, 4000),
    _pokemon(248, "tyranitar", 2, ["rock", "dark"], ["sand-stream", "unnerve"], (100, 134, 110, 95, 100, 61), 20, 2020),
    _pokemon(445, "garchomp", 4, ["dragon", "ground"], ["sand-veil", "rough-skin"], (108, 130, 95, 80, 85, 102), 19, 950),
]


async def create_schema() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def main(path: Path | None) -> None:
    setup_logging(debug=settings.debug)
    raw = json.loads(path.read_text()) if path else SAMPLE_POKEMON
    records = [PokemonSeed.model_validate(item) for item in raw]

    await create_schema()
    redis = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    try:
        async with async_session_maker() as session:
            repository = PokemonRepository(session)
            service = PokemonService(
                repository,
                ResponseCache(redis),
                VectorSearchService(repository, get_embedding_service()),
            )
            count = await service.seed_pokemon(records)
    finally:
        await redis.aclose()
        await engine.dispose()

    print("=" * 60)
    print(f"  Seeded {count} Pokemon")
    print("  Next: python -m scripts.generate_embeddings")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Pokemon catalog")
    parser.add_argument("--file", type=Path, help="JSON file with Pokemon records")
    args = parser.parse_args()
    asyncio.run(main(args.file))

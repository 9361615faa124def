"""Pytest configuration and fixtures for the Pokedex API test suite.

Provides:
- An in-memory catalog store with the same filter semantics as the SQL one
- Sample Pokemon factory fixtures
- Mock embedding backend (controllable vectors per text)
- Mock Redis (fakeredis)
- Disabled rate limiting
- An HTTP client with the service dependency overridden
"""

from collections.abc import AsyncGenerator, Callable, Sequence
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from pokedex.core.config import settings
from pokedex.core.deps import get_pokemon_service
from pokedex.core.rate_limit import limiter
from pokedex.main import app
from pokedex.models.pokemon import EmbeddingChannel, Pokemon
from pokedex.repositories.pokemon_repository import SortField, SortOrder
from pokedex.services.cache import ResponseCache
from pokedex.services.embedding_service import EmbeddingService
from pokedex.services.filter_compiler import SearchFilterSet
from pokedex.services.pokemon_service import PokemonService
from pokedex.services.vector_search_service import VectorSearchService

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_DIMENSIONS = 4

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


@pytest.fixture(autouse=True)
def _no_embedding_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Never talk to a real embedding backend, whatever the local .env says."""
    monkeypatch.setattr(settings, "openai_api_key", "")


# ---------------------------------------------------------------------------
# In-memory catalog store
# ---------------------------------------------------------------------------


def _matches(pokemon: Pokemon, filter_set: SearchFilterSet) -> bool:
    if filter_set.text:
        needle = filter_set.text.lower()
        if needle not in pokemon.name.lower() and needle not in pokemon.search_text.lower():
            return False
    if filter_set.types and not set(filter_set.types) & set(pokemon.types):
        return False
    if filter_set.generations and pokemon.generation not in filter_set.generations:
        return False
    for key, value in filter_set.thresholds.items():
        bound, stat = key.split("_", 1)
        actual = getattr(pokemon, stat)
        if bound == "min" and actual < value:
            return False
        if bound == "max" and actual > value:
            return False
    return True


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    va, vb = np.asarray(a, dtype=float), np.asarray(b, dtype=float)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    return float(va @ vb / denominator) if denominator else 0.0


class FakePokemonStore:
    """PokemonStore backed by a dict, with brute-force cosine search.

    ``fail`` maps an operation name to how many upcoming calls should raise
    a SQLAlchemyError.
    """

    def __init__(self, pokemon: Sequence[Pokemon] = ()) -> None:
        self.pokemon: dict[int, Pokemon] = {p.pokemon_id: p for p in pokemon}
        self.fail: dict[str, int] = {}
        self.find_all_calls: list[list[SearchFilterSet]] = []
        self.vector_calls: list[dict[str, Any]] = []
        self.updated: list[int] = []

    def _check(self, operation: str) -> None:
        remaining = self.fail.get(operation, 0)
        if remaining:
            self.fail[operation] = remaining - 1
            raise SQLAlchemyError(f"{operation} failed")

    async def find_all(
        self,
        filter_sets: Sequence[SearchFilterSet],
        *,
        page: int,
        limit: int,
        sort_by: SortField = SortField.POKEMON_ID,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> tuple[list[Pokemon], int]:
        self._check("find_all")
        self.find_all_calls.append(list(filter_sets))
        rows = sorted(
            (p for p in self.pokemon.values() if all(_matches(p, f) for f in filter_sets)),
            key=lambda p: p.pokemon_id,
        )
        rows.sort(key=lambda p: getattr(p, sort_by.value), reverse=sort_order is SortOrder.DESC)
        start = (page - 1) * limit
        return rows[start : start + limit], len(rows)

    async def find_by_id(self, pokemon_id: int) -> Pokemon | None:
        return self.pokemon.get(pokemon_id)

    async def find_by_ids(self, pokemon_ids: Sequence[int]) -> list[Pokemon]:
        return [self.pokemon[i] for i in sorted(set(pokemon_ids)) if i in self.pokemon]

    async def find_by_names(self, names: Sequence[str]) -> list[Pokemon]:
        wanted = {n.strip().lower() for n in names}
        return sorted(
            (p for p in self.pokemon.values() if p.name.lower() in wanted),
            key=lambda p: p.pokemon_id,
        )

    async def vector_search(
        self,
        channel: EmbeddingChannel,
        vector: list[float],
        *,
        limit: int,
        threshold: float,
        filter_sets: Sequence[SearchFilterSet] = (),
        exclude_id: int | None = None,
    ) -> list[tuple[Pokemon, float]]:
        self._check("vector_search")
        self.vector_calls.append(
            {"channel": channel, "limit": limit, "threshold": threshold, "filters": list(filter_sets)}
        )
        hits = []
        for pokemon in self.pokemon.values():
            stored = pokemon.embedding_for(channel)
            if stored is None or pokemon.pokemon_id == exclude_id:
                continue
            if not all(_matches(pokemon, f) for f in filter_sets):
                continue
            similarity = _cosine(vector, stored)
            if similarity >= threshold:
                hits.append((pokemon, similarity))
        hits.sort(key=lambda h: (-h[1], h[0].pokemon_id))
        return hits[:limit]

    async def find_missing_embeddings(self) -> list[Pokemon]:
        return [
            p
            for p in sorted(self.pokemon.values(), key=lambda p: p.pokemon_id)
            if any(p.embedding_for(c) is None for c in EmbeddingChannel)
        ]

    async def update_embeddings(
        self, pokemon_id: int, vectors: dict[EmbeddingChannel, list[float]]
    ) -> None:
        self._check("update_embeddings")
        pokemon = self.pokemon[pokemon_id]
        for channel, vector in vectors.items():
            setattr(pokemon, channel.attribute, vector)
        self.updated.append(pokemon_id)

    async def bulk_upsert(self, records: Sequence[dict[str, Any]]) -> int:
        for record in records:
            self.pokemon[record["pokemon_id"]] = Pokemon(**record)
        return len(records)

    async def embedding_stats(self) -> tuple[int, int]:
        complete = sum(
            all(p.embedding_for(c) is not None for c in EmbeddingChannel)
            for p in self.pokemon.values()
        )
        return len(self.pokemon), complete


# ---------------------------------------------------------------------------
# Pokemon factories
# ---------------------------------------------------------------------------


def make_pokemon(
    pokemon_id: int,
    name: str,
    types: list[str],
    stats: tuple[int, int, int, int, int, int],
    *,
    generation: int = 1,
    abilities: list[str] | None = None,
    embedding: list[float] | None = None,
) -> Pokemon:
    """Build a transient Pokemon; ``embedding`` is stored on every channel."""
    hp, attack, defense, special_attack, special_defense, speed = stats
    abilities = abilities or []
    pokemon = Pokemon(
        pokemon_id=pokemon_id,
        name=name,
        generation=generation,
        hp=hp,
        attack=attack,
        defense=defense,
        special_attack=special_attack,
        special_defense=special_defense,
        speed=speed,
        height=0,
        weight=0,
        types=types,
        abilities=abilities,
        search_text=" ".join([name, *types, *abilities]),
    )
    for channel in EmbeddingChannel:
        setattr(pokemon, channel.attribute, embedding)
    return pokemon


@pytest.fixture
def pokemon_factory() -> Callable[..., Pokemon]:
    return make_pokemon


@pytest.fixture
def sample_pokemon() -> list[Pokemon]:
    """A small catalog covering several types, generations and stat profiles."""
    return [
        make_pokemon(1, "bulbasaur", ["grass", "poison"], (45, 49, 49, 65, 65, 45), abilities=["overgrow"]),
        make_pokemon(4, "charmander", ["fire"], (39, 52, 43, 60, 50, 65), abilities=["blaze"]),
        make_pokemon(6, "charizard", ["fire", "flying"], (78, 84, 78, 109, 85, 100), abilities=["blaze"]),
        make_pokemon(7, "squirtle", ["water"], (44, 48, 65, 50, 64, 43), abilities=["torrent"]),
        make_pokemon(9, "blastoise", ["water"], (79, 83, 100, 85, 105, 78), abilities=["torrent"]),
        make_pokemon(25, "pikachu", ["electric"], (35, 55, 40, 50, 50, 90), abilities=["static"]),
        make_pokemon(130, "gyarados", ["water", "flying"], (95, 125, 79, 60, 100, 81), abilities=["intimidate"]),
        make_pokemon(143, "snorlax", ["normal"], (160, 110, 65, 65, 110, 30), abilities=["thick-fat"]),
        make_pokemon(
            208, "steelix", ["steel", "ground"], (75, 85, 200, 55, 65, 30), generation=2, abilities=["sturdy"]
        ),
        make_pokemon(
            992,
            "iron-hands",
            ["fighting", "electric"],
            (154, 140, 108, 50, 68, 50),
            generation=9,
            abilities=["quark-drive"],
        ),
    ]


@pytest.fixture
def store(sample_pokemon: list[Pokemon]) -> FakePokemonStore:
    return FakePokemonStore(sample_pokemon)


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


def embedding_response(vector: list[float]) -> SimpleNamespace:
    """Shape of ``AsyncOpenAI().embeddings.create`` results used by the service."""
    return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


@pytest.fixture
def mock_embedding() -> list[float]:
    """A unit query vector; Pokemon stored with it match with similarity 1.0."""
    return [1.0, 0.0, 0.0, 0.0]


@pytest.fixture
def mock_embedding_client(mock_embedding: list[float]) -> MagicMock:
    """Embedding client returning ``mock_embedding`` for every input."""
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=embedding_response(mock_embedding))
    return client


@pytest.fixture
def embedding_service(mock_embedding_client: MagicMock) -> EmbeddingService:
    return EmbeddingService(
        mock_embedding_client, dimensions=TEST_DIMENSIONS, cache_size=100, batch_delay=0
    )


@pytest.fixture
def disabled_embedding_service() -> EmbeddingService:
    return EmbeddingService(None, dimensions=TEST_DIMENSIONS)


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def pokemon_service(
    store: FakePokemonStore,
    fake_redis: fakeredis.aioredis.FakeRedis,
    disabled_embedding_service: EmbeddingService,
) -> PokemonService:
    """Service over the sample catalog with vector search disabled."""
    vector_search = VectorSearchService(store, disabled_embedding_service, backfill_delay=0)
    return PokemonService(store, ResponseCache(fake_redis), vector_search)


# ---------------------------------------------------------------------------
# HTTP client (overrides the service dependency)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(pokemon_service: PokemonService) -> AsyncGenerator[AsyncClient, None]:
    """Async test client whose routes use the in-memory catalog and fakeredis."""

    async def _override_service() -> PokemonService:
        return pokemon_service

    app.dependency_overrides[get_pokemon_service] = _override_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()

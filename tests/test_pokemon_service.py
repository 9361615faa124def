"""Tests for PokemonService (search caching, compare, seed, embeddings)."""

from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest

from pokedex.core.exceptions import EmbeddingMissingError, NotFoundError, ValidationError
from pokedex.schemas.pokemon import PokemonSeed, SearchParams
from pokedex.services.cache import build_compare_cache_key, build_search_cache_key
from pokedex.services.pokemon_service import PokemonService, structured_filters
from tests.conftest import FakePokemonStore


class TestStructuredFilters:
    def test_excludes_free_text(self) -> None:
        filters = structured_filters(
            SearchParams(search="pikachu", types="Electric", generations="1", min_speed=90)
        )

        assert filters.text is None
        assert filters.types == ("electric",)
        assert filters.generations == (1,)
        assert dict(filters.thresholds) == {"min_speed": 90}

    def test_empty(self) -> None:
        assert structured_filters(SearchParams()).is_empty


class TestSearchPokemon:
    """Tests for PokemonService.search_pokemon()."""

    @pytest.mark.asyncio
    async def test_builds_response_meta(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.search_pokemon(SearchParams(search="flame", limit=1))

        assert [p.name for p in response.data] == ["charmander"]
        assert response.meta.total == 2
        assert response.meta.total_pages == 2
        assert response.meta.used_semantic_fallback
        assert response.meta.search_metadata.search_type == "semantic_tiered"
        assert not response.meta.search_metadata.used_vector_search

    @pytest.mark.asyncio
    async def test_empty_result_has_zero_pages(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.search_pokemon(SearchParams(search="missingno"))

        assert response.data == []
        assert response.meta.total_pages == 0

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(
        self,
        pokemon_service: PokemonService,
        store: FakePokemonStore,
        fake_redis: fakeredis.aioredis.FakeRedis,
    ) -> None:
        params = SearchParams(types="water")

        first = await pokemon_service.search_pokemon(params)
        calls = len(store.find_all_calls)
        second = await pokemon_service.search_pokemon(params)

        assert second == first
        assert len(store.find_all_calls) == calls
        assert await fake_redis.exists(build_search_cache_key(params))

    @pytest.mark.asyncio
    async def test_cache_entry_expires(
        self, pokemon_service: PokemonService, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        params = SearchParams(search="pikachu")
        await pokemon_service.search_pokemon(params)

        ttl = await fake_redis.ttl(build_search_cache_key(params))

        assert 0 < ttl <= 300


class TestComparePokemon:
    """Tests for PokemonService.compare_pokemon()."""

    @pytest.mark.asyncio
    async def test_by_name_in_key_order(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.compare_pokemon(["Pikachu", "bulbasaur"])

        assert [p.name for p in response.data] == ["bulbasaur", "pikachu"]
        assert response.data[1].speed == 90

    @pytest.mark.asyncio
    async def test_by_id(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.compare_pokemon([143, "6", 25])
        assert [p.pokemon_id for p in response.data] == [143, 25, 6]

    @pytest.mark.asyncio
    async def test_ids_with_leading_zeros(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.compare_pokemon(["025", " 006 "])
        assert [p.name for p in response.data] == ["pikachu", "charizard"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["²", "٢٥"])
    async def test_non_ascii_digits_are_names(
        self, pokemon_service: PokemonService, key: str
    ) -> None:
        with pytest.raises(NotFoundError):
            await pokemon_service.compare_pokemon(["pikachu", key])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("keys", [["pikachu"], ["1", "4", "6", "7"], []])
    async def test_wrong_count(self, pokemon_service: PokemonService, keys: list[str]) -> None:
        with pytest.raises(ValidationError, match="2-3"):
            await pokemon_service.compare_pokemon(keys)

    @pytest.mark.asyncio
    async def test_unknown_pokemon(self, pokemon_service: PokemonService) -> None:
        with pytest.raises(NotFoundError):
            await pokemon_service.compare_pokemon(["pikachu", "missingno"])

    @pytest.mark.asyncio
    async def test_cached(
        self,
        pokemon_service: PokemonService,
        store: FakePokemonStore,
        fake_redis: fakeredis.aioredis.FakeRedis,
    ) -> None:
        first = await pokemon_service.compare_pokemon(["pikachu", "snorlax"])
        store.find_by_names = AsyncMock()  # type: ignore[method-assign]

        response = await pokemon_service.compare_pokemon(["snorlax", "pikachu"])

        store.find_by_names.assert_not_awaited()
        assert await fake_redis.exists(build_compare_cache_key(["pikachu", "snorlax"]))
        assert response == first
        assert [p.name for p in response.data] == ["pikachu", "snorlax"]

    @pytest.mark.asyncio
    async def test_order_independent_of_request(self, pokemon_service: PokemonService) -> None:
        """A cold cache gives the same order a warm one would."""
        response = await pokemon_service.compare_pokemon(["snorlax", "pikachu"])
        assert [p.name for p in response.data] == ["pikachu", "snorlax"]


class TestFindSimilar:
    @pytest.mark.asyncio
    async def test_missing_embedding(self, pokemon_service: PokemonService) -> None:
        with pytest.raises(EmbeddingMissingError):
            await pokemon_service.find_similar(25)

    @pytest.mark.asyncio
    async def test_returns_similarity(
        self, pokemon_service: PokemonService, store: FakePokemonStore
    ) -> None:
        for pokemon_id in (4, 6):
            store.pokemon[pokemon_id].combined_embedding = [1.0, 0.0, 0.0, 0.0]

        response = await pokemon_service.find_similar(4, threshold=0.5)

        assert response.pokemon_id == 4
        assert [s.pokemon.name for s in response.data] == ["charizard"]
        assert response.data[0].similarity == pytest.approx(1.0)


class TestSeedPokemon:
    @pytest.mark.asyncio
    async def test_upserts_and_derives_search_text(
        self, pokemon_service: PokemonService, store: FakePokemonStore
    ) -> None:
        seed = PokemonSeed(
            pokemon_id=133,
            name="eevee",
            generation=1,
            types=["Normal"],
            abilities=["adaptability"],
            hp=55,
            attack=55,
            defense=50,
            speed=55,
        )

        count = await pokemon_service.seed_pokemon([seed])

        assert count == 1
        eevee = store.pokemon[133]
        assert eevee.types == ["normal"]
        assert eevee.search_text == "eevee normal adaptability"

    @pytest.mark.asyncio
    async def test_keeps_explicit_search_text(
        self, pokemon_service: PokemonService, store: FakePokemonStore
    ) -> None:
        seed = PokemonSeed(
            pokemon_id=25,
            name="pikachu",
            generation=1,
            types=["electric"],
            hp=35,
            attack=55,
            defense=40,
            speed=90,
            search_text="pikachu mouse",
        )

        await pokemon_service.seed_pokemon([seed])

        assert store.pokemon[25].search_text == "pikachu mouse"


class TestEmbeddingAdmin:
    @pytest.mark.asyncio
    async def test_disabled_backfill_reports_failures(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.generate_embeddings([1, 4])

        assert response.success == 0
        assert response.failed == 2
        assert len(response.errors) == 2

    @pytest.mark.asyncio
    async def test_stats(self, pokemon_service: PokemonService) -> None:
        response = await pokemon_service.embedding_stats()

        assert response.total_pokemon == 10
        assert response.pokemon_with_embeddings == 0
        assert response.embedding_coverage == 0.0
        assert response.embedding_cache["hits"] == 0

"""Tests for the Celery embedding task.

Tests the async function _generate_embeddings_async directly
to avoid needing a Celery worker.
"""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

import pytest

from pokedex.core.config import settings
from pokedex.models.pokemon import EmbeddingChannel
from pokedex.services.embedding_service import EmbeddingService
from pokedex.workers.celery_app import celery_app
from pokedex.workers.tasks.embedding import (
    _generate_embeddings_async,
    generate_pokemon_embeddings,
)
from tests.conftest import FakePokemonStore


@pytest.fixture
def patched_task(store: FakePokemonStore, monkeypatch: pytest.MonkeyPatch) -> Iterator[MagicMock]:
    """Point the task at the in-memory store instead of a database session."""
    monkeypatch.setattr(settings, "embedding_backfill_delay_seconds", 0)
    session = MagicMock(name="session")

    @asynccontextmanager
    async def _session_maker() -> AsyncIterator[MagicMock]:
        yield session

    with (
        patch("pokedex.workers.tasks.embedding.async_session_maker", _session_maker),
        patch(
            "pokedex.workers.tasks.embedding.PokemonRepository", return_value=store
        ) as repository_cls,
    ):
        yield repository_cls


class TestGenerateEmbeddings:
    """Tests for _generate_embeddings_async()."""

    @pytest.mark.asyncio
    async def test_fills_missing_embeddings(
        self,
        patched_task: MagicMock,
        store: FakePokemonStore,
        embedding_service: EmbeddingService,
    ) -> None:
        """Every Pokemon without embeddings gets all channels filled."""
        with patch(
            "pokedex.workers.tasks.embedding.get_embedding_service",
            return_value=embedding_service,
        ):
            result = await _generate_embeddings_async(None, 5)

        assert result["status"] == "completed"
        assert result["success"] == 10
        assert result["failed"] == 0
        assert result["errors"] == []
        assert patched_task.call_count == 1
        assert all(
            p.embedding_for(channel) is not None
            for p in store.pokemon.values()
            for channel in EmbeddingChannel
        )

    @pytest.mark.asyncio
    async def test_selected_ids_only(
        self,
        patched_task: MagicMock,
        store: FakePokemonStore,
        embedding_service: EmbeddingService,
    ) -> None:
        with patch(
            "pokedex.workers.tasks.embedding.get_embedding_service",
            return_value=embedding_service,
        ):
            result = await _generate_embeddings_async([6, 25], 10)

        assert result["success"] == 2
        assert store.updated == [6, 25]

    @pytest.mark.asyncio
    async def test_reports_failures_without_backend(
        self,
        patched_task: MagicMock,
        store: FakePokemonStore,
        disabled_embedding_service: EmbeddingService,
    ) -> None:
        with patch(
            "pokedex.workers.tasks.embedding.get_embedding_service",
            return_value=disabled_embedding_service,
        ):
            result = await _generate_embeddings_async([1], 10)

        assert result["status"] == "completed"
        assert result["failed"] == 1
        assert result["errors"][0].startswith("bulbasaur: ")


def test_task_registration() -> None:
    """The task is registered under its routed name and queue."""
    assert generate_pokemon_embeddings.name == "tasks.embedding.generate_pokemon_embeddings"
    assert generate_pokemon_embeddings.name in celery_app.tasks
    assert celery_app.conf.task_routes["tasks.embedding.*"] == {"queue": "embeddings"}

"""OpenAI-compatible embedding service with an in-process FIFO cache."""

import asyncio
import logging
import re
from typing import Any

import numpy as np
from cachetools import FIFOCache
from openai import AsyncOpenAI

from pokedex.core.config import settings
from pokedex.core.exceptions import EmbeddingGenerationError, ServiceDisabledError

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def preprocess_text(text: str) -> str:
    """Lower-case, turn punctuation into spaces and collapse whitespace."""
    cleaned = _PUNCTUATION_RE.sub(" ", text.lower().strip())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def normalize_vector(vector: list[float]) -> list[float]:
    """L2-normalize a vector. A zero vector is returned unchanged."""
    array = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return [float(v) for v in array]
    return (array / norm).tolist()


class EmbeddingService:
    """Text to unit-length vector, backed by an OpenAI-compatible endpoint.

    The service is disabled when no API key is configured and no client was
    injected; every call then raises ServiceDisabledError.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        model: str | None = None,
        dimensions: int | None = None,
        cache_size: int | None = None,
        batch_size: int | None = None,
        batch_delay: float | None = None,
    ) -> None:
        if client is None and settings.embeddings_enabled:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.embedding_base_url,
            )
        self.client = client
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions
        self.batch_size = batch_size or settings.embedding_batch_size
        self.batch_delay = (
            settings.embedding_batch_delay_seconds if batch_delay is None else batch_delay
        )
        self._cache: FIFOCache = FIFOCache(maxsize=cache_size or settings.embedding_cache_size)
        self._hits = 0
        self._misses = 0

    @property
    def is_enabled(self) -> bool:
        return self.client is not None

    async def embed(self, text: str) -> list[float]:
        """Generate a normalized embedding for one text.

        Raises:
            ServiceDisabledError: No embedding backend is configured.
            EmbeddingGenerationError: The backend failed or returned bad data.
        """
        if not self.is_enabled:
            raise ServiceDisabledError("Embedding service is not configured")

        cleaned = preprocess_text(text)
        key = (self.model, cleaned)
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            return list(cached)
        self._misses += 1

        try:
            response = await self.client.embeddings.create(
                input=cleaned,
                model=self.model,
                dimensions=self.dimensions,
            )
            raw = response.data[0].embedding
        except Exception as exc:
            logger.warning("Embedding request failed: %s", exc)
            raise EmbeddingGenerationError(f"Failed to generate embedding: {exc}") from exc

        if not isinstance(raw, (list, tuple)) or len(raw) != self.dimensions:
            size = len(raw) if isinstance(raw, (list, tuple)) else type(raw).__name__
            raise EmbeddingGenerationError(
                f"Expected embedding of dimension {self.dimensions}, got {size}"
            )

        try:
            vector = normalize_vector(raw)
        except (TypeError, ValueError) as exc:
            raise EmbeddingGenerationError(f"Malformed embedding payload: {exc}") from exc

        self._cache[key] = tuple(vector)
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, preserving input order.

        Texts are sent in chunks of ``batch_size`` that run concurrently, with a
        short pause between chunks to stay under upstream rate limits.
        """
        if not self.is_enabled:
            raise ServiceDisabledError("Embedding service is not configured")
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            if start > 0 and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
            chunk = texts[start : start + self.batch_size]
            vectors.extend(await asyncio.gather(*(self.embed(t) for t in chunk)))
        return vectors

    def cache_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": self._cache.maxsize,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total else None,
        }

    def clear_cache(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0


# Singleton instance
_embedding_service: EmbeddingService | None = None


def get_embedding_service() -> EmbeddingService:
    """Get or create embedding service instance."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service

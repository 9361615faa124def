"""Redis-backed response cache for search and compare results."""

import json
import logging
from collections.abc import Sequence
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from pokedex.schemas.pokemon import SearchParams

logger = logging.getLogger(__name__)


def _part(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(sorted(str(v) for v in value))
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def build_search_cache_key(params: SearchParams) -> str:
    """Cache key for a validated search; list values are sorted so order is irrelevant."""
    parts = (
        params.page,
        params.limit,
        params.types,
        params.generations,
        params.min_hp,
        params.min_attack,
        params.min_defense,
        params.min_speed,
        params.search.lower() if params.search else None,
        params.sort_by,
        params.sort_order,
    )
    return "search:" + ":".join(_part(p) for p in parts)


def compare_keys(keys: Sequence[str | int]) -> list[str]:
    """Canonical compare keys: ids without leading zeros, names lower-cased, sorted."""
    normalized = []
    for key in keys:
        text = str(key).strip().lower()
        if text.isdecimal() and text.isascii():
            text = str(int(text))
        normalized.append(text)
    return sorted(normalized)


def build_compare_cache_key(keys: Sequence[str | int]) -> str:
    return "compare:" + ",".join(compare_keys(keys))


class ResponseCache:
    """JSON values in Redis with a TTL.

    Redis failures are logged and treated as a miss, so an unavailable
    cache never breaks a request.
    """

    def __init__(self, redis: aioredis.Redis) -> None:
        self.redis = redis

    async def get(self, key: str) -> Any | None:
        try:
            cached = await self.redis.get(key)
        except RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.redis.set(key, json.dumps(value), ex=ttl)
        except RedisError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as exc:
            logger.warning("Cache delete failed for %s: %s", key, exc)

"""Catalog store access: filtered listing, nearest-neighbour queries, backfill writes."""

import enum
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from sqlalchemy import ColumnElement, Select, and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pokedex.models.pokemon import STAT_NAMES, EmbeddingChannel, Pokemon
from pokedex.services.filter_compiler import SearchFilterSet

UPSERT_COLUMNS: tuple[str, ...] = (
    "name",
    "generation",
    *STAT_NAMES,
    "height",
    "weight",
    "types",
    "abilities",
    "search_text",
)


class SortField(str, enum.Enum):
    POKEMON_ID = "pokemon_id"
    NAME = "name"
    GENERATION = "generation"
    HP = "hp"
    ATTACK = "attack"
    DEFENSE = "defense"
    SPECIAL_ATTACK = "special_attack"
    SPECIAL_DEFENSE = "special_defense"
    SPEED = "speed"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def filter_conditions(filter_set: SearchFilterSet) -> list[ColumnElement[bool]]:
    """SQL conditions for one filter set; an empty set yields no conditions."""
    conditions: list[ColumnElement[bool]] = []

    if filter_set.text:
        pattern = f"%{escape_like(filter_set.text)}%"
        conditions.append(
            or_(
                Pokemon.name.ilike(pattern, escape="\\"),
                Pokemon.search_text.ilike(pattern, escape="\\"),
            )
        )

    if filter_set.types:
        conditions.append(Pokemon.types.overlap(list(filter_set.types)))

    if filter_set.generations:
        conditions.append(Pokemon.generation.in_(filter_set.generations))

    for key, value in filter_set.thresholds.items():
        bound, stat = key.split("_", 1)
        column = getattr(Pokemon, stat)
        conditions.append(column >= value if bound == "min" else column <= value)

    return conditions


def build_conditions(filter_sets: Iterable[SearchFilterSet]) -> list[ColumnElement[bool]]:
    """AND together the conditions of several filter sets."""
    conditions: list[ColumnElement[bool]] = []
    for filter_set in filter_sets:
        conditions.extend(filter_conditions(filter_set))
    return conditions


def build_search_query(
    filter_sets: Sequence[SearchFilterSet],
    *,
    page: int,
    limit: int,
    sort_by: SortField = SortField.POKEMON_ID,
    sort_order: SortOrder = SortOrder.ASC,
) -> Select[tuple[Pokemon]]:
    column = getattr(Pokemon, sort_by.value)
    ordering = column.desc() if sort_order is SortOrder.DESC else column.asc()
    stmt = select(Pokemon).where(*build_conditions(filter_sets)).order_by(ordering)
    if sort_by is not SortField.POKEMON_ID:
        stmt = stmt.order_by(Pokemon.pokemon_id.asc())
    return stmt.offset((page - 1) * limit).limit(limit)


def build_count_query(filter_sets: Sequence[SearchFilterSet]) -> Select[tuple[int]]:
    return select(func.count()).select_from(Pokemon).where(*build_conditions(filter_sets))


def build_vector_query(
    channel: EmbeddingChannel,
    vector: list[float],
    *,
    limit: int,
    threshold: float,
    filter_sets: Sequence[SearchFilterSet] = (),
    exclude_id: int | None = None,
) -> Select[tuple[Pokemon, float]]:
    """Cosine nearest-neighbour query; similarity is ``1 - cosine distance``."""
    embedding = getattr(Pokemon, channel.attribute)
    distance = embedding.cosine_distance(vector)
    stmt = (
        select(Pokemon, (1 - distance).label("similarity"))
        .where(
            embedding.isnot(None),
            distance <= 1 - threshold,
            *build_conditions(filter_sets),
        )
        .order_by(distance, Pokemon.pokemon_id)
        .limit(limit)
    )
    if exclude_id is not None:
        stmt = stmt.where(Pokemon.pokemon_id != exclude_id)
    return stmt


def missing_embedding_condition() -> ColumnElement[bool]:
    return or_(*(getattr(Pokemon, c.attribute).is_(None) for c in EmbeddingChannel))


class PokemonStore(Protocol):
    """Operations the search core needs from the catalog store."""

    async def find_all(
        self,
        filter_sets: Sequence[SearchFilterSet],
        *,
        page: int,
        limit: int,
        sort_by: SortField = SortField.POKEMON_ID,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> tuple[list[Pokemon], int]: ...

    async def find_by_id(self, pokemon_id: int) -> Pokemon | None: ...

    async def find_by_ids(self, pokemon_ids: Sequence[int]) -> list[Pokemon]: ...

    async def find_by_names(self, names: Sequence[str]) -> list[Pokemon]: ...

    async def vector_search(
        self,
        channel: EmbeddingChannel,
        vector: list[float],
        *,
        limit: int,
        threshold: float,
        filter_sets: Sequence[SearchFilterSet] = (),
        exclude_id: int | None = None,
    ) -> list[tuple[Pokemon, float]]: ...

    async def find_missing_embeddings(self) -> list[Pokemon]: ...

    async def update_embeddings(
        self, pokemon_id: int, vectors: dict[EmbeddingChannel, list[float]]
    ) -> None: ...

    async def bulk_upsert(self, records: Sequence[dict[str, Any]]) -> int: ...

    async def embedding_stats(self) -> tuple[int, int]: ...


class PokemonRepository:
    """PostgreSQL + pgvector implementation of PokemonStore."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_all(
        self,
        filter_sets: Sequence[SearchFilterSet],
        *,
        page: int,
        limit: int,
        sort_by: SortField = SortField.POKEMON_ID,
        sort_order: SortOrder = SortOrder.ASC,
    ) -> tuple[list[Pokemon], int]:
        """Return one page of Pokemon matching every filter set, plus the total."""
        total = (await self.db.execute(build_count_query(filter_sets))).scalar_one()
        if not total:
            return [], 0
        stmt = build_search_query(
            filter_sets, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def find_by_id(self, pokemon_id: int) -> Pokemon | None:
        return await self.db.get(Pokemon, pokemon_id)

    async def find_by_ids(self, pokemon_ids: Sequence[int]) -> list[Pokemon]:
        if not pokemon_ids:
            return []
        stmt = select(Pokemon).where(Pokemon.pokemon_id.in_(pokemon_ids))
        result = await self.db.execute(stmt.order_by(Pokemon.pokemon_id))
        return list(result.scalars().all())

    async def find_by_names(self, names: Sequence[str]) -> list[Pokemon]:
        """Case-insensitive lookup by exact name."""
        if not names:
            return []
        lowered = [n.strip().lower() for n in names]
        stmt = select(Pokemon).where(func.lower(Pokemon.name).in_(lowered))
        result = await self.db.execute(stmt.order_by(Pokemon.pokemon_id))
        return list(result.scalars().all())

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
        stmt = build_vector_query(
            channel,
            vector,
            limit=limit,
            threshold=threshold,
            filter_sets=filter_sets,
            exclude_id=exclude_id,
        )
        result = await self.db.execute(stmt)
        return [(row.Pokemon, float(row.similarity)) for row in result.all()]

    async def find_missing_embeddings(self) -> list[Pokemon]:
        stmt = select(Pokemon).where(missing_embedding_condition()).order_by(Pokemon.pokemon_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_embeddings(
        self, pokemon_id: int, vectors: dict[EmbeddingChannel, list[float]]
    ) -> None:
        """Write embedding columns for one Pokemon in its own transaction.

        A failed write is rolled back so the session can serve the next one.
        The rollback expires loaded rows, so callers should not rely on them
        afterwards.
        """
        stmt = (
            update(Pokemon)
            .where(Pokemon.pokemon_id == pokemon_id)
            .values({channel.attribute: vector for channel, vector in vectors.items()})
            .execution_options(synchronize_session=False)
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def bulk_upsert(self, records: Sequence[dict[str, Any]]) -> int:
        """Insert Pokemon, updating catalog fields of rows whose id already exists."""
        if not records:
            return 0
        stmt = insert(Pokemon).values(list(records))
        stmt = stmt.on_conflict_do_update(
            index_elements=[Pokemon.pokemon_id],
            set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS},
        )
        await self.db.execute(stmt)
        await self.db.commit()
        return len(records)

    async def embedding_stats(self) -> tuple[int, int]:
        """Return (total Pokemon, Pokemon with every embedding channel populated)."""
        complete = and_(
            *(getattr(Pokemon, c.attribute).isnot(None) for c in EmbeddingChannel)
        )
        stmt = select(
            func.count(),
            func.count().filter(complete),
        ).select_from(Pokemon)
        total, with_embeddings = (await self.db.execute(stmt)).one()
        return int(total), int(with_embeddings)

"""Pokemon catalog model with per-channel vector embeddings."""

import enum
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from pokedex.core.config import settings
from pokedex.models.base import Base

STAT_NAMES: tuple[str, ...] = (
    "hp",
    "attack",
    "defense",
    "special_attack",
    "special_defense",
    "speed",
)


class EmbeddingChannel(str, enum.Enum):
    """Named embedding columns, each describing a different aspect of a Pokemon."""

    NAME = "name"
    TYPE = "type"
    DESCRIPTION = "description"
    COMBINED = "combined"

    @property
    def attribute(self) -> str:
        """Name of the model attribute holding this channel's vector."""
        return f"{self.value}_embedding"


class Pokemon(Base):
    """A Pokemon as written by the catalog ingestion job.

    Rows are read-only for the search core; only the embedding backfill
    writes to the ``*_embedding`` columns, which stay NULL until it runs.
    """

    __tablename__ = "pokemons"

    # Identity comes from the upstream Pokedex number
    pokemon_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    generation: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Base stats
    hp: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    attack: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    defense: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    special_attack: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    special_defense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    speed: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    types: Mapped[list[str]] = mapped_column(ARRAY(String), default=list, nullable=False)
    abilities: Mapped[list[str]] = mapped_column(ARRAY(String), default=list, nullable=False)
    search_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Vector embeddings, L2-normalized, one per EmbeddingChannel
    name_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions), nullable=True
    )
    type_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions), nullable=True
    )
    description_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions), nullable=True
    )
    combined_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions), nullable=True
    )

    __table_args__ = (
        Index("ix_pokemons_types", "types", postgresql_using="gin"),
        *(
            Index(
                f"ix_pokemons_{channel.attribute}_cosine",
                channel.attribute,
                postgresql_using="ivfflat",
                postgresql_with={"lists": 100},
                postgresql_ops={channel.attribute: "vector_cosine_ops"},
            )
            for channel in EmbeddingChannel
        ),
    )

    def embedding_for(self, channel: EmbeddingChannel) -> Any:
        """Return the stored vector for a channel (None until backfilled)."""
        return getattr(self, channel.attribute)

    def __repr__(self) -> str:
        return f"<Pokemon #{self.pokemon_id} {self.name}>"

"""SQLAlchemy models."""

from pokedex.models.base import Base
from pokedex.models.pokemon import STAT_NAMES, EmbeddingChannel, Pokemon

__all__ = [
    "Base",
    "EmbeddingChannel",
    "Pokemon",
    "STAT_NAMES",
]

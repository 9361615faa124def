"""Pydantic schemas for request/response validation."""

from pokedex.schemas.common import BaseSchema, ErrorResponse, HealthResponse

__all__ = [
    "BaseSchema",
    "HealthResponse",
    "ErrorResponse",
]

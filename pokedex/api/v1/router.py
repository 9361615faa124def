"""API v1 router combining all route modules."""

from fastapi import APIRouter

from pokedex.api.v1 import health, pokemon

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Pokemon search, comparison and embedding administration
api_router.include_router(
    pokemon.router,
    prefix="/pokemon",
    tags=["pokemon"],
)

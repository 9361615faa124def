"""Domain errors raised by the search core.

Stage failures inside the search orchestrator are recovered by advancing to
the next fallback stage; the HTTP layer maps whatever escapes to a status
code in ``pokedex.main``.
"""


class PokedexError(Exception):
    """Base class for all domain errors."""

    code = "POKEDEX_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ServiceDisabledError(PokedexError):
    """The embedding provider is not configured.

    Expected in deployments without an embedding key; callers skip vector
    search instead of retrying.
    """

    code = "SERVICE_DISABLED"


class EmbeddingGenerationError(PokedexError):
    """The upstream embedding call failed or returned malformed data."""

    code = "EMBEDDING_GENERATION_ERROR"


class EmbeddingMissingError(PokedexError):
    """A Pokemon has no vector for the requested embedding channel."""

    code = "EMBEDDING_MISSING"


class VectorSearchError(PokedexError):
    """The nearest-neighbour query against the catalog store failed."""

    code = "VECTOR_SEARCH_ERROR"


class ValidationError(PokedexError):
    """Malformed external input (rejected without any fallback)."""

    code = "VALIDATION_ERROR"


class NotFoundError(PokedexError):
    """A requested Pokemon does not exist."""

    code = "NOT_FOUND"

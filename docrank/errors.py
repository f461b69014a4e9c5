"""
Error types raised by the retrieval engine.

Callers (the chat layer, the HTTP API) only ever see subclasses of
DocRankError; low-level client errors are wrapped at the boundary where
they occur.
"""

from typing import Optional


class DocRankError(Exception):
    """Base class for all engine errors."""


class EmbeddingProviderError(DocRankError):
    """Embedding provider call failed. Retried unless transient is False."""

    transient: bool = True


class ProviderAuthenticationError(EmbeddingProviderError):
    """Bad or missing credentials. Never retried."""

    transient = False


class RateLimitError(EmbeddingProviderError):
    """Provider rejected the call because of rate limits."""


class EmbeddingValidationError(DocRankError):
    """Vector is not fit for persistence (shape or values)."""


class DimensionMismatchError(EmbeddingValidationError):
    """Vector length differs from the provider's declared dimensionality."""

    def __init__(self, expected: int, actual: int, model: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.model = model
        message = f"Embedding dimension mismatch: expected {expected}, got {actual}"
        if model:
            message += f". Model: {model}"
        super().__init__(message)


class ProviderNotConfiguredError(DocRankError):
    """No embedding provider is configured, so retrieval cannot run."""


class VectorSearchError(DocRankError):
    """Similarity query failed. error_type classifies the cause."""

    def __init__(self, message: str, error_type: str = "UNKNOWN"):
        self.error_type = error_type
        super().__init__(message)


class RetrievalError(DocRankError):
    """A retrieval call failed for a reason with no fallback."""


class InvalidQueryError(DocRankError):
    """The caller supplied an empty question or tenant id."""


class LLMError(DocRankError):
    """LLM provider call failed or returned an unusable response."""


def is_transient(error: BaseException) -> bool:
    """Whether an embedding failure is worth retrying."""
    if isinstance(error, (EmbeddingValidationError, InvalidQueryError)):
        return False
    if isinstance(error, EmbeddingProviderError):
        return error.transient
    return True

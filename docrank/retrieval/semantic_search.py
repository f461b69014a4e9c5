"""
Semantic Search - Tenant-scoped vector similarity search.

This is the one mandatory retrieval signal: failures here propagate as
classified errors instead of degrading.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import RetrievalError, VectorSearchError
from .filters import SearchFilters
from .vector_store import SemanticHit, VectorStore

logger = logging.getLogger(__name__)

# (error_type, keywords in the low-level message, user-legible message)
_ERROR_TAXONOMY = [
    (
        "DIMENSION_MISMATCH",
        ("dimension", "dimensionality"),
        "Embedding dimension mismatch. The query embedding dimensions don't match stored embeddings.",
    ),
    (
        "COLLECTION_NOT_FOUND",
        ("does not exist", "not found", "no such table", "relation"),
        "Embedding collection not found. Index documents before searching.",
    ),
    (
        "PERMISSION_ERROR",
        ("permission", "access denied", "readonly", "read-only"),
        "Vector store permission error. Check storage permissions.",
    ),
    (
        "MALFORMED_QUERY",
        ("syntax", "invalid", "malformed", "expected where"),
        "Malformed vector search query.",
    ),
    (
        "VECTOR_UNAVAILABLE",
        ("hnsw", "vector", "index", "extension"),
        "Vector search is not available in the configured store.",
    ),
]


def classify_vector_error(error: BaseException) -> VectorSearchError:
    """Map a low-level store error onto a user-legible VectorSearchError."""
    text = str(error).lower()
    for error_type, keywords, message in _ERROR_TAXONOMY:
        if any(k in text for k in keywords):
            return VectorSearchError(f"RAG search failed: {message}", error_type)
    return VectorSearchError(f"RAG search failed: {error}", "UNKNOWN")


@dataclass
class SemanticSearchConfig:
    """Configuration for semantic search."""
    min_similarity: float = 0.7
    timeout: float = 10.0  # seconds per vector query


class SemanticSearch:
    """
    Cosine similarity search over stored document embeddings.

    Usage:
        search = SemanticSearch(vector_store)
        hits = await search.search(query_vector, "tenant_1", limit=5)
    """

    def __init__(self, vector_store: VectorStore, config: Optional[SemanticSearchConfig] = None):
        self.vector_store = vector_store
        self.config = config or SemanticSearchConfig()

    async def search(
        self,
        query_vector: list[float],
        tenant_id: str,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> list[SemanticHit]:
        """
        Find the documents most similar to query_vector.

        Raises:
            VectorSearchError: store failure, classified by cause
            RetrievalError: the query timed out
        """
        min_similarity = self.config.min_similarity
        if filters and filters.min_similarity is not None:
            min_similarity = filters.min_similarity

        try:
            return await asyncio.wait_for(
                self.vector_store.search(
                    query_vector,
                    tenant_id,
                    limit,
                    filters=filters,
                    min_similarity=min_similarity,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Semantic search timed out after {self.config.timeout}s (tenant={tenant_id})")
            raise RetrievalError("Semantic search timed out") from e
        except VectorSearchError:
            raise
        except Exception as e:
            classified = classify_vector_error(e)
            logger.error(
                f"Failed to search similar documents (tenant={tenant_id}, limit={limit}): "
                f"type={classified.error_type}, original={e!r}"
            )
            raise classified from e

"""Tests for semantic search error handling."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from docrank.errors import RetrievalError, VectorSearchError
from docrank.retrieval import SearchFilters, SemanticSearch, SemanticSearchConfig, classify_vector_error
from docrank.retrieval.vector_store import SemanticHit


@pytest.mark.parametrize("message, error_type", [
    ("Embedding dimension 3 does not match collection dimensionality 4", "DIMENSION_MISMATCH"),
    ("Collection document_embeddings does not exist.", "COLLECTION_NOT_FOUND"),
    ("attempt to write a readonly database", "PERMISSION_ERROR"),
    ("Expected where to have exactly one operator", "MALFORMED_QUERY"),
    ("hnsw segment reader failed", "VECTOR_UNAVAILABLE"),
    ("something odd happened", "UNKNOWN"),
])
def test_classify_vector_error(message, error_type):
    error = classify_vector_error(RuntimeError(message))
    assert error.error_type == error_type
    assert str(error).startswith("RAG search failed:")


@pytest.mark.asyncio
async def test_store_errors_are_classified():
    store = AsyncMock()
    store.search.side_effect = RuntimeError("Collection foo does not exist")

    with pytest.raises(VectorSearchError) as exc_info:
        await SemanticSearch(store).search([0.1, 0.2], "t1", limit=5)

    assert exc_info.value.error_type == "COLLECTION_NOT_FOUND"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_timeout_raises_retrieval_error():
    async def slow_search(*args, **kwargs):
        await asyncio.sleep(1)
        return []

    store = AsyncMock()
    store.search.side_effect = slow_search

    with pytest.raises(RetrievalError):
        await SemanticSearch(store, SemanticSearchConfig(timeout=0.01)).search([0.1], "t1", limit=5)


@pytest.mark.asyncio
async def test_filter_threshold_overrides_default():
    store = AsyncMock()
    store.search.return_value = [SemanticHit("d1", 0.9)]
    search = SemanticSearch(store, SemanticSearchConfig(min_similarity=0.7))

    await search.search([0.1], "t1", limit=3)
    assert store.search.call_args.kwargs["min_similarity"] == 0.7

    await search.search([0.1], "t1", limit=3, filters=SearchFilters(min_similarity=0.56))
    assert store.search.call_args.kwargs["min_similarity"] == 0.56

"""
Retrieval module.

Components:
- EmbeddingGenerator: Chunk, embed (with retries), validate and store document vectors
- QueryEmbeddingCache: TTL cache of query vectors
- VectorStore: Store and search embeddings (ChromaDB)
- DocumentStore: Document text lookup and BM25 full-text search
- SemanticSearch / KeywordSearch: The two ranking signals
- HybridRetriever: Combine semantic + keyword search with RRF
- Reranker: LLM relevance re-ranking
"""

from .document_store import Document, DocumentStore, DocumentStoreConfig, LocalDocumentStore, tokenize
from .embedding_generator import EmbeddingGenerator, GeneratorConfig, retry_with_backoff, validate_embedding
from .filters import DateRange, SearchFilters
from .hybrid_retriever import (
    FusedHit,
    HybridConfig,
    HybridResult,
    HybridRetriever,
    RetrievedDocument,
    reciprocal_rank_fusion,
)
from .keyword_search import KeywordHit, KeywordSearch, KeywordSearchConfig
from .query_cache import QueryEmbeddingCache
from .reranker import Reranker, RerankerConfig
from .semantic_search import SemanticSearch, SemanticSearchConfig, classify_vector_error
from .stage_result import StageResult
from .vector_store import SemanticHit, VectorRecord, VectorStore, VectorStoreConfig

__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreConfig",
    "LocalDocumentStore",
    "tokenize",
    "EmbeddingGenerator",
    "GeneratorConfig",
    "retry_with_backoff",
    "validate_embedding",
    "DateRange",
    "SearchFilters",
    "FusedHit",
    "HybridConfig",
    "HybridResult",
    "HybridRetriever",
    "RetrievedDocument",
    "reciprocal_rank_fusion",
    "KeywordHit",
    "KeywordSearch",
    "KeywordSearchConfig",
    "QueryEmbeddingCache",
    "Reranker",
    "RerankerConfig",
    "SemanticSearch",
    "SemanticSearchConfig",
    "classify_vector_error",
    "StageResult",
    "SemanticHit",
    "VectorRecord",
    "VectorStore",
    "VectorStoreConfig",
]

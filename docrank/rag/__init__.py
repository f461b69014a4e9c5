"""
RAG retrieval module.

Components:
- RetrievalPipeline: Query expansion, hybrid retrieval, re-ranking and hydration
- QueryExpander: Rewrite follow-up questions using conversation history
"""

from .query_expander import ExpanderConfig, QueryExpander
from .retrieval_pipeline import RAGConfig, RAGOptions, RetrievalContext, RetrievalPipeline, build_pipeline

__all__ = [
    "ExpanderConfig",
    "QueryExpander",
    "RAGConfig",
    "RAGOptions",
    "RetrievalContext",
    "RetrievalPipeline",
    "build_pipeline",
]

"""
Hybrid Retriever - Combines semantic search with keyword search.

Uses Reciprocal Rank Fusion (RRF) to merge results from both retrieval methods.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from .filters import SearchFilters
from .keyword_search import KeywordHit, KeywordSearch
from .semantic_search import SemanticSearch
from .stage_result import StageResult
from .vector_store import SemanticHit

logger = logging.getLogger(__name__)


@dataclass
class HybridConfig:
    """Configuration for hybrid retriever."""
    rrf_k: int = 60  # RRF constant (higher = flatter rank curve)
    candidate_multiplier: int = 2  # Each signal fetches top_k * multiplier candidates
    similarity_relaxation: float = 0.8  # Semantic floor is min_similarity * relaxation


@dataclass
class FusedHit:
    """Document with its summed RRF score."""
    document_id: str
    fused_score: float


@dataclass
class RetrievedDocument:
    """Single retrieval result returned to the caller."""
    id: str
    document_id: str
    similarity: float
    text: Optional[str] = None
    metadata: Optional[dict] = None
    rerank_score: Optional[float] = None


@dataclass
class HybridResult:
    """Fused ranking plus the per-signal inputs it came from."""
    fused: list[FusedHit]
    semantic_hits: list[SemanticHit] = field(default_factory=list)
    keyword: StageResult = field(default_factory=lambda: StageResult.skip([]))


def reciprocal_rank_fusion(
    semantic_results: Sequence,
    keyword_results: Sequence,
    limit: int,
    k: int = 60,
) -> list[FusedHit]:
    """
    Fuse two ranked lists using Reciprocal Rank Fusion.

    The item at 0-based position i of a list contributes 1 / (k + i + 1).
    Contributions are summed per document_id, so documents found by both
    lists rise. Only positions matter; raw scores are ignored.
    """
    scores: dict[str, float] = {}

    for results in (semantic_results, keyword_results):
        seen = set()
        for index, result in enumerate(results):
            if result.document_id in seen:
                continue
            seen.add(result.document_id)
            scores[result.document_id] = scores.get(result.document_id, 0.0) + 1.0 / (k + index + 1)

    ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
    return [FusedHit(document_id=doc_id, fused_score=score) for doc_id, score in ranked[:limit]]


class HybridRetriever:
    """
    Hybrid retriever combining semantic and keyword search.

    Both searches run concurrently. Keyword search cannot raise, so a lexical
    failure never cancels the semantic result; a semantic failure propagates.

    Usage:
        retriever = HybridRetriever(semantic_search, keyword_search)
        result = await retriever.search(query_vector, "ABC invoices", "tenant_1", top_k=5)
    """

    def __init__(
        self,
        semantic_search: SemanticSearch,
        keyword_search: KeywordSearch,
        config: Optional[HybridConfig] = None,
    ):
        self.semantic_search = semantic_search
        self.keyword_search = keyword_search
        self.config = config or HybridConfig()

    async def search(
        self,
        query_vector: list[float],
        query_text: str,
        tenant_id: str,
        top_k: int,
        min_similarity: float,
        filters: Optional[SearchFilters] = None,
    ) -> HybridResult:
        """
        Perform hybrid search combining semantic and keyword results.

        Returns:
            HybridResult with at most top_k fused hits
        """
        candidates = top_k * self.config.candidate_multiplier
        semantic_filters = replace(filters or SearchFilters(), min_similarity=min_similarity * self.config.similarity_relaxation)

        semantic_hits, keyword_result = await asyncio.gather(
            self.semantic_search.search(query_vector, tenant_id, candidates, semantic_filters),
            self.keyword_search.search(query_text, tenant_id, candidates, filters),
        )

        keyword_hits: list[KeywordHit] = keyword_result.value
        fused = reciprocal_rank_fusion(semantic_hits, keyword_hits, top_k, k=self.config.rrf_k)

        logger.info(
            f"Hybrid search: semantic={len(semantic_hits)}, keyword={len(keyword_hits)}, fused={len(fused)}"
        )
        return HybridResult(fused=fused, semantic_hits=semantic_hits, keyword=keyword_result)

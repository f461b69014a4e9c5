"""
Keyword Search - Lexical relevance search over document text.

Never raises: on failure or timeout the result is empty and the error is
recorded on the StageResult, meaning "no lexical signal".
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .document_store import DocumentStore, tokenize
from .filters import SearchFilters
from .stage_result import StageResult

logger = logging.getLogger(__name__)

# Floor for the max-rank divisor
MIN_RANK_DIVISOR = 0.001


@dataclass
class KeywordHit:
    """Single keyword search result; rank normalized to [0, 1]."""
    document_id: str
    rank: float


@dataclass
class KeywordSearchConfig:
    """Configuration for keyword search."""
    timeout: float = 5.0  # seconds per lexical query


class KeywordSearch:
    """
    Conjunctive full-text search.

    Usage:
        search = KeywordSearch(document_store)
        result = await search.search("ABC company invoices", "tenant_1", limit=10)
        hits = result.value
    """

    def __init__(self, document_store: DocumentStore, config: Optional[KeywordSearchConfig] = None):
        self.document_store = document_store
        self.config = config or KeywordSearchConfig()

    async def search(
        self,
        query: str,
        tenant_id: str,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> StageResult[list[KeywordHit]]:
        terms = tokenize(query)
        if not terms:
            return StageResult.skip([])

        try:
            rows = await asyncio.wait_for(
                self.document_store.full_text_search(tenant_id, terms, filters, limit),
                timeout=self.config.timeout,
            )
        except Exception as e:
            logger.warning(f"Keyword search failed, returning empty results (tenant={tenant_id}): {e!r}")
            return StageResult.failure([], e)

        # Normalize rank to similarity score (0-1 range)
        max_rank = max([rank for _, rank in rows] + [MIN_RANK_DIVISOR])
        hits = [KeywordHit(document_id=doc_id, rank=rank / max_rank) for doc_id, rank in rows]
        return StageResult.success(hits)

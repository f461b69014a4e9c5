"""
LLM Reranker - Re-rank retrieved documents by asking an LLM for relevance scores.

Re-ranking is a quality enhancement: any failure returns the input order.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from ..errors import LLMError
from ..providers.llm_client import LLMClient
from .hybrid_retriever import RetrievedDocument
from .stage_result import StageResult

logger = logging.getLogger(__name__)

MIN_SCORE = 0.0
MAX_SCORE = 10.0

SYSTEM_PROMPT = """You are a document relevance assessor. Rank the given documents by relevance to the question.
Give each document a score from 0 to 10 (10 = highly relevant, 0 = irrelevant).
Respond in JSON: {"scores": [{"id": "doc_id", "score": 8}, ...]}"""

USER_TEMPLATE = """Question: {question}

Documents:
{documents}

Give a relevance score (0-10) for each document:"""

SCORES_SCHEMA = {
    "type": "object",
    "properties": {
        "scores": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "score": {"type": "number"},
                },
            },
        },
    },
}


@dataclass
class RerankerConfig:
    """Configuration for LLM reranker."""
    snippet_chars: int = 300  # Text per document sent to the LLM
    max_tokens: int = 500
    timeout: float = 20.0


def parse_scores(response: dict) -> dict[str, float]:
    """Map document id -> score in [0, 10] from the model's JSON."""
    scores = response.get("scores")
    if not isinstance(scores, list):
        raise LLMError("Re-rank response has no 'scores' list")

    score_map = {}
    for item in scores:
        if not isinstance(item, dict):
            continue
        doc_id = item.get("id")
        score = item.get("score")
        if not isinstance(doc_id, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        score_map[doc_id] = min(MAX_SCORE, max(MIN_SCORE, float(score)))
    return score_map


class Reranker:
    """
    LLM reranker for improving retrieval quality.

    Documents the model leaves out are scored similarity * 10.

    Usage:
        reranker = Reranker(llm_client)
        result = await reranker.rerank(query, documents)
        documents = result.value
    """

    def __init__(self, llm_client: Optional[LLMClient], config: Optional[RerankerConfig] = None):
        self.llm_client = llm_client
        self.config = config or RerankerConfig()

    @property
    def is_available(self) -> bool:
        return self.llm_client is not None

    def _build_prompt(self, question: str, documents: list[RetrievedDocument]) -> str:
        parts = []
        for i, doc in enumerate(documents, 1):
            snippet = (doc.text or "")[:self.config.snippet_chars] or "No text"
            parts.append(f"[{i}] ID: {doc.document_id}\nContent: {snippet}\n---")
        return USER_TEMPLATE.format(question=question, documents="\n".join(parts))

    async def rerank(
        self,
        query: str,
        documents: list[RetrievedDocument],
    ) -> StageResult[list[RetrievedDocument]]:
        """
        Rerank documents by LLM relevance score.

        Args:
            query: The search query
            documents: Candidates in their current order

        Returns:
            StageResult whose value is sorted by rerank_score (stable), or
            the input list unchanged when skipped or on failure
        """
        if len(documents) < 2 or self.llm_client is None:
            return StageResult.skip(documents)

        try:
            response = await asyncio.wait_for(
                self.llm_client.generate_json(
                    SYSTEM_PROMPT,
                    self._build_prompt(query, documents),
                    schema=SCORES_SCHEMA,
                    max_tokens=self.config.max_tokens,
                ),
                timeout=self.config.timeout,
            )
            score_map = parse_scores(response)
        except Exception as e:
            logger.warning(f"Re-ranking failed, using original order: {e!r}")
            return StageResult.failure(documents, e)

        reranked = [
            replace(doc, rerank_score=score_map.get(doc.document_id, doc.similarity * 10))
            for doc in documents
        ]
        # sorted() is stable: ties keep their prior relative order
        reranked = sorted(reranked, key=lambda d: d.rerank_score, reverse=True)

        logger.info(f"Documents re-ranked successfully: count={len(reranked)}, scored_by_model={len(score_map)}")
        return StageResult.success(reranked)

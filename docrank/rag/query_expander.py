"""
Query Expander - Rewrite follow-up questions into self-contained queries.

Uses the last conversation turns to resolve references ("it", "those", "that
company"). Without an LLM, appends the user's earlier turns as a context hint.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..providers.llm_client import LLMClient
from ..retrieval.stage_result import StageResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a query rewriting expert. Use the conversation history to make the given question self-contained.
Keep the meaning of the original question but resolve missing references (it, that, those, etc.) from the conversation history.
Return only the rewritten question, with no explanation."""

USER_TEMPLATE = """Conversation history:
{history}

Current question: {question}

Rewritten question:"""


@dataclass
class ExpanderConfig:
    """Configuration for query expansion."""
    history_turns: int = 4  # Messages sent to the LLM
    fallback_chars: int = 200  # Hint length when no LLM is available
    max_tokens: int = 200
    timeout: float = 10.0


class QueryExpander:
    """
    Conversation-aware query rewriting.

    Usage:
        expander = QueryExpander(llm_client)
        result = await expander.expand("What about last month?", history)
        query = result.value
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, config: Optional[ExpanderConfig] = None):
        self.llm_client = llm_client
        self.config = config or ExpanderConfig()

    def _fallback(self, question: str, history: list[dict]) -> str:
        history_terms = " ".join(
            msg.get("content", "") for msg in history if msg.get("role") == "user"
        )
        if not history_terms.strip():
            return question
        return f"{question} (Previous context: {history_terms[:self.config.fallback_chars]})"

    async def expand(self, question: str, history: Optional[list[dict]]) -> StageResult[str]:
        """
        Expand question using conversation history.

        Args:
            question: Current user question
            history: Messages as {"role": "user" | "assistant", "content": str}

        Returns:
            StageResult with the query to retrieve with; the original
            question when there is no history or expansion fails
        """
        if not history:
            return StageResult.skip(question)

        if self.llm_client is None:
            return StageResult.success(self._fallback(question, history))

        history_text = "\n".join(
            f"{'User' if msg.get('role') == 'user' else 'Assistant'}: {msg.get('content', '')}"
            for msg in history[-self.config.history_turns:]
        )

        try:
            expanded = await asyncio.wait_for(
                self.llm_client.generate_text(
                    SYSTEM_PROMPT,
                    USER_TEMPLATE.format(history=history_text, question=question),
                    max_tokens=self.config.max_tokens,
                ),
                timeout=self.config.timeout,
            )
        except Exception as e:
            logger.warning(f"Query expansion failed, using original: {e!r}")
            return StageResult.failure(question, e)

        expanded = (expanded or "").strip()
        logger.debug(f"Query expanded with history: original_length={len(question)}, expanded_length={len(expanded)}")
        return StageResult.success(expanded or question)

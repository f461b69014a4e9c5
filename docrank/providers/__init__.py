"""
Provider clients.

Components:
- EmbeddingClient: Turn text into vectors (OpenAI or Nebius)
- LLMClient: Text / JSON completions for re-ranking and query expansion
"""

from .embedding_client import (
    EmbeddingClient,
    EmbeddingConfig,
    OpenAIEmbeddingClient,
    RateLimiter,
    create_embedding_client,
)
from .llm_client import LLMClient, LLMConfig, OpenAILLMClient, create_llm_client, parse_json_response

__all__ = [
    "EmbeddingClient",
    "EmbeddingConfig",
    "OpenAIEmbeddingClient",
    "RateLimiter",
    "create_embedding_client",
    "LLMClient",
    "LLMConfig",
    "OpenAILLMClient",
    "create_llm_client",
    "parse_json_response",
]

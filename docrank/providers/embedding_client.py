"""
Embedding Client - Turn text into vectors using OpenAI or Nebius.

Supports:
- OpenAI text-embedding-3-small (1536 dims) - default
- OpenAI text-embedding-3-large (3072 dims) - best quality
- Nebius OpenAI-compatible endpoints (e.g. BAAI/bge-multilingual-gemma2)

Callers depend on the EmbeddingClient interface; the concrete client is
picked once at startup by create_embedding_client().
"""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..errors import (
    DimensionMismatchError,
    EmbeddingProviderError,
    ProviderAuthenticationError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider."""
    provider: str = "openai"  # "openai" or "nebius"
    model: str = "text-embedding-3-small"
    dimension: Optional[int] = None  # None = derive from model name
    batch_size: int = 50
    requests_per_minute: int = 500  # OpenAI tier 1
    timeout: float = 30.0
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    def resolved_dimension(self) -> int:
        if self.dimension:
            return self.dimension
        if "large" in self.model:
            return 3072
        return 1536


class EmbeddingClient(ABC):
    """Interface every embedding provider implements."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        ...

    @abstractmethod
    def dimensions(self) -> int:
        ...

    @abstractmethod
    def model_name(self) -> str:
        ...


class RateLimiter:
    """Token bucket; one token per provider request."""

    def __init__(self, max_tokens: float, refill_rate: float):
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate  # tokens per second
        self._tokens = max_tokens
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def current_tokens(self) -> float:
        return self._tokens

    def _refill(self):
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self.max_tokens, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    async def acquire(self, tokens: float = 1.0):
        async with self._lock:
            self._refill()
            if self._tokens < tokens:
                await asyncio.sleep((tokens - self._tokens) / self.refill_rate)
                self._refill()
            self._tokens -= tokens


class OpenAIEmbeddingClient(EmbeddingClient):
    """
    Embedding client for OpenAI and OpenAI-compatible (Nebius) endpoints.

    Usage:
        client = OpenAIEmbeddingClient(EmbeddingConfig(api_key="sk-..."))
        vector = await client.embed("ABC company invoices")
    """

    def __init__(self, config: EmbeddingConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self._dimension = config.resolved_dimension()
        requests_per_second = max(config.requests_per_minute, 1) / 60
        self._rate_limiter = RateLimiter(requests_per_second, requests_per_second)

        if client is not None:
            self._client = client
        else:
            if not config.api_key:
                raise ProviderAuthenticationError(f"{config.provider} API key is required")
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        logger.info(
            f"Embedding client initialized ({config.provider}): "
            f"model={config.model}, dim={self._dimension}"
        )

    def dimensions(self) -> int:
        return self._dimension

    def model_name(self) -> str:
        return self.config.model

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts in provider-sized batches.

        Raises:
            ProviderAuthenticationError: credentials rejected
            RateLimitError: provider throttled the request
            DimensionMismatchError: provider returned vectors of another size
            EmbeddingProviderError: any other provider failure
        """
        embeddings = []
        batch_size = self.config.batch_size

        for i in range(0, len(texts), batch_size):
            batch = [t.replace("\n", " ").strip() or " " for t in texts[i:i + batch_size]]
            await self._rate_limiter.acquire(1)
            embeddings.extend(await self._create(batch))

        return embeddings

    async def _create(self, batch: list[str]) -> list[list[float]]:
        kwargs = {"model": self.config.model, "input": batch}
        # Nebius models don't support dimensions parameter
        if self.config.provider != "nebius":
            kwargs["dimensions"] = self._dimension

        try:
            response = await self._client.embeddings.create(**kwargs)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise ProviderAuthenticationError(f"Embedding authentication failed: {e}") from e
        except openai.RateLimitError as e:
            raise RateLimitError(f"Embedding rate limit exceeded: {e}") from e
        except openai.OpenAIError as e:
            raise EmbeddingProviderError(f"Failed to generate embeddings: {e}") from e

        if not response.data:
            raise EmbeddingProviderError(f"No embeddings returned from {self.config.provider}")

        vectors = [list(item.embedding) for item in response.data]
        for vector in vectors:
            if len(vector) != self._dimension:
                raise DimensionMismatchError(self._dimension, len(vector), self.config.model)
        return vectors


def create_embedding_client(config: EmbeddingConfig) -> Optional[EmbeddingClient]:
    """
    Build the embedding client selected by config.provider.

    Returns None when no API key is available, meaning no real provider
    is configured.
    """
    if config.provider == "nebius":
        api_key = config.api_key or os.getenv("LLM_API_KEY")
        base_url = config.base_url or os.getenv("LLM_BASE_URL", "https://api.studio.nebius.ai/v1")
    elif config.provider == "openai":
        api_key = config.api_key or os.getenv("OPENAI_API_KEY")
        base_url = config.base_url
    else:
        raise ValueError(f"Unknown embedding provider: {config.provider}")

    if not api_key:
        logger.warning(f"No API key for embedding provider '{config.provider}' - embeddings unavailable")
        return None

    return OpenAIEmbeddingClient(replace(config, api_key=api_key, base_url=base_url))

"""
Embedding Generator - Produce, validate and persist document embeddings.

- Long texts are chunked and the chunk vectors averaged into one document vector
- Provider calls are retried with exponential backoff, except non-transient errors
- Vectors are validated before they reach the vector store
- generate_and_store never raises; failures come back on the StageResult
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import (
    DimensionMismatchError,
    EmbeddingValidationError,
    ProviderNotConfiguredError,
    is_transient,
)
from ..processing.chunker import chunk_text, needs_chunking
from ..providers.embedding_client import EmbeddingClient
from .document_store import Document
from .stage_result import StageResult
from .vector_store import VectorRecord, VectorStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class GeneratorConfig:
    """Configuration for embedding generation."""
    chunk_size: int = 8000  # estimated tokens before chunking kicks in; chunk length in chars
    chunk_overlap: int = 200
    max_retries: int = 3
    base_delay: float = 1.0  # seconds; delay = base_delay * 2**attempt
    timeout: float = 30.0  # seconds per provider call

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")


def _log_retry(retry_state):
    logger.warning(
        f"Embedding generation attempt {retry_state.attempt_number} failed, "
        f"retrying in {retry_state.next_action.sleep:.2f}s: {retry_state.outcome.exception()}"
    )


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call fn until it succeeds, at most max_retries + 1 times.

    Non-transient errors (authentication, dimension mismatch, validation)
    are raised on the first occurrence.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    retrying = AsyncRetrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()


def validate_embedding(embedding: list[float], expected_dimensions: int, model: Optional[str] = None):
    """
    Raise EmbeddingValidationError unless embedding is fit to store.

    Checks, in order: declared dimensionality, non-empty, finite numbers.
    """
    if len(embedding) != expected_dimensions:
        raise DimensionMismatchError(expected_dimensions, len(embedding), model)
    if len(embedding) == 0:
        raise EmbeddingValidationError("Cannot store empty embedding")
    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise EmbeddingValidationError("Embedding contains invalid values (non-finite numbers)")


def average_vectors(vectors: list[list[float]]) -> list[float]:
    """Element-wise mean of equally sized vectors."""
    if not vectors:
        raise EmbeddingValidationError("No vectors to average")
    count = len(vectors)
    return [sum(column) / count for column in zip(*vectors)]


class EmbeddingGenerator:
    """
    Generate document embeddings and store them.

    Usage:
        generator = EmbeddingGenerator(client, vector_store)
        vector = await generator.generate_embedding("query text")
        result = await generator.generate_and_store("tenant_1", "doc_1", text)
    """

    def __init__(
        self,
        client: Optional[EmbeddingClient],
        vector_store: Optional[VectorStore] = None,
        config: Optional[GeneratorConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.vector_store = vector_store
        self.config = config or GeneratorConfig()
        self._sleep = sleep

    @property
    def is_available(self) -> bool:
        """Check if an embedding provider is configured."""
        return self._client is not None

    @property
    def client(self) -> EmbeddingClient:
        if self._client is None:
            raise ProviderNotConfiguredError(
                "No embedding provider configured. Set EMBEDDING_PROVIDER and required API keys."
            )
        return self._client

    def dimensions(self) -> int:
        return self.client.dimensions()

    def model_name(self) -> str:
        return self.client.model_name()

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate embedding for a text with retry logic."""
        if not text or not text.strip():
            raise EmbeddingValidationError("Cannot embed empty text")

        client = self.client

        async def call():
            return await asyncio.wait_for(client.embed(text), timeout=self.config.timeout)

        try:
            return await retry_with_backoff(call, self.config.max_retries, self.config.base_delay, self._sleep)
        except Exception as e:
            logger.error(f"Failed to generate embedding (text_length={len(text)}): {e}")
            raise

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts (batch) with retry logic."""
        if not texts:
            return []

        client = self.client
        start_time = time.time()

        async def call():
            return await asyncio.wait_for(client.embed_batch(texts), timeout=self.config.timeout)

        try:
            embeddings = await retry_with_backoff(call, self.config.max_retries, self.config.base_delay, self._sleep)
        except Exception as e:
            logger.error(
                f"Batch embedding generation failed: model={client.model_name()}, "
                f"batch_size={len(texts)}, duration_ms={(time.time() - start_time) * 1000:.0f}, error={e}"
            )
            raise

        total_chars = sum(len(t) for t in texts)
        logger.info(
            f"Batch embedding generation completed: model={client.model_name()}, "
            f"batch_size={len(texts)}, dimensions={len(embeddings[0]) if embeddings else 0}, "
            f"avg_text_length={total_chars // len(texts)}, "
            f"duration_ms={(time.time() - start_time) * 1000:.0f}"
        )
        return embeddings

    async def embed_document(self, text: str) -> list[float]:
        """
        Produce one vector for a whole document.

        Texts estimated above chunk_size tokens are split into overlapping
        chunks whose vectors are averaged.
        """
        chunk_size = self.config.chunk_size
        if not needs_chunking(text, chunk_size):
            return await self.generate_embedding(text)

        chunks = chunk_text(text, chunk_size, self.config.chunk_overlap)
        logger.info(
            f"Document text exceeds chunk size, chunking before embedding: "
            f"text_length={len(text)}, chunk_size={chunk_size}, chunks={len(chunks)}"
        )
        return average_vectors(await self.generate_embeddings(chunks))

    async def store_embedding(
        self,
        tenant_id: str,
        document_id: str,
        embedding: list[float],
        model: Optional[str] = None,
        document: Optional[Document] = None,
    ) -> VectorRecord:
        """
        Validate and upsert a document embedding.

        Raises:
            EmbeddingValidationError: wrong shape or values; nothing is written
        """
        if self.vector_store is None:
            raise RuntimeError("EmbeddingGenerator has no vector store")

        model = model or self.model_name()
        validate_embedding(embedding, self.dimensions(), model)

        record = VectorRecord(
            tenant_id=tenant_id,
            document_id=document_id,
            embedding=list(embedding),
            model=model,
        )
        if document is not None:
            record.client_company_id = document.client_company_id
            record.document_type = document.type
            record.document_created_at = document.created_at
            record.is_deleted = document.is_deleted

        await self.vector_store.upsert(record)
        logger.info(f"Document embedding stored: tenant={tenant_id}, document={document_id}, model={model}, dimensions={len(embedding)}")
        return record

    async def generate_and_store(
        self,
        tenant_id: str,
        document_id: str,
        text: str,
        document: Optional[Document] = None,
    ) -> StageResult[Optional[VectorRecord]]:
        """
        Embed a document and persist the vector.

        Failures are logged and returned, never raised.
        """
        try:
            embedding = await self.embed_document(text)
            record = await self.store_embedding(tenant_id, document_id, embedding, document=document)
        except Exception as e:
            logger.error(f"Failed to generate and store document embedding: tenant={tenant_id}, document={document_id}, error={e}")
            return StageResult.failure(None, e)
        return StageResult.success(record)

    async def get_document_embedding(self, tenant_id: str, document_id: str) -> Optional[list[float]]:
        """Get embedding for a document if it exists."""
        if self.vector_store is None:
            return None
        record = await self.vector_store.get(tenant_id, document_id)
        return record.embedding if record else None

    async def mark_deleted(self, tenant_id: str, document_id: str) -> bool:
        """Flag a stored vector as belonging to a soft-deleted document."""
        if self.vector_store is None:
            return False
        return await self.vector_store.mark_deleted(tenant_id, document_id)

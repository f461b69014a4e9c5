"""
Retrieval Pipeline - Context retrieval for the chat layer.

Combines query expansion, semantic / hybrid search, optional LLM re-ranking
and document hydration.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from ..errors import DocRankError, InvalidQueryError, RetrievalError
from ..providers import create_embedding_client, create_llm_client
from ..retrieval import (
    Document,
    DocumentStore,
    EmbeddingGenerator,
    HybridConfig,
    HybridRetriever,
    KeywordSearch,
    LocalDocumentStore,
    QueryEmbeddingCache,
    Reranker,
    RetrievedDocument,
    SearchFilters,
    SemanticSearch,
    StageResult,
    VectorRecord,
    VectorStore,
)
from .query_expander import QueryExpander

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


@dataclass
class RAGConfig:
    """Configuration for the retrieval pipeline."""
    top_k: int = 5
    min_similarity: float = 0.7
    snippet_chars: int = 1000  # Text returned per document
    hydrate_timeout: float = 5.0  # seconds per document fetch
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 1000


@dataclass
class RAGOptions:
    """Per-call retrieval options."""
    top_k: Optional[int] = None
    min_similarity: Optional[float] = None
    filters: Optional[SearchFilters] = None
    include_metadata: bool = False
    use_hybrid_search: bool = False
    use_reranking: bool = False
    conversation_history: list[dict] = field(default_factory=list)


@dataclass
class RetrievalContext:
    """Context handed back to the chat layer."""
    documents: list[RetrievedDocument]
    query_embedding: list[float]
    total_results: int
    hybrid_results: Optional[int] = None
    effective_query: str = ""
    degraded_stages: list[str] = field(default_factory=list)


class RetrievalPipeline:
    """
    Retrieval entry point.

    Pipeline:
    1. Query expansion (when conversation history is present)
    2. Semantic search, or semantic + keyword search fused with RRF
    3. LLM re-ranking (hybrid only, optional)
    4. Document hydration (snippet + metadata)

    Usage:
        pipeline = build_pipeline(load_config())
        context = await pipeline.retrieve_enhanced_context(
            "ABC company invoices", "tenant_1", RAGOptions(use_hybrid_search=True)
        )
    """

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        semantic_search: SemanticSearch,
        document_store: DocumentStore,
        keyword_search: Optional[KeywordSearch] = None,
        reranker: Optional[Reranker] = None,
        query_expander: Optional[QueryExpander] = None,
        query_cache: Optional[QueryEmbeddingCache] = None,
        config: Optional[RAGConfig] = None,
        hybrid_config: Optional[HybridConfig] = None,
    ):
        self.config = config or RAGConfig()
        self.embedding_generator = embedding_generator
        self.semantic_search = semantic_search
        self.document_store = document_store
        self.keyword_search = keyword_search or KeywordSearch(document_store)
        self.reranker = reranker
        self.query_expander = query_expander or QueryExpander()
        self.query_cache = query_cache or QueryEmbeddingCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.hybrid_retriever = HybridRetriever(self.semantic_search, self.keyword_search, hybrid_config)

    async def generate_query_embedding(self, query: str) -> list[float]:
        """Generate embedding for a query text with caching."""
        return await self.query_cache.get_or_compute(query, self.embedding_generator.generate_embedding)

    async def retrieve_context(
        self,
        question: str,
        tenant_id: str,
        options: Optional[RAGOptions] = None,
    ) -> RetrievalContext:
        """Retrieve context using semantic search only."""
        options = options or RAGOptions()
        return await self._guarded("retrieve_context", self._semantic_context, question, tenant_id, options)

    async def hybrid_search(
        self,
        question: str,
        tenant_id: str,
        options: Optional[RAGOptions] = None,
    ) -> RetrievalContext:
        """Retrieve context with semantic + keyword search fused by RRF, optionally re-ranked."""
        options = options or RAGOptions()
        return await self._guarded("hybrid_search", self._hybrid_context, question, tenant_id, options)

    async def retrieve_enhanced_context(
        self,
        question: str,
        tenant_id: str,
        options: Optional[RAGOptions] = None,
    ) -> RetrievalContext:
        """Enhanced context retrieval: query expansion, then hybrid or semantic search."""
        options = options or RAGOptions()
        return await self._guarded("retrieve_enhanced_context", self._enhanced_context, question, tenant_id, options)

    async def index_document(self, document: Document) -> StageResult[Optional[VectorRecord]]:
        """
        Save a document and embed it.

        The document is searchable lexically even if embedding fails; the
        returned StageResult tells whether a vector was stored.
        """
        if isinstance(self.document_store, LocalDocumentStore):
            await self.document_store.save_document(document)
        return await self.embedding_generator.generate_and_store(
            document.tenant_id, document.id, document.text, document=document
        )

    async def delete_document(self, tenant_id: str, document_id: str) -> bool:
        """Soft-delete a document so neither search path returns it."""
        if not isinstance(self.document_store, LocalDocumentStore):
            raise RuntimeError("Document store does not support deletes")
        deleted = await self.document_store.soft_delete(tenant_id, document_id)
        if deleted:
            await self.embedding_generator.mark_deleted(tenant_id, document_id)
        return deleted

    async def _guarded(self, operation: str, stage, question: str, tenant_id: str, options: RAGOptions) -> RetrievalContext:
        """Validate input and make sure callers only see classified errors."""
        try:
            if not question or not question.strip():
                raise InvalidQueryError("Question cannot be empty")
            if not tenant_id:
                raise InvalidQueryError("Tenant id is required")

            start_time = time.time()
            context = await stage(question, tenant_id, options)
            logger.info(
                f"{operation} completed: tenant={tenant_id}, results={context.total_results}, "
                f"degraded={context.degraded_stages or 'none'}, duration_ms={(time.time() - start_time) * 1000:.0f}"
            )
            return context
        except DocRankError as e:
            logger.error(f"Failed to retrieve RAG context ({operation}): tenant={tenant_id}, question_length={len(question or '')}, error={e}")
            raise
        except Exception as e:
            logger.error(f"Failed to retrieve RAG context ({operation}): tenant={tenant_id}, unexpected error={e!r}")
            raise RetrievalError(f"Retrieval failed: {e}") from e

    def _resolve(self, options: RAGOptions) -> tuple[int, float]:
        top_k = options.top_k if options.top_k is not None else self.config.top_k
        min_similarity = options.min_similarity if options.min_similarity is not None else self.config.min_similarity
        if top_k < 1:
            raise InvalidQueryError("top_k must be at least 1")
        return top_k, min_similarity

    async def _semantic_context(self, question: str, tenant_id: str, options: RAGOptions) -> RetrievalContext:
        top_k, min_similarity = self._resolve(options)
        query_embedding = await self.generate_query_embedding(question)

        filters = replace(options.filters or SearchFilters(), min_similarity=min_similarity)
        hits = await self.semantic_search.search(query_embedding, tenant_id, top_k, filters)

        documents = await self._hydrate(
            tenant_id,
            [(hit.document_id, hit.similarity) for hit in hits],
            options.include_metadata,
        )
        return RetrievalContext(
            documents=documents,
            query_embedding=query_embedding,
            total_results=len(documents),
            effective_query=question,
        )

    async def _hybrid_context(self, question: str, tenant_id: str, options: RAGOptions) -> RetrievalContext:
        top_k, min_similarity = self._resolve(options)
        query_embedding = await self.generate_query_embedding(question)

        result = await self.hybrid_retriever.search(
            query_embedding, question, tenant_id, top_k, min_similarity, options.filters
        )
        degraded = []
        if result.keyword.degraded:
            degraded.append("keyword_search")

        documents = await self._hydrate(
            tenant_id,
            [(hit.document_id, hit.fused_score) for hit in result.fused],
            options.include_metadata,
        )

        if options.use_reranking and self.reranker is not None and self.reranker.is_available:
            reranked = await self.reranker.rerank(question, documents)
            if reranked.degraded:
                degraded.append("reranking")
            documents = reranked.value

        return RetrievalContext(
            documents=documents,
            query_embedding=query_embedding,
            total_results=len(documents),
            hybrid_results=len(result.keyword.value),
            effective_query=question,
            degraded_stages=degraded,
        )

    async def _enhanced_context(self, question: str, tenant_id: str, options: RAGOptions) -> RetrievalContext:
        effective_query = question
        degraded = []
        if options.conversation_history:
            expansion = await self.query_expander.expand(question, options.conversation_history)
            effective_query = expansion.value
            if expansion.degraded:
                degraded.append("query_expansion")

        if options.use_hybrid_search:
            context = await self._hybrid_context(effective_query, tenant_id, options)
        else:
            context = await self._semantic_context(effective_query, tenant_id, options)

        context.degraded_stages = degraded + context.degraded_stages
        return context

    async def _fetch(self, tenant_id: str, document_id: str) -> Optional[Document]:
        try:
            return await asyncio.wait_for(
                self.document_store.find_by_id(tenant_id, document_id),
                timeout=self.config.hydrate_timeout,
            )
        except Exception as e:
            logger.warning(f"Failed to load document {document_id} (tenant={tenant_id}): {e!r}")
            return None

    async def _hydrate(
        self,
        tenant_id: str,
        scored_ids: list[tuple[str, float]],
        include_metadata: bool,
    ) -> list[RetrievedDocument]:
        """Attach a bounded text snippet and optional metadata to each candidate."""
        loaded = await asyncio.gather(*(self._fetch(tenant_id, doc_id) for doc_id, _ in scored_ids))

        documents = []
        for (doc_id, score), document in zip(scored_ids, loaded):
            metadata = None
            if include_metadata and document is not None:
                metadata = {
                    "type": document.type,
                    "client_company_id": document.client_company_id,
                    "created_at": document.created_at,
                }
            documents.append(RetrievedDocument(
                id=doc_id,
                document_id=doc_id,
                similarity=score,
                text=document.text[:self.config.snippet_chars] if document is not None else None,
                metadata=metadata,
            ))
        return documents


def build_pipeline(settings: "Settings") -> RetrievalPipeline:
    """Initialize all pipeline components from settings."""
    embedding_client = create_embedding_client(settings.embedding)
    vector_store = VectorStore(config=settings.vector_store)
    generator = EmbeddingGenerator(embedding_client, vector_store, config=settings.generator)

    document_store = LocalDocumentStore(config=settings.document_store)
    document_store.load()

    llm_client = create_llm_client(settings.llm)

    pipeline = RetrievalPipeline(
        embedding_generator=generator,
        semantic_search=SemanticSearch(vector_store, config=settings.semantic_search),
        document_store=document_store,
        keyword_search=KeywordSearch(document_store, config=settings.keyword_search),
        reranker=Reranker(llm_client, config=settings.reranker),
        query_expander=QueryExpander(llm_client, config=settings.query_expansion),
        config=settings.rag,
        hybrid_config=settings.hybrid,
    )
    logger.info(
        f"Retrieval pipeline initialized: embeddings={'on' if generator.is_available else 'off'}, "
        f"llm={'on' if llm_client else 'off'}"
    )
    return pipeline

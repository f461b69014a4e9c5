"""FastAPI application for document retrieval."""

import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models import (
    DocumentIn,
    DocumentIndexResponse,
    ErrorResponse,
    HealthResponse,
    RetrievedDocumentModel,
    RetrieveRequest,
    RetrieveResponse,
)
from ..config import load_config
from ..errors import DocRankError, InvalidQueryError, ProviderNotConfiguredError
from ..rag import RAGOptions, RetrievalPipeline, build_pipeline
from ..retrieval import DateRange, Document, LocalDocumentStore, SearchFilters

logger = logging.getLogger(__name__)

# Global singleton (lazy loaded)
_pipeline: Optional[RetrievalPipeline] = None


def get_pipeline() -> RetrievalPipeline:
    """Get or create retrieval pipeline singleton."""
    global _pipeline
    if _pipeline is None:
        logger.info("Initializing retrieval pipeline...")
        _pipeline = build_pipeline(load_config())
        logger.info("Retrieval pipeline ready.")
    return _pipeline


def status_for(error: DocRankError) -> int:
    """HTTP status for a classified engine error."""
    if isinstance(error, InvalidQueryError):
        return 400
    if isinstance(error, ProviderNotConfiguredError):
        return 503
    return 502


def to_options(request: RetrieveRequest) -> RAGOptions:
    filters = None
    if request.filters is not None:
        date_range = None
        if request.filters.date_from or request.filters.date_to:
            if not (request.filters.date_from and request.filters.date_to):
                raise InvalidQueryError("Both date_from and date_to are required for a date filter")
            date_range = DateRange(request.filters.date_from, request.filters.date_to)
        filters = SearchFilters(
            client_company_id=request.filters.client_company_id,
            document_type=request.filters.document_type,
            date_range=date_range,
        )

    return RAGOptions(
        top_k=request.top_k,
        min_similarity=request.min_similarity,
        filters=filters,
        include_metadata=request.include_metadata,
        use_hybrid_search=request.use_hybrid_search,
        use_reranking=request.use_reranking,
        conversation_history=[turn.model_dump() for turn in request.conversation_history],
    )


def create_app(pipeline: Optional[RetrievalPipeline] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        pipeline: Pipeline to serve; built from config on first use if omitted
    """

    app = FastAPI(
        title="DocRank Retrieval API",
        description="Tenant-scoped hybrid document retrieval for the chat layer",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def current_pipeline() -> RetrievalPipeline:
        return pipeline if pipeline is not None else get_pipeline()

    @app.exception_handler(DocRankError)
    async def engine_error_handler(request: Request, exc: DocRankError):
        body = ErrorResponse(error=type(exc).__name__, message=str(exc))
        return JSONResponse(status_code=status_for(exc), content=body.model_dump())

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Check API and component health."""
        components = {"api": "healthy"}

        try:
            rag = current_pipeline()
            components["retrieval_pipeline"] = "healthy"
            components["embeddings"] = "configured" if rag.embedding_generator.is_available else "not configured"
            components["reranking"] = "configured" if rag.reranker and rag.reranker.is_available else "not configured"
            if rag.embedding_generator.vector_store is not None:
                components["vectors"] = rag.embedding_generator.vector_store.count
        except Exception as e:
            logger.error(f"Health check failed: {e!r}")
            components["retrieval_pipeline"] = f"unhealthy: {str(e)}"

        healthy = (
            components.get("retrieval_pipeline") == "healthy"
            and components.get("embeddings") == "configured"
        )
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            version="1.0.0",
            components=components,
        )

    @app.post("/tenants/{tenant_id}/retrieve", response_model=RetrieveResponse, tags=["Retrieval"])
    async def retrieve(tenant_id: str, request: RetrieveRequest):
        """
        Retrieve context documents for a question.

        - Expands the question when conversation history is given
        - Uses semantic search, or hybrid search when use_hybrid_search is set
        - Optional LLM re-ranking of hybrid results
        """
        start_time = time.time()
        options = to_options(request)
        context = await current_pipeline().retrieve_enhanced_context(request.query, tenant_id, options)

        return RetrieveResponse(
            documents=[
                RetrievedDocumentModel(
                    id=doc.id,
                    document_id=doc.document_id,
                    similarity=doc.similarity,
                    rerank_score=doc.rerank_score,
                    text=doc.text,
                    metadata=doc.metadata,
                )
                for doc in context.documents
            ],
            total_results=context.total_results,
            hybrid_results=context.hybrid_results,
            effective_query=context.effective_query,
            degraded_stages=context.degraded_stages,
            latency_ms=int((time.time() - start_time) * 1000),
        )

    @app.post("/tenants/{tenant_id}/documents", response_model=DocumentIndexResponse, tags=["Documents"])
    async def index_document(tenant_id: str, document: DocumentIn):
        """Store a document and embed it. Embedding failures do not reject the document."""
        rag = current_pipeline()
        doc = Document(
            id=document.id,
            tenant_id=tenant_id,
            text=document.text,
            type=document.type,
            client_company_id=document.client_company_id,
        )
        if document.created_at is not None:
            doc.created_at = document.created_at

        result = await rag.index_document(doc)
        store = rag.document_store
        if isinstance(store, LocalDocumentStore) and store.config.persist_path:
            store.save()

        return DocumentIndexResponse(
            document_id=doc.id,
            embedded=result.ok,
            error=str(result.error) if result.error else None,
        )

    @app.delete("/tenants/{tenant_id}/documents/{document_id}", tags=["Documents"])
    async def delete_document(tenant_id: str, document_id: str):
        """Soft-delete a document."""
        rag = current_pipeline()
        if not await rag.delete_document(tenant_id, document_id):
            raise HTTPException(status_code=404, detail="Document not found")

        store = rag.document_store
        if isinstance(store, LocalDocumentStore) and store.config.persist_path:
            store.save()
        return {"document_id": document_id, "deleted": True}

    return app


# Create app instance
app = create_app()

"""Pydantic models for API request/response."""

from typing import Literal, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationTurn(BaseModel):
    """One earlier message of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class FiltersModel(BaseModel):
    """Optional narrowing of the tenant's documents."""

    client_company_id: Optional[str] = None
    document_type: Optional[str] = None
    date_from: Optional[datetime] = Field(default=None, description="Inclusive lower bound on creation date")
    date_to: Optional[datetime] = Field(default=None, description="Inclusive upper bound on creation date")


class RetrieveRequest(BaseModel):
    """Request model for the retrieve endpoint."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="User question"
    )
    top_k: Optional[int] = Field(default=None, ge=1, le=50, description="Maximum documents to return")
    min_similarity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    filters: Optional[FiltersModel] = None
    include_metadata: bool = False
    use_hybrid_search: bool = False
    use_reranking: bool = False
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


class RetrievedDocumentModel(BaseModel):
    """A ranked document with its snippet."""

    id: str
    document_id: str
    similarity: float = Field(..., description="Cosine similarity, or fused RRF score for hybrid search")
    rerank_score: Optional[float] = Field(default=None, description="LLM relevance score 0-10")
    text: Optional[str] = None
    metadata: Optional[dict] = None


class RetrieveResponse(BaseModel):
    """Response model for the retrieve endpoint."""

    documents: list[RetrievedDocumentModel] = Field(default_factory=list)
    total_results: int
    hybrid_results: Optional[int] = Field(default=None, description="Keyword hits considered during fusion")
    effective_query: str
    degraded_stages: list[str] = Field(default_factory=list, description="Optional stages that fell back")
    latency_ms: int


class DocumentIn(BaseModel):
    """A document to store and embed."""

    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: Optional[str] = None
    client_company_id: Optional[str] = None
    created_at: Optional[datetime] = None


class DocumentIndexResponse(BaseModel):
    """Outcome of storing a document."""

    document_id: str
    embedded: bool = Field(..., description="False when the document is stored without a vector")
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status: healthy/degraded")
    version: str = Field(default="1.0.0", description="API version")
    timestamp: datetime = Field(default_factory=_utcnow)
    components: dict = Field(default_factory=dict, description="Component health status")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(default=None, description="Additional details")

"""
Vector Store - Store and search document embeddings with tenant-scoped filtering.

Uses ChromaDB with cosine distance. One record per (tenant, document id);
writes are upserts, so re-embedding a document replaces its vector.

Features:
- Cosine similarity search with a similarity floor
- Metadata filtering (tenant, company, document type, date range)
- Soft-deleted documents excluded from search
- Persistent storage
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .filters import SearchFilters, to_timestamp, utcnow

logger = logging.getLogger(__name__)


def record_id(tenant_id: str, document_id: str) -> str:
    """ChromaDB id of a document vector. Document ids are only unique per tenant."""
    return f"{tenant_id}:{document_id}"


@dataclass
class SemanticHit:
    """A single similarity search result."""
    document_id: str
    similarity: float


@dataclass
class VectorRecord:
    """Stored embedding of one document."""
    tenant_id: str
    document_id: str
    embedding: list[float]
    model: str
    created_at: datetime = field(default_factory=utcnow)
    client_company_id: Optional[str] = None
    document_type: Optional[str] = None
    document_created_at: Optional[datetime] = None
    is_deleted: bool = False

    def to_metadata(self) -> dict:
        """Flatten to ChromaDB metadata (str/int/float/bool only, no None)."""
        metadata = {
            "tenant_id": self.tenant_id,
            "document_id": self.document_id,
            "model": self.model,
            "created_at": self.created_at.isoformat(),
            "document_created_at": to_timestamp(self.document_created_at or self.created_at),
            "is_deleted": self.is_deleted,
        }
        if self.client_company_id:
            metadata["client_company_id"] = self.client_company_id
        if self.document_type:
            metadata["document_type"] = self.document_type
        return metadata

    @classmethod
    def from_chroma(cls, embedding, metadata: dict) -> "VectorRecord":
        return cls(
            tenant_id=metadata["tenant_id"],
            document_id=metadata["document_id"],
            embedding=[float(x) for x in embedding],
            model=metadata.get("model", ""),
            created_at=datetime.fromisoformat(metadata["created_at"]),
            client_company_id=metadata.get("client_company_id"),
            document_type=metadata.get("document_type"),
            document_created_at=datetime.fromtimestamp(metadata["document_created_at"], tz=timezone.utc),
            is_deleted=bool(metadata.get("is_deleted", False)),
        )


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    collection_name: str = "document_embeddings"
    persist_directory: str = "data/vectordb"


class VectorStore:
    """
    Vector database for tenant-scoped semantic search.

    The ChromaDB client is synchronous; every call runs in a worker thread.

    Usage:
        store = VectorStore()
        await store.upsert(record)
        hits = await store.search(query_vector, "tenant_1", limit=5, min_similarity=0.7)
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None, client=None):
        self.config = config or VectorStoreConfig()
        self._client = client
        self._collection = None
        self._init_store()

    def _init_store(self):
        """Initialize ChromaDB."""
        import chromadb
        from chromadb.config import Settings

        if self._client is None:
            persist_dir = Path(self.config.persist_directory)
            persist_dir.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(
                path=str(persist_dir),
                settings=Settings(anonymized_telemetry=False),
            )

        self._collection = self._client.get_or_create_collection(
            name=self.config.collection_name,
            metadata={"hnsw:space": "cosine"},  # Cosine similarity
        )

        logger.info(
            f"VectorStore initialized: collection={self.config.collection_name}, "
            f"documents={self._collection.count()}"
        )

    @property
    def count(self) -> int:
        """Get number of stored vectors."""
        return self._collection.count() if self._collection else 0

    async def upsert(self, record: VectorRecord):
        """Insert or overwrite the vector of record.document_id within its tenant."""
        await asyncio.to_thread(
            self._collection.upsert,
            ids=[record_id(record.tenant_id, record.document_id)],
            embeddings=[record.embedding],
            metadatas=[record.to_metadata()],
        )

    async def get(self, tenant_id: str, document_id: str) -> Optional[VectorRecord]:
        return await asyncio.to_thread(self._get, record_id(tenant_id, document_id))

    def _get(self, vector_id: str) -> Optional[VectorRecord]:
        results = self._collection.get(ids=[vector_id], include=["embeddings", "metadatas"])
        if not results["ids"]:
            return None
        embeddings = results["embeddings"]
        if embeddings is None or len(embeddings) == 0:
            return None
        return VectorRecord.from_chroma(embeddings[0], results["metadatas"][0])

    async def mark_deleted(self, tenant_id: str, document_id: str) -> bool:
        """Flag a document's vector as soft-deleted so search skips it."""
        return await asyncio.to_thread(self._mark_deleted, record_id(tenant_id, document_id))

    def _mark_deleted(self, vector_id: str) -> bool:
        results = self._collection.get(ids=[vector_id], include=["metadatas"])
        if not results["ids"]:
            return False
        metadata = dict(results["metadatas"][0])
        metadata["is_deleted"] = True
        self._collection.update(ids=[vector_id], metadatas=[metadata])
        return True

    async def delete(self, tenant_id: str, document_id: str):
        await asyncio.to_thread(self._collection.delete, ids=[record_id(tenant_id, document_id)])

    async def search(
        self,
        query_embedding: list[float],
        tenant_id: str,
        limit: int,
        filters: Optional[SearchFilters] = None,
        min_similarity: float = 0.0,
    ) -> list[SemanticHit]:
        """
        Search for similar documents of one tenant.

        Args:
            query_embedding: Query embedding vector
            tenant_id: Tenant scope (mandatory)
            limit: Maximum number of results
            filters: Optional company / type / date narrowing
            min_similarity: Results below this cosine similarity are dropped

        Returns:
            SemanticHit list, most similar first
        """
        return await asyncio.to_thread(
            self._search, query_embedding, tenant_id, limit, filters, min_similarity
        )

    def _search(
        self,
        query_embedding: list[float],
        tenant_id: str,
        limit: int,
        filters: Optional[SearchFilters],
        min_similarity: float,
    ) -> list[SemanticHit]:
        if limit <= 0 or self.count == 0:
            return []

        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=limit,
            where=self._build_where_clause(tenant_id, filters),
            include=["distances", "metadatas"],
        )

        hits = []
        if results["ids"] and results["ids"][0]:
            for i, metadata in enumerate(results["metadatas"][0]):
                # ChromaDB returns distance, convert to similarity score
                similarity = 1 - float(results["distances"][0][i])
                if similarity >= min_similarity:
                    hits.append(SemanticHit(document_id=metadata["document_id"], similarity=similarity))

        return hits

    def _build_where_clause(self, tenant_id: str, filters: Optional[SearchFilters]) -> dict:
        """Build ChromaDB where clause from tenant and filters."""
        conditions = [
            {"tenant_id": {"$eq": tenant_id}},
            {"is_deleted": {"$eq": False}},
        ]

        if filters:
            if filters.client_company_id:
                conditions.append({"client_company_id": {"$eq": filters.client_company_id}})
            if filters.document_type:
                conditions.append({"document_type": {"$eq": filters.document_type}})
            if filters.date_range:
                conditions.append({"document_created_at": {"$gte": to_timestamp(filters.date_range.start)}})
                conditions.append({"document_created_at": {"$lte": to_timestamp(filters.date_range.end)}})

        return {"$and": conditions}

    def get_stats(self) -> dict:
        """Get vector store statistics."""
        return {
            "collection_name": self.config.collection_name,
            "document_count": self.count,
            "persist_directory": self.config.persist_directory,
        }

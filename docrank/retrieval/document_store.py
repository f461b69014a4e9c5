"""
Document Store - Source-of-truth document text, looked up by id and searched lexically.

LocalDocumentStore keeps documents in memory, scores lexical matches with
rank_bm25, and can persist itself to a JSON file.
"""

import asyncio
import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from .filters import SearchFilters, utcnow

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """
    Tokenize text for lexical matching.
    Punctuation stripped, lower-cased, terms shorter than 3 characters dropped.
    """
    text = re.sub(r"[^\w\s]", " ", text)
    return [t for t in text.lower().split() if len(t) >= MIN_TERM_LENGTH]


@dataclass
class Document:
    """A tenant document as stored by the application."""
    id: str
    tenant_id: str
    text: str
    type: Optional[str] = None
    client_company_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    is_deleted: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "text": self.text,
            "type": self.type,
            "client_company_id": self.client_company_id,
            "created_at": self.created_at.isoformat(),
            "is_deleted": self.is_deleted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=data["id"],
            tenant_id=data["tenant_id"],
            text=data.get("text", ""),
            type=data.get("type"),
            client_company_id=data.get("client_company_id"),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else utcnow(),
            is_deleted=data.get("is_deleted", False),
        )

    def matches(self, filters: Optional[SearchFilters]) -> bool:
        if self.is_deleted:
            return False
        if not filters:
            return True
        if filters.client_company_id and self.client_company_id != filters.client_company_id:
            return False
        if filters.document_type and self.type != filters.document_type:
            return False
        if filters.date_range and not filters.date_range.contains(self.created_at):
            return False
        return True


class DocumentStore(ABC):
    """Boundary to the application's document table."""

    @abstractmethod
    async def find_by_id(self, tenant_id: str, document_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def full_text_search(
        self,
        tenant_id: str,
        tokens: list[str],
        filters: Optional[SearchFilters],
        limit: int,
    ) -> list[tuple[str, float]]:
        """Return (document_id, rank) for documents containing every token, best first."""
        ...


@dataclass
class DocumentStoreConfig:
    """Configuration for the local document store."""
    persist_path: Optional[str] = None  # JSON file; None = memory only
    k1: float = 1.5  # Term frequency saturation
    b: float = 0.75  # Length normalization


class LocalDocumentStore(DocumentStore):
    """
    In-process document store with BM25 full-text search.

    Documents are keyed by (tenant_id, id). Searches run in a worker thread,
    so the document map and index cache are guarded by a lock.

    Usage:
        store = LocalDocumentStore()
        await store.save_document(Document(id="doc_1", tenant_id="t1", text="..."))
        hits = await store.full_text_search("t1", ["invoice"], None, limit=10)
    """

    def __init__(self, config: Optional[DocumentStoreConfig] = None):
        self.config = config or DocumentStoreConfig()
        self._documents: dict[tuple[str, str], Document] = {}
        # tenant_id -> (documents, token sets, BM25 index); dropped on write
        self._indexes: dict[str, Optional[tuple]] = {}
        # tenant_id -> write counter, an index is cached only if no write raced its build
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return len(self._documents)

    def _invalidate(self, tenant_id: str):
        self._versions[tenant_id] = self._versions.get(tenant_id, 0) + 1
        self._indexes.pop(tenant_id, None)

    async def save_document(self, document: Document):
        """Insert or replace a document."""
        with self._lock:
            self._documents[(document.tenant_id, document.id)] = document
            self._invalidate(document.tenant_id)

    async def soft_delete(self, tenant_id: str, document_id: str) -> bool:
        with self._lock:
            document = self._documents.get((tenant_id, document_id))
            if document is None:
                return False
            document.is_deleted = True
            self._invalidate(tenant_id)
        return True

    async def find_by_id(self, tenant_id: str, document_id: str) -> Optional[Document]:
        return self._documents.get((tenant_id, document_id))

    async def full_text_search(
        self,
        tenant_id: str,
        tokens: list[str],
        filters: Optional[SearchFilters],
        limit: int,
    ) -> list[tuple[str, float]]:
        return await asyncio.to_thread(self._search, tenant_id, tokens, filters, limit)

    def _build_index(self, tenant_id: str, documents: list[Document]) -> Optional[tuple]:
        from rank_bm25 import BM25Okapi

        corpus = [tokenize(doc.text) for doc in documents]

        # BM25Okapi divides by the average document length
        if not any(corpus):
            return None

        index = BM25Okapi(corpus, k1=self.config.k1, b=self.config.b)
        logger.debug(f"BM25 index built for tenant {tenant_id}: {len(documents)} documents")
        return documents, [set(tokens) for tokens in corpus], index

    def _tenant_index(self, tenant_id: str) -> Optional[tuple]:
        with self._lock:
            if tenant_id in self._indexes:
                return self._indexes[tenant_id]
            version = self._versions.get(tenant_id, 0)
            documents = [
                doc for (owner, _), doc in self._documents.items()
                if owner == tenant_id and not doc.is_deleted
            ]

        built = self._build_index(tenant_id, documents)

        with self._lock:
            if self._versions.get(tenant_id, 0) == version:
                self._indexes[tenant_id] = built
        return built

    def _search(
        self,
        tenant_id: str,
        tokens: list[str],
        filters: Optional[SearchFilters],
        limit: int,
    ) -> list[tuple[str, float]]:
        if not tokens or limit <= 0:
            return []

        built = self._tenant_index(tenant_id)
        if built is None:
            return []

        documents, token_sets, index = built
        scores = index.get_scores(tokens)
        required = set(tokens)

        results = []
        for i, doc in enumerate(documents):
            # Conjunctive match: every query term must occur
            if not required <= token_sets[i]:
                continue
            if not doc.matches(filters):
                continue
            results.append((doc.id, max(float(scores[i]), 0.0)))

        results.sort(key=lambda x: x[1], reverse=True)
        return results[:limit]

    def save(self):
        """Save documents to disk."""
        if not self.config.persist_path:
            raise RuntimeError("No persist_path configured")

        path = Path(self.config.persist_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            data = {"documents": [d.to_dict() for d in self._documents.values()]}
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

        logger.info(f"Document store saved to {path}: {len(data['documents'])} documents")

    def load(self) -> bool:
        """
        Load documents from disk.

        Returns:
            True if loaded successfully, False otherwise
        """
        if not self.config.persist_path:
            return False

        path = Path(self.config.persist_path)
        if not path.exists():
            logger.warning(f"Document store file not found at {path}")
            return False

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load document store: {e}")
            return False

        documents = [Document.from_dict(item) for item in data.get("documents", [])]
        with self._lock:
            tenants = {owner for owner, _ in self._documents} | set(self._indexes)
            tenants |= {d.tenant_id for d in documents}
            self._documents = {(d.tenant_id, d.id): d for d in documents}
            for tenant_id in tenants:
                self._invalidate(tenant_id)

        logger.info(f"Document store loaded: {len(self._documents)} documents")
        return True

#!/usr/bin/env python3
"""
Embed Documents - Store tenant documents and their embeddings.

Input is JSONL, one document per line:
    {"id": "doc_1", "tenant_id": "t1", "text": "...", "type": "invoice",
     "client_company_id": "abc", "created_at": "2024-03-01T00:00:00"}

Usage:
    python scripts/embed_documents.py documents.jsonl       # Store and embed
    python scripts/embed_documents.py --stats               # Show statistics
    python scripts/embed_documents.py --test "query" --tenant t1
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables from .env
from dotenv import load_dotenv
load_dotenv()

from tqdm import tqdm

from docrank.config import load_config
from docrank.rag import RAGOptions, RetrievalPipeline, build_pipeline
from docrank.retrieval import Document

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_documents(path: str) -> list[Document]:
    """Load documents from a JSONL file."""
    documents = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                documents.append(Document.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping line {line_num}: {e}")
    return documents


async def embed_all(documents: list[Document], pipeline: RetrievalPipeline) -> int:
    """Store every document and embed it. Returns the number embedded."""
    logger.info(f"Embedding {len(documents)} documents...")
    embedded = 0
    for document in tqdm(documents, desc="Embedding"):
        result = await pipeline.index_document(document)
        if result.ok:
            embedded += 1

    pipeline.document_store.save()
    failed = len(documents) - embedded
    if failed:
        logger.warning(f"{failed} documents stored without an embedding")
    logger.info(f"Successfully embedded {embedded}/{len(documents)} documents")
    return embedded


async def test_search(pipeline: RetrievalPipeline, query: str, tenant_id: str, top_k: int):
    """Run a semantic search and print the hits."""
    context = await pipeline.retrieve_context(query, tenant_id, RAGOptions(top_k=top_k, include_metadata=True))

    print(f"\n{'='*60}")
    print(f"Search Results for: {query}")
    print(f"{'='*60}\n")

    for i, doc in enumerate(context.documents, 1):
        print(f"[{i}] Similarity: {doc.similarity:.4f}")
        print(f"    ID: {doc.document_id}")
        if doc.metadata:
            print(f"    Type: {doc.metadata.get('type') or 'N/A'}")
        print(f"    Text: {(doc.text or '')[:200]}...")
        print()


def show_stats(pipeline: RetrievalPipeline):
    """Show store statistics."""
    stats = pipeline.embedding_generator.vector_store.get_stats()
    stats["documents"] = pipeline.document_store.count

    print(f"\n{'='*60}")
    print("STORE STATISTICS")
    print(f"{'='*60}")
    for key, value in stats.items():
        print(f"  {key}: {value}")
    print(f"{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Store and embed documents")
    parser.add_argument("documents", nargs="?", help="Path to documents JSONL")
    parser.add_argument("--config", type=str, help="Path to config.yaml")
    parser.add_argument("--stats", action="store_true", help="Show statistics only")
    parser.add_argument("--test", type=str, help="Test search with query")
    parser.add_argument("--tenant", type=str, help="Tenant id (for --test)")
    parser.add_argument("--top-k", type=int, default=5, help="Number of results for search")

    args = parser.parse_args()

    settings = load_config(args.config)
    pipeline = build_pipeline(settings)

    if args.stats:
        show_stats(pipeline)
        return

    if not pipeline.embedding_generator.is_available:
        logger.error("Embedding provider not available - check OPENAI_API_KEY / LLM_API_KEY")
        sys.exit(1)

    if args.test:
        if not args.tenant:
            parser.error("--test requires --tenant")
        asyncio.run(test_search(pipeline, args.test, args.tenant, args.top_k))
        return

    if not args.documents:
        parser.error("documents path is required")
    if not settings.document_store.persist_path:
        parser.error("document_store.persist_path must be set in config")

    documents = load_documents(args.documents)
    asyncio.run(embed_all(documents, pipeline))
    show_stats(pipeline)


if __name__ == "__main__":
    main()

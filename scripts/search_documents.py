#!/usr/bin/env python3
"""
Search Documents - Compare semantic and hybrid retrieval.

Usage:
    python scripts/search_documents.py "query" --tenant t1
    python scripts/search_documents.py "query" --tenant t1 --type invoice
    python scripts/search_documents.py "query" --tenant t1 --compare --rerank
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from docrank.config import load_config
from docrank.errors import DocRankError
from docrank.rag import RAGOptions, RetrievalContext, build_pipeline
from docrank.retrieval import SearchFilters

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def print_results(context: RetrievalContext, title: str):
    """Print search results."""
    print(f"\n{'='*70}")
    print(f"{title}")
    if context.degraded_stages:
        print(f"Degraded: {', '.join(context.degraded_stages)}")
    print(f"{'='*70}\n")

    for i, doc in enumerate(context.documents, 1):
        print(f"[{i}] Score: {doc.similarity:.6f}", end="")
        if doc.rerank_score is not None:
            print(f" | Rerank: {doc.rerank_score:.1f}", end="")
        print()
        print(f"    ID: {doc.document_id}")
        if doc.metadata:
            print(f"    Type: {doc.metadata.get('type') or 'N/A'}")
            print(f"    Company: {doc.metadata.get('client_company_id') or 'N/A'}")
        print(f"    Text: {(doc.text or '')[:150]}...")
        print()


async def run(args):
    pipeline = build_pipeline(load_config(args.config))
    filters = SearchFilters(client_company_id=args.company, document_type=args.type)
    options = RAGOptions(
        top_k=args.top_k,
        min_similarity=args.min_similarity,
        filters=filters,
        include_metadata=True,
        use_reranking=args.rerank,
    )

    if args.compare:
        semantic = await pipeline.retrieve_context(args.query, args.tenant, options)
        print_results(semantic, "SEMANTIC SEARCH (Vector Only)")

    hybrid = await pipeline.hybrid_search(args.query, args.tenant, options)
    title = "HYBRID SEARCH (RRF Fusion)"
    if args.rerank:
        title += " + LLM RERANK"
    print_results(hybrid, title)
    print(f"Keyword hits considered: {hybrid.hybrid_results}")


def main():
    parser = argparse.ArgumentParser(description="Search tenant documents")
    parser.add_argument("query", type=str, help="Search query")
    parser.add_argument("--tenant", required=True, help="Tenant id")
    parser.add_argument("--type", type=str, help="Filter by document type")
    parser.add_argument("--company", type=str, help="Filter by client company id")
    parser.add_argument("--compare", action="store_true", help="Also show semantic-only results")
    parser.add_argument("--rerank", action="store_true", help="Re-rank hybrid results with the LLM")
    parser.add_argument("--top-k", type=int, default=5, help="Number of results")
    parser.add_argument("--min-similarity", type=float, default=None, help="Similarity threshold")
    parser.add_argument("--config", type=str, help="Path to config.yaml")

    args = parser.parse_args()

    print(f"\nQuery: {args.query}")
    try:
        asyncio.run(run(args))
    except DocRankError as e:
        logger.error(f"Search failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Run the DocRank retrieval API server."""

import argparse
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import uvicorn
from dotenv import load_dotenv


def main():
    parser = argparse.ArgumentParser(description="Run DocRank retrieval API server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers")

    args = parser.parse_args()
    load_dotenv()

    print(f"""
DocRank Retrieval API
  Endpoints:
    GET    /health                                    - Health check
    POST   /tenants/{{tenant_id}}/retrieve              - Retrieve context
    POST   /tenants/{{tenant_id}}/documents             - Store and embed a document
    DELETE /tenants/{{tenant_id}}/documents/{{doc_id}}    - Soft-delete a document

  Documentation:
    http://{args.host}:{args.port}/docs     - Swagger UI
    http://{args.host}:{args.port}/redoc    - ReDoc
    """)

    uvicorn.run(
        "docrank.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers if not args.reload else 1,
    )


if __name__ == "__main__":
    main()

"""Document processing module for chunking text before embedding."""

from .chunker import chunk_text, estimate_tokens, needs_chunking

__all__ = ["chunk_text", "estimate_tokens", "needs_chunking"]

"""
Text chunking for embedding generation.

Long documents are split into overlapping character windows so each piece
fits the embedding provider's input limit. Cuts prefer a sentence or line
boundary when one falls in the second half of the window.
"""

# Rough approximation: 1 token ~ 4 characters
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> float:
    """Estimate token count of text."""
    return len(text) / CHARS_PER_TOKEN


def needs_chunking(text: str, chunk_size: int) -> bool:
    """Whether text is too long to embed in one provider call."""
    return estimate_tokens(text) > chunk_size


def chunk_text(text: str, chunk_size: int, overlap: int = 200) -> list[str]:
    """
    Split text into overlapping chunks.

    Args:
        text: Text to split
        chunk_size: Window length in characters; a chunk ending on a boundary
            character at the window edge is one character longer
        overlap: Characters shared by consecutive chunks

    Returns:
        List of chunks; a single chunk equal to text if it already fits
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    if len(text) <= chunk_size:
        return [text]

    chunks = []
    start = 0

    while start < len(text):
        end = start + chunk_size

        # Try to break at sentence/line boundary
        if end < len(text):
            # A boundary right at the window edge is kept with its chunk
            last_period = text.rfind(".", start, end + 1)
            last_newline = text.rfind("\n", start, end + 1)
            break_point = max(last_period, last_newline)
            if break_point >= start + chunk_size * 0.5:
                end = break_point + 1

        chunks.append(text[start:end])
        if end >= len(text):
            break

        start = max(end - overlap, start + 1)

    return chunks

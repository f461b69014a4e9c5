"""Tests for text chunking."""

import pytest

from docrank.processing import chunk_text, estimate_tokens, needs_chunking


def test_short_text_is_single_chunk():
    assert chunk_text("short text", chunk_size=100, overlap=10) == ["short text"]


def test_needs_chunking_uses_four_chars_per_token():
    text = "x" * 400
    assert estimate_tokens(text) == 100
    assert not needs_chunking(text, 100)
    assert needs_chunking(text + "x", 100)


def test_chunks_reassemble_into_original_text():
    text = "".join(chr(ord("a") + i % 26) for i in range(25000))
    overlap = 200
    chunks = chunk_text(text, chunk_size=8000, overlap=overlap)

    assert len(chunks) > 1
    assert all(len(c) <= 8000 for c in chunks)
    rebuilt = chunks[0] + "".join(c[overlap:] for c in chunks[1:])
    assert rebuilt == text


def test_breaks_at_sentence_boundary_in_second_half():
    text = "a" * 70 + ". " + "b" * 100
    chunks = chunk_text(text, chunk_size=100, overlap=10)
    assert chunks[0] == "a" * 70 + "."


def test_ignores_boundary_in_first_half():
    text = "a" * 20 + "." + "b" * 200
    chunks = chunk_text(text, chunk_size=100, overlap=10)
    assert len(chunks[0]) == 100


def test_breaks_at_newline():
    text = "a" * 60 + "\n" + "b" * 100
    chunks = chunk_text(text, chunk_size=100, overlap=5)
    assert chunks[0].endswith("\n")


def test_overlap_between_consecutive_chunks():
    text = "x" * 300
    chunks = chunk_text(text, chunk_size=100, overlap=20)
    assert len(chunks) == 4
    assert [len(c) for c in chunks] == [100, 100, 100, 60]


@pytest.mark.parametrize("chunk_size, overlap", [(0, 0), (100, 100), (100, -1)])
def test_invalid_arguments(chunk_size, overlap):
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=chunk_size, overlap=overlap)


def test_boundary_at_window_edge_is_used():
    text = "a" * 100 + "." + "b" * 100
    chunks = chunk_text(text, chunk_size=100, overlap=10)
    assert chunks[0] == "a" * 100 + "."
    assert chunks[1].startswith("a" * 9 + ".b")

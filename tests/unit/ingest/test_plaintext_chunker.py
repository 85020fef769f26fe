"""Tests for PlainTextChunker."""

from __future__ import annotations

from repocontext.db.models import ChunkType
from repocontext.ingest.plaintext import PlainTextChunker


def test_three_paragraphs_three_chunks():
    chunks = PlainTextChunker().chunk("A\n\nB\n\nC", "notes.txt")
    assert [c.content for c in chunks] == ["A", "B", "C"]


def test_line_numbers_follow_source():
    chunks = PlainTextChunker().chunk("A\n\nB\n\nC", "notes.txt")
    assert [(c.metadata.start_line, c.metadata.end_line) for c in chunks] == [
        (1, 1),
        (3, 3),
        (5, 5),
    ]


def test_multiline_paragraph_and_wide_gap():
    text = "line one\nline two\n\n\n\nafter gap"
    chunks = PlainTextChunker().chunk(text, "notes.txt")
    assert chunks[0].content == "line one\nline two"
    assert (chunks[0].metadata.start_line, chunks[0].metadata.end_line) == (1, 2)
    assert chunks[1].metadata.start_line == 6


def test_paragraphs_stripped_and_whitespace_only_skipped():
    chunks = PlainTextChunker().chunk("  padded  \n\n   \n\nnext", "a.txt")
    assert [c.content for c in chunks] == ["padded", "next"]


def test_metadata_headers_and_type():
    chunk = PlainTextChunker().chunk("hello", "docs/a.txt")[0]
    assert chunk.metadata.headers == ["docs/a.txt"]
    assert chunk.metadata.chunk_type == ChunkType.CONTENT
    assert chunk.metadata.file_path == "docs/a.txt"


def test_empty_input():
    assert PlainTextChunker().chunk("", "a.txt") == []

"""Tests for chunk strategy dispatch and optimize_chunks."""

from __future__ import annotations

import pytest

from repocontext.db.models import ChunkMetadata, ChunkType, DocumentChunk
from repocontext.ingest.chunker import (
    FileKind,
    chunk_document,
    is_supported_file,
    optimize_chunks,
    resolve_strategy,
)


def _dc(content: str, headers=("h",), chunk_type=ChunkType.CONTENT, start=1, end=1):
    return DocumentChunk(
        content=content,
        metadata=ChunkMetadata(
            headers=list(headers), chunk_type=chunk_type, start_line=start, end_line=end
        ),
    )


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("path", "kind", "language"),
    [
        ("README.md", FileKind.MARKDOWN, None),
        ("docs/page.MDX", FileKind.MARKDOWN, None),
        ("src/app.tsx", FileKind.CODE, "typescript"),
        ("scripts/run.sh", FileKind.CODE, "bash"),
        ("Makefile", FileKind.PLAINTEXT, None),
        ("notes.txt", FileKind.PLAINTEXT, None),
        ("dir.v2/file", FileKind.PLAINTEXT, None),
    ],
)
def test_resolve_strategy(path, kind, language):
    strategy = resolve_strategy(path)
    assert strategy.kind is kind
    assert strategy.language == language


def test_chunk_document_dispatches_by_extension():
    code = chunk_document("print(1)", "tool.py")
    assert code[0].metadata.chunk_type == ChunkType.CODE
    assert code[0].metadata.language == "python"

    text = chunk_document("A\n\nB", "notes.txt")
    assert [c.content for c in text] == ["A", "B"]


def test_is_supported_file():
    assert is_supported_file("a.md")
    assert is_supported_file("b.py")
    assert is_supported_file("c.txt")
    assert not is_supported_file("image.png")
    assert not is_supported_file("Makefile")


# ------------------------------------------------------------------
# optimize_chunks
# ------------------------------------------------------------------


def test_adjacent_compatible_chunks_merge():
    a = _dc("a" * 60, start=1, end=3)
    b = _dc("b" * 60, start=5, end=9)
    merged = optimize_chunks([a, b])
    assert len(merged) == 1
    assert merged[0].content == "a" * 60 + "\n\n" + "b" * 60
    assert merged[0].metadata.start_line == 1
    assert merged[0].metadata.end_line == 9


def test_merge_does_not_mutate_inputs():
    a = _dc("a" * 60, end=3)
    b = _dc("b" * 60, end=9)
    optimize_chunks([a, b])
    assert a.content == "a" * 60
    assert a.metadata.end_line == 3


def test_different_type_or_headers_not_merged():
    a = _dc("a" * 150)
    b = _dc("b" * 150, chunk_type=ChunkType.CODE)
    c = _dc("c" * 150, headers=("other",))
    assert len(optimize_chunks([a, b, c])) == 3


def test_merge_respects_max_size():
    a = _dc("a" * 600)
    b = _dc("b" * 600)
    assert len(optimize_chunks([a, b])) == 2


def test_undersized_chunks_dropped():
    small = _dc("tiny", headers=("x",))
    big = _dc("z" * 200, headers=("y",))
    result = optimize_chunks([small, big])
    assert [c.content for c in result] == ["z" * 200]


def test_small_neighbours_merge_past_min_size():
    pieces = [_dc("p" * 40) for _ in range(3)]
    result = optimize_chunks(pieces)
    assert len(result) == 1
    assert len(result[0].content) == 40 * 3 + 4


def test_empty_input():
    assert optimize_chunks([]) == []

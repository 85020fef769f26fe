"""Chunk strategy dispatch and post-chunking merge pass."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from pathlib import PurePosixPath
from typing import NamedTuple

from repocontext.db.models import DocumentChunk
from repocontext.ingest.base import BaseChunker
from repocontext.ingest.code import CODE_LANGUAGES, CodeChunker
from repocontext.ingest.markdown import MarkdownChunker
from repocontext.ingest.plaintext import PlainTextChunker

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = frozenset({"md", "mdx", "markdown"})


class FileKind(str, Enum):
    MARKDOWN = "markdown"
    CODE = "code"
    PLAINTEXT = "plaintext"


class ChunkStrategy(NamedTuple):
    kind: FileKind
    language: str | None = None


def file_extension(file_path: str) -> str:
    """Lower-case extension of *file_path* without the dot (``""`` if none)."""
    return PurePosixPath(file_path.replace("\\", "/")).suffix.lstrip(".").lower()


def resolve_strategy(file_path: str) -> ChunkStrategy:
    """Pick the chunking strategy for *file_path* from its extension."""
    ext = file_extension(file_path)
    if ext in MARKDOWN_EXTENSIONS:
        return ChunkStrategy(FileKind.MARKDOWN)
    if ext in CODE_LANGUAGES:
        return ChunkStrategy(FileKind.CODE, CODE_LANGUAGES[ext])
    return ChunkStrategy(FileKind.PLAINTEXT)


def is_supported_file(file_path: str) -> bool:
    """True for files the repository scanner should pick up (markdown, code, ``.txt``)."""
    ext = file_extension(file_path)
    return ext in MARKDOWN_EXTENSIONS or ext in CODE_LANGUAGES or ext == "txt"


def _chunker_for(strategy: ChunkStrategy) -> BaseChunker:
    if strategy.kind is FileKind.MARKDOWN:
        return MarkdownChunker()
    if strategy.kind is FileKind.CODE:
        return CodeChunker(language=strategy.language or "unknown")
    return PlainTextChunker()


def chunk_document(content: str, file_path: str) -> list[DocumentChunk]:
    """Split *content* into chunks using the strategy for *file_path*."""
    strategy = resolve_strategy(file_path)
    chunks = _chunker_for(strategy).chunk(content, file_path)
    logger.debug("Chunked %s as %s: %d chunks", file_path, strategy.kind.value, len(chunks))
    return chunks


def optimize_chunks(
    chunks: list[DocumentChunk],
    min_size: int = 100,
    max_size: int = 1000,
) -> list[DocumentChunk]:
    """Merge adjacent compatible chunks and drop undersized ones.

    Two neighbours merge when they share chunk type and header path and the
    combined content stays under *max_size* characters; merged content is
    joined by a blank line and takes the later chunk's ``end_line``. An
    accumulated chunk shorter than *min_size* is dropped when flushed.
    """
    optimized: list[DocumentChunk] = []
    current: DocumentChunk | None = None

    def keep(chunk: DocumentChunk) -> None:
        if len(chunk.content) >= min_size:
            optimized.append(chunk)

    for chunk in chunks:
        if current is None:
            current = chunk
            continue

        mergeable = (
            len(current.content) + len(chunk.content) < max_size
            and current.metadata.chunk_type == chunk.metadata.chunk_type
            and current.metadata.headers == chunk.metadata.headers
        )
        if mergeable:
            current = DocumentChunk(
                content=f"{current.content}\n\n{chunk.content}",
                metadata=replace(
                    current.metadata,
                    headers=list(current.metadata.headers),
                    end_line=chunk.metadata.end_line,
                ),
            )
        else:
            keep(current)
            current = chunk

    if current is not None:
        keep(current)

    return optimized

"""Base chunker interface for all repocontext file strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod

from repocontext.db.models import DocumentChunk


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Subclasses implement ``_split()``; ``chunk()`` stamps every resulting
    chunk with the source file path so callers never have to.
    """

    def chunk(self, content: str, file_path: str) -> list[DocumentChunk]:
        """Split *content* into DocumentChunks for *file_path*.

        Args:
            content: Full decoded text of the file.
            file_path: Repository-relative path (recorded in chunk metadata).

        Returns:
            Ordered list of chunks; empty for blank input.
        """
        if not content.strip():
            return []
        chunks = self._split(content, file_path)
        for chunk in chunks:
            chunk.metadata.file_path = file_path
        return chunks

    @abstractmethod
    def _split(self, content: str, file_path: str) -> list[DocumentChunk]:
        """Strategy-specific split of non-blank *content*."""

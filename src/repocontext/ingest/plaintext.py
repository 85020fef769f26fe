"""Plain text chunker — one chunk per blank-line-delimited paragraph."""

from __future__ import annotations

import re

from repocontext.db.models import ChunkMetadata, ChunkType, DocumentChunk
from repocontext.ingest.base import BaseChunker

_PARAGRAPH_BREAK_RE = re.compile(r"\n\n+")


class PlainTextChunker(BaseChunker):
    """Split plain text on blank lines; every non-empty paragraph is a chunk.

    Chunk content is the stripped paragraph; line numbers are its real span
    in the file, separators included in the count.
    """

    def _split(self, content: str, file_path: str) -> list[DocumentChunk]:
        chunks: list[DocumentChunk] = []
        offset = 0

        for paragraph in _PARAGRAPH_BREAK_RE.split(content):
            begin = offset
            offset += len(paragraph)
            gap = _PARAGRAPH_BREAK_RE.match(content, offset)
            if gap:
                offset = gap.end()

            text = paragraph.strip()
            if not text:
                continue
            leading = len(paragraph) - len(paragraph.lstrip())
            start_line = content.count("\n", 0, begin + leading) + 1
            chunks.append(
                DocumentChunk(
                    content=text,
                    metadata=ChunkMetadata(
                        headers=[file_path],
                        chunk_type=ChunkType.CONTENT,
                        start_line=start_line,
                        end_line=start_line + text.count("\n"),
                    ),
                )
            )

        return chunks

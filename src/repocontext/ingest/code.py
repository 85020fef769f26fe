"""Source code chunker — fixed line windows with overlap."""

from __future__ import annotations

from repocontext.db.models import ChunkMetadata, ChunkType, DocumentChunk
from repocontext.ingest.base import BaseChunker

# Extension (no dot, lower-case) → language tag.
CODE_LANGUAGES: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "rb": "ruby",
    "php": "php",
    "swift": "swift",
    "kt": "kotlin",
    "scala": "scala",
    "r": "r",
    "sql": "sql",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "fish": "bash",
}


def normalize_language(tag: str | None) -> str:
    """Map a fence info string or extension to a language tag.

    Known aliases (``js``, ``py`` ...) resolve through ``CODE_LANGUAGES``;
    anything else is returned lower-cased; empty input gives ``"unknown"``.
    """
    if not tag:
        return "unknown"
    tag = tag.lower()
    return CODE_LANGUAGES.get(tag, tag)


class CodeChunker(BaseChunker):
    """Split source code into overlapping windows of whole lines.

    Default: 50-line windows, 10 lines of overlap (stride 40). No structural
    parse; the header hierarchy is just the file path.

    Windowing stops at the first window that reaches the last line, so no
    trailing window made only of overlap lines is emitted: a 50-line file is
    one chunk (lines 1-50), not two (1-50 and 41-50).

    Args:
        language: Language tag recorded on every chunk.
        window: Lines per chunk.
        overlap: Lines shared between consecutive chunks.
    """

    def __init__(self, language: str, window: int = 50, overlap: int = 10) -> None:
        if window < 1:
            raise ValueError("window must be >= 1")
        if not 0 <= overlap < window:
            raise ValueError("overlap must be in [0, window)")
        self.language = language
        self.window = window
        self.overlap = overlap

    def _split(self, content: str, file_path: str) -> list[DocumentChunk]:
        lines = content.split("\n")
        total = len(lines)
        stride = self.window - self.overlap

        chunks: list[DocumentChunk] = []
        for start in range(0, total, stride):
            end = min(start + self.window, total)
            chunks.append(
                DocumentChunk(
                    content="\n".join(lines[start:end]),
                    metadata=ChunkMetadata(
                        headers=[file_path],
                        chunk_type=ChunkType.CODE,
                        language=self.language,
                        start_line=start + 1,
                        end_line=end,
                    ),
                )
            )
            # the next window would only repeat lines already covered
            if end >= total:
                break
        return chunks

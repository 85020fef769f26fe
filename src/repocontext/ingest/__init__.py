"""repocontext ingest pipeline — chunkers, embedding generator, documenter, indexer."""

from repocontext.ingest.base import BaseChunker
from repocontext.ingest.chunker import FileKind, chunk_document, optimize_chunks
from repocontext.ingest.code import CodeChunker
from repocontext.ingest.indexer import DocumentIndexer
from repocontext.ingest.markdown import MarkdownChunker
from repocontext.ingest.plaintext import PlainTextChunker

__all__ = [
    "BaseChunker",
    "CodeChunker",
    "DocumentIndexer",
    "FileKind",
    "MarkdownChunker",
    "PlainTextChunker",
    "chunk_document",
    "optimize_chunks",
]

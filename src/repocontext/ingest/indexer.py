"""Document indexer — chunk, embed and store files for a repository.

Pipeline per file:
  upsert document → chunk → optimize → embed (batched) → replace chunks

Embeddings are generated before the chunk swap, so a provider failure leaves
the previously indexed chunks untouched.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from repocontext.config import IndexingCfg
from repocontext.db.documents import DocumentStore
from repocontext.errors import ConfigurationError
from repocontext.ingest.chunker import chunk_document, is_supported_file, optimize_chunks
from repocontext.ingest.documenter import Documenter
from repocontext.ingest.embeddings import EmbeddingGenerator

logger = logging.getLogger(__name__)

SKIPPED_DIRS = frozenset({"node_modules", ".git", "dist", "build"})


@dataclass
class IndexStats:
    document_count: int
    chunk_count: int
    last_indexed: str | None


@dataclass
class ScanReport:
    """Outcome of one repository scan."""

    indexed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    chunk_count: int = 0


def iter_repository_files(root: Path) -> Iterator[Path]:
    """Yield supported files under *root*, skipping hidden and build directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in SKIPPED_DIRS and not d.startswith(".")
        )
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            if is_supported_file(name):
                yield Path(dirpath) / name


class DocumentIndexer:
    """Index files into the document store.

    Args:
        documents: Document/chunk store.
        embeddings: Embedding generator (initialized lazily on first use).
        documenter: Optional documentation generator for ``document_and_index``.
        config: Scan pacing (batch size, pause between batches).
    """

    def __init__(
        self,
        documents: DocumentStore,
        embeddings: EmbeddingGenerator,
        documenter: Documenter | None = None,
        config: IndexingCfg | None = None,
    ) -> None:
        self._documents = documents
        self._embeddings = embeddings
        self._documenter = documenter
        self._config = config or IndexingCfg()

    async def index_file(self, repository_id: str, file_path: str, content: str) -> int:
        """Index (or re-index) one file. Returns the number of stored chunks.

        Re-indexing the same content keeps the document id and reproduces the
        same chunk set.
        """
        title = PurePosixPath(file_path).name or file_path
        chunks = optimize_chunks(chunk_document(content, file_path))
        vectors = await self._embeddings.generate_batch_embeddings([c.content for c in chunks])

        def _store() -> int:
            document_id = self._documents.upsert_document(repository_id, file_path, title, content)
            self._documents.replace_chunks(document_id, chunks, vectors)
            return document_id

        document_id = await asyncio.to_thread(_store)
        logger.info("Indexed %s (%d chunks, document %d)", file_path, len(chunks), document_id)
        return len(chunks)

    async def document_and_index(
        self,
        repository_id: str,
        file_path: str,
        content: str,
        prompt: str | None = None,
    ) -> int:
        """Generate documentation for *file_path* and index it as ``<file_path>.md``.

        Raises:
            ConfigurationError: No documenter configured, or missing API key.
            ExternalProviderError: The documentation provider failed.
        """
        if self._documenter is None:
            raise ConfigurationError("Documentation generation is not configured.")
        analysis = await self._documenter.analyze(file_path, content, prompt)
        logger.info(
            "Generated documentation for %s (%d in / %d out tokens)",
            file_path,
            analysis.input_tokens,
            analysis.output_tokens,
        )
        return await self.index_file(repository_id, f"{file_path}.md", analysis.text)

    async def remove_file(self, repository_id: str, file_path: str) -> bool:
        """Drop one file from the index. Returns True if it was indexed."""
        removed = await asyncio.to_thread(
            self._documents.delete_document, repository_id, file_path
        )
        if removed:
            logger.info("Removed from index: %s", file_path)
        return removed

    async def remove_repository(self, repository_id: str) -> int:
        """Drop every indexed document of *repository_id*. Returns the count."""
        removed = await asyncio.to_thread(
            self._documents.delete_repository_documents, repository_id
        )
        logger.info("Removed %d documents of repository %s from index", removed, repository_id)
        return removed

    async def get_index_stats(self, repository_id: str) -> IndexStats:
        def _stats() -> IndexStats:
            count, last = self._documents.get_index_status(repository_id)
            return IndexStats(
                document_count=count,
                chunk_count=self._documents.count_repository_chunks(repository_id),
                last_indexed=last,
            )

        return await asyncio.to_thread(_stats)

    async def scan_repository(
        self,
        repository_id: str,
        root: Path,
        generate_docs: bool = False,
    ) -> ScanReport:
        """Index every supported file under *root*.

        Files are processed in batches (``indexing.batch_size``) with a short
        pause between batches. A failing file is logged and recorded in the
        report; the scan continues.
        """
        root = Path(root)
        files = list(iter_repository_files(root))
        report = ScanReport()
        size = max(1, self._config.batch_size)
        logger.info("Scanning %s: %d supported files", root, len(files))

        for start in range(0, len(files), size):
            batch = files[start : start + size]
            results = await asyncio.gather(
                *(self._index_path(repository_id, root, path, generate_docs) for path in batch),
                return_exceptions=True,
            )
            for path, result in zip(batch, results):
                rel = path.relative_to(root).as_posix()
                if isinstance(result, BaseException):
                    # configuration problems affect every file; stop the scan
                    if isinstance(result, ConfigurationError) or not isinstance(result, Exception):
                        raise result
                    logger.warning("Failed to index %s: %s", rel, result)
                    report.failed[rel] = str(result)
                else:
                    report.indexed.append(rel)
                    report.chunk_count += result
            if start + size < len(files):
                await asyncio.sleep(self._config.batch_pause)

        logger.info(
            "Scan of %s finished: %d indexed, %d failed",
            root,
            len(report.indexed),
            len(report.failed),
        )
        return report

    async def _index_path(
        self, repository_id: str, root: Path, path: Path, generate_docs: bool
    ) -> int:
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        rel = path.relative_to(root).as_posix()
        if generate_docs:
            return await self.document_and_index(repository_id, rel, content)
        return await self.index_file(repository_id, rel, content)

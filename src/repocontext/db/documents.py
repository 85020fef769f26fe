"""Document + chunk persistence, FTS5 search and repository statistics.

Chunks are always replaced per document (delete-then-insert inside one
transaction). The FTS5 shadow table is maintained by triggers on ``chunks``
so it commits and rolls back with the chunk rows.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from collections.abc import Iterable, Sequence

from repocontext.config import EMBEDDING_DIMENSIONS
from repocontext.db.connection import Database, store_errors
from repocontext.db.models import (
    Chunk,
    ChunkHit,
    Document,
    DocumentChunk,
    RepositoryStatistics,
)
from repocontext.db.vectors import (
    check_dimensions,
    dimensions_from_bytes,
    serialize_embedding,
)

logger = logging.getLogger(__name__)

_FTS_TERM_RE = re.compile(r"\w+", re.UNICODE)


def build_fts_query(text: str) -> str:
    """Turn free text into an FTS5 OR-query of quoted terms.

    FTS5 MATCH rejects punctuation such as ``?`` or ``,`` as syntax errors;
    quoting every word makes natural-language prompts safe. Returns "" when
    *text* contains no word characters.
    """
    terms = _FTS_TERM_RE.findall(text)
    return " OR ".join(f'"{term}"' for term in terms)


def _placeholders(values: Sequence[object]) -> str:
    return ",".join("?" * len(values))


class DocumentStore:
    """Data access layer for documents, chunks and their FTS index.

    Args:
        db: Open (or to-be-opened) shared Database handle.
        dimensions: Embedding length every stored vector must have.
    """

    def __init__(self, db: Database, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        self._db = db
        self.dimensions = dimensions

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(
        self, repository_id: str, file_path: str, title: str, content: str
    ) -> int:
        """Insert or update the document for ``(repository_id, file_path)``.

        On conflict title and content are replaced and updated_at bumped;
        id and created_at never change.

        Returns:
            The document id.
        """
        with self._db.lock, store_errors("upsert document"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    """
                    INSERT INTO documents (repository_id, file_path, title, content)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(repository_id, file_path) DO UPDATE SET
                        title = excluded.title,
                        content = excluded.content,
                        updated_at = datetime('now')
                    """,
                    (repository_id, file_path, title, content),
                )
            row = conn.execute(
                "SELECT id FROM documents WHERE repository_id = ? AND file_path = ?",
                (repository_id, file_path),
            ).fetchone()
        return row["id"]

    def get_document(self, document_id: int) -> Document | None:
        with self._db.lock, store_errors("get document"):
            row = self._db.conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(self, repository_id: str, file_path: str) -> Document | None:
        with self._db.lock, store_errors("get document by path"):
            row = self._db.conn.execute(
                "SELECT * FROM documents WHERE repository_id = ? AND file_path = ?",
                (repository_id, file_path),
            ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, repository_id: str) -> list[Document]:
        with self._db.lock, store_errors("list documents"):
            rows = self._db.conn.execute(
                "SELECT * FROM documents WHERE repository_id = ? ORDER BY file_path",
                (repository_id,),
            ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, repository_id: str, file_path: str) -> bool:
        """Delete one document (chunks and FTS rows cascade). Returns True if found."""
        with self._db.lock, store_errors("delete document"):
            conn = self._db.conn
            with conn:
                cur = conn.execute(
                    "DELETE FROM documents WHERE repository_id = ? AND file_path = ?",
                    (repository_id, file_path),
                )
        return cur.rowcount > 0

    def delete_repository_documents(self, repository_id: str) -> int:
        """Delete every document of *repository_id*. Returns the number removed."""
        with self._db.lock, store_errors("delete repository documents"):
            conn = self._db.conn
            with conn:
                cur = conn.execute(
                    "DELETE FROM documents WHERE repository_id = ?", (repository_id,)
                )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def replace_chunks(
        self,
        document_id: int,
        chunks: Sequence[DocumentChunk],
        embeddings: Sequence[Sequence[float] | None] | None = None,
    ) -> list[int]:
        """Replace every chunk of *document_id* with *chunks*, in one transaction.

        ``chunk_index`` is assigned densely from 0 in sequence order. When
        *embeddings* is given it must align with *chunks*; ``None`` entries
        leave the chunk un-embedded.

        Returns:
            The new chunk ids, in chunk_index order.

        Raises:
            ValueError: If *embeddings* and *chunks* differ in length.
            ConfigurationError: If an embedding has the wrong dimension.
        """
        if embeddings is not None and len(embeddings) != len(chunks):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )

        rows = []
        for i, chunk in enumerate(chunks):
            embedding = embeddings[i] if embeddings is not None else None
            blob = None
            if embedding is not None:
                check_dimensions(embedding, self.dimensions)
                blob = serialize_embedding(embedding)
            rows.append(
                (document_id, i, chunk.content, json.dumps(chunk.metadata.to_dict()), blob)
            )

        with self._db.lock, store_errors("replace chunks"):
            conn = self._db.conn
            with conn:
                conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
                ids = [
                    conn.execute(
                        """
                        INSERT INTO chunks (document_id, chunk_index, content, metadata, embedding)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        row,
                    ).lastrowid
                    for row in rows
                ]
        return ids

    def set_embedding(self, chunk_id: int, embedding: Sequence[float]) -> None:
        """Attach (or overwrite) the embedding of a single chunk."""
        check_dimensions(embedding, self.dimensions)
        with self._db.lock, store_errors("store embedding"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    "UPDATE chunks SET embedding = ? WHERE id = ?",
                    (serialize_embedding(embedding), chunk_id),
                )

    def list_chunks(self, document_id: int) -> list[Chunk]:
        with self._db.lock, store_errors("list chunks"):
            rows = self._db.conn.execute(
                """
                SELECT id, document_id, chunk_index, content, metadata, embedding
                FROM chunks WHERE document_id = ? ORDER BY chunk_index
                """,
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, document_id: int) -> int:
        with self._db.lock, store_errors("count chunks"):
            return self._db.conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchone()[0]

    def get_chunk(self, chunk_id: int) -> Chunk | None:
        with self._db.lock, store_errors("get chunk"):
            row = self._db.conn.execute(
                """
                SELECT id, document_id, chunk_index, content, metadata, embedding
                FROM chunks WHERE id = ?
                """,
                (chunk_id,),
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_neighbour_chunks(
        self, document_id: int, center_index: int, radius: int
    ) -> list[Chunk]:
        """Chunks of *document_id* with index in [center - radius, center + radius]."""
        with self._db.lock, store_errors("get neighbour chunks"):
            rows = self._db.conn.execute(
                """
                SELECT id, document_id, chunk_index, content, metadata, NULL AS embedding
                FROM chunks
                WHERE document_id = ? AND chunk_index >= ? AND chunk_index <= ?
                ORDER BY chunk_index
                """,
                (document_id, max(0, center_index - radius), center_index + radius),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def get_chunks_with_documents(self, chunk_ids: Iterable[int]) -> list[ChunkHit]:
        """Return chunk rows joined with their document for every id in *chunk_ids*.

        Unknown ids are skipped silently.
        """
        ids = list(chunk_ids)
        if not ids:
            return []
        with self._db.lock, store_errors("get chunks with documents"):
            rows = self._db.conn.execute(
                f"""
                SELECT c.id AS chunk_id, c.document_id, c.chunk_index, c.content, c.metadata,
                       d.repository_id, d.file_path, d.title
                FROM chunks c
                JOIN documents d ON c.document_id = d.id
                WHERE c.id IN ({_placeholders(ids)})
                """,
                ids,
            ).fetchall()
        return [
            ChunkHit(
                chunk_id=r["chunk_id"],
                document_id=r["document_id"],
                chunk_index=r["chunk_index"],
                content=r["content"],
                metadata=json.loads(r["metadata"] or "{}"),
                repository_id=r["repository_id"],
                file_path=r["file_path"],
                title=r["title"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Search inputs
    # ------------------------------------------------------------------

    def search_vectors(
        self, query_embedding: Sequence[float], repository_ids: Sequence[str], limit: int = 20
    ) -> list[tuple[int, float]]:
        """Cosine similarity of every embedded chunk in *repository_ids* to the query.

        Scored inside SQLite with sqlite-vec. Returns ``(chunk_id, similarity)``
        best-first (ties by ascending chunk id), similarity in [-1, 1]. A
        zero-norm vector on either side yields NaN in ``vec_distance_cosine``,
        which SQLite hands back as NULL; it scores 0.

        Raises:
            ConfigurationError: If the query has the wrong dimension.
            StoreError: If the query fails.
        """
        if not repository_ids:
            return []
        check_dimensions(query_embedding, self.dimensions)
        with self._db.lock, store_errors("run vector search"):
            rows = self._db.conn.execute(
                f"""
                SELECT c.id,
                       COALESCE(
                           MAX(-1.0, MIN(1.0, 1.0 - vec_distance_cosine(c.embedding, ?))),
                           0.0
                       ) AS score
                FROM chunks c
                JOIN documents d ON c.document_id = d.id
                WHERE d.repository_id IN ({_placeholders(repository_ids)})
                AND c.embedding IS NOT NULL
                ORDER BY score DESC, c.id
                LIMIT ?
                """,
                [serialize_embedding(query_embedding), *repository_ids, limit],
            ).fetchall()
        return [(r["id"], r["score"]) for r in rows]

    def search_fts(
        self, query: str, repository_ids: Sequence[str], limit: int = 20
    ) -> list[tuple[int, float]]:
        """BM25 full-text search scoped to *repository_ids*.

        Returns ``(chunk_id, score)`` best-first, with ``score = -bm25`` so
        larger is better.

        Raises:
            StoreError: If FTS5 rejects the query.
        """
        fts_query = build_fts_query(query)
        if not fts_query or not repository_ids:
            return []
        with self._db.lock, store_errors("run full-text search"):
            rows = self._db.conn.execute(
                f"""
                SELECT c.id, -bm25(chunks_fts) AS score
                FROM chunks_fts
                JOIN chunks c ON chunks_fts.rowid = c.id
                JOIN documents d ON c.document_id = d.id
                WHERE chunks_fts MATCH ?
                AND d.repository_id IN ({_placeholders(repository_ids)})
                ORDER BY bm25(chunks_fts)
                LIMIT ?
                """,
                [fts_query, *repository_ids, limit],
            ).fetchall()
        return [(r["id"], r["score"]) for r in rows]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_index_status(self, repository_id: str) -> tuple[int, str | None]:
        """Return ``(document_count, last_updated)`` for *repository_id*."""
        with self._db.lock, store_errors("get index status"):
            row = self._db.conn.execute(
                """
                SELECT COUNT(*) AS document_count, MAX(updated_at) AS last_updated
                FROM documents WHERE repository_id = ?
                """,
                (repository_id,),
            ).fetchone()
        return row["document_count"], row["last_updated"]

    def count_repository_chunks(self, repository_id: str) -> int:
        with self._db.lock, store_errors("count repository chunks"):
            return self._db.conn.execute(
                """
                SELECT COUNT(*) FROM chunks c
                JOIN documents d ON c.document_id = d.id
                WHERE d.repository_id = ?
                """,
                (repository_id,),
            ).fetchone()[0]

    def get_statistics(self, repository_id: str) -> RepositoryStatistics:
        """Aggregate index statistics for *repository_id* (zeros when unknown)."""
        with self._db.lock, store_errors("get statistics"):
            conn = self._db.conn
            doc_stats = conn.execute(
                """
                SELECT COUNT(*) AS total_documents,
                       SUM(LENGTH(content)) AS total_size,
                       MAX(updated_at) AS last_updated
                FROM documents WHERE repository_id = ?
                """,
                (repository_id,),
            ).fetchone()
            chunk_stats = conn.execute(
                """
                SELECT COUNT(*) AS total_chunks,
                       AVG(LENGTH(c.content)) AS avg_chunk_size,
                       MAX(LENGTH(c.embedding)) AS embedding_size
                FROM chunks c
                JOIN documents d ON c.document_id = d.id
                WHERE d.repository_id = ?
                """,
                (repository_id,),
            ).fetchone()
            files = conn.execute(
                "SELECT file_path FROM documents WHERE repository_id = ? ORDER BY file_path",
                (repository_id,),
            ).fetchall()

        total_documents = doc_stats["total_documents"] or 0
        total_chunks = chunk_stats["total_chunks"] or 0
        return RepositoryStatistics(
            total_documents=total_documents,
            total_chunks=total_chunks,
            total_size=doc_stats["total_size"] or 0,
            avg_chunks_per_document=(total_chunks / total_documents) if total_documents else 0.0,
            avg_chunk_size=chunk_stats["avg_chunk_size"] or 0.0,
            vector_dimensions=dimensions_from_bytes(chunk_stats["embedding_size"]),
            indexed_files=[f["file_path"] for f in files],
            last_updated=doc_stats["last_updated"],
        )


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        repository_id=row["repository_id"],
        file_path=row["file_path"],
        title=row["title"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        metadata=row["metadata"],
        embedding=row["embedding"],
    )

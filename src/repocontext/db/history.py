"""Append-only audit trail of search prompts and the results they returned.

A history row is written before a search runs and is never rolled back, so
the table records attempts, not only successes. The only mutation after
insert is ``total_results``, updated in the same transaction as the result
rows.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence
from typing import Any

from repocontext.db.connection import Database, store_errors
from repocontext.db.models import PromptHistoryEntry, PromptResult

logger = logging.getLogger(__name__)

_DEFAULT_HISTORY_LIMIT = 50
_DEFAULT_ALL_HISTORY_LIMIT = 100


class PromptHistoryStore:
    """Reads and writes ``prompt_history`` / ``prompt_results``."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def add_prompt_history(
        self,
        prompt_id: str,
        prompt: str,
        repository_id: str,
        repository_name: str,
        options: dict[str, Any],
    ) -> None:
        with self._db.lock, store_errors("record prompt history"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    """
                    INSERT INTO prompt_history (id, prompt, repository_id, repository_name, options)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (prompt_id, prompt, repository_id, repository_name, json.dumps(options)),
                )

    def add_prompt_results(
        self, prompt_history_id: str, results: Sequence[dict[str, Any]]
    ) -> None:
        """Insert result rows and set ``total_results`` in one transaction.

        Each result dict carries ``repository_id``, ``document_id``,
        ``document_path``, ``chunk_index``, ``score``, ``content`` and
        ``metadata``.
        """
        rows = [
            (
                f"{prompt_history_id}-{i}",
                prompt_history_id,
                r["repository_id"],
                r["document_id"],
                r["document_path"],
                r.get("chunk_index") or 0,
                r["score"],
                r["content"],
                json.dumps(r.get("metadata") or {}),
            )
            for i, r in enumerate(results)
        ]
        with self._db.lock, store_errors("record prompt results"):
            conn = self._db.conn
            with conn:
                conn.executemany(
                    """
                    INSERT INTO prompt_results (
                        id, prompt_history_id, repository_id, document_id, document_path,
                        chunk_index, score, content, metadata
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                conn.execute(
                    "UPDATE prompt_history SET total_results = ? WHERE id = ?",
                    (len(rows), prompt_history_id),
                )
        logger.debug("Stored %d results for prompt %s", len(rows), prompt_history_id)

    def get_prompt(self, prompt_id: str) -> PromptHistoryEntry | None:
        with self._db.lock, store_errors("get prompt"):
            row = self._db.conn.execute(
                "SELECT * FROM prompt_history WHERE id = ?", (prompt_id,)
            ).fetchone()
        return _row_to_entry(row) if row else None

    def get_prompt_history(
        self, repository_id: str, limit: int = _DEFAULT_HISTORY_LIMIT
    ) -> list[PromptHistoryEntry]:
        """Newest-first history for one repository."""
        with self._db.lock, store_errors("get prompt history"):
            rows = self._db.conn.execute(
                """
                SELECT * FROM prompt_history
                WHERE repository_id = ?
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
                """,
                (repository_id, limit),
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def get_all_prompt_history(
        self, limit: int = _DEFAULT_ALL_HISTORY_LIMIT
    ) -> list[PromptHistoryEntry]:
        """Newest-first history across every repository."""
        with self._db.lock, store_errors("get all prompt history"):
            rows = self._db.conn.execute(
                "SELECT * FROM prompt_history ORDER BY timestamp DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def search_prompt_history(
        self, term: str, repository_id: str | None = None, limit: int = _DEFAULT_HISTORY_LIMIT
    ) -> list[PromptHistoryEntry]:
        """Newest-first history whose prompt contains *term* (case-insensitive)."""
        escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        sql = "SELECT * FROM prompt_history WHERE prompt LIKE ? ESCAPE '\\'"
        params: list[Any] = [f"%{escaped}%"]
        if repository_id:
            sql += " AND repository_id = ?"
            params.append(repository_id)
        sql += " ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with self._db.lock, store_errors("search prompt history"):
            rows = self._db.conn.execute(sql, params).fetchall()
        return [_row_to_entry(r) for r in rows]

    def get_prompt_results(self, prompt_history_id: str) -> list[PromptResult]:
        """Results recorded for one prompt, best score first."""
        with self._db.lock, store_errors("get prompt results"):
            rows = self._db.conn.execute(
                """
                SELECT * FROM prompt_results
                WHERE prompt_history_id = ?
                ORDER BY score DESC, id
                """,
                (prompt_history_id,),
            ).fetchall()
        return [
            PromptResult(
                id=r["id"],
                prompt_history_id=r["prompt_history_id"],
                repository_id=r["repository_id"],
                document_id=r["document_id"],
                document_path=r["document_path"],
                chunk_index=r["chunk_index"],
                score=r["score"],
                content=r["content"],
                metadata=json.loads(r["metadata"] or "{}"),
            )
            for r in rows
        ]

    def cleanup_old_history(self, days_to_keep: int = 30) -> int:
        """Delete history (and, by cascade, results) older than *days_to_keep* days."""
        with self._db.lock, store_errors("clean up prompt history"):
            conn = self._db.conn
            with conn:
                cur = conn.execute(
                    "DELETE FROM prompt_history WHERE timestamp < datetime('now', ?)",
                    (f"-{int(days_to_keep)} days",),
                )
        logger.info("Cleaned up %d old prompt history entries", cur.rowcount)
        return cur.rowcount


def _row_to_entry(row: sqlite3.Row) -> PromptHistoryEntry:
    return PromptHistoryEntry(
        id=row["id"],
        prompt=row["prompt"],
        repository_id=row["repository_id"],
        repository_name=row["repository_name"],
        options=json.loads(row["options"] or "{}"),
        timestamp=row["timestamp"],
        total_results=row["total_results"],
    )

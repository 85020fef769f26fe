"""Registered repositories — the roots that documents, permissions and history hang off."""

from __future__ import annotations

import sqlite3

from repocontext.db.connection import Database, store_errors
from repocontext.db.models import Repository


class RepositoryStore:
    """CRUD for the ``repositories`` table.

    Removing a repository cascades to its documents, chunks, access edges
    and prompt history.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def add_repository(self, repository_id: str, name: str, path: str) -> Repository:
        """Register (or re-register) a repository and bump ``last_opened``."""
        with self._db.lock, store_errors("add repository"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    """
                    INSERT INTO repositories (id, name, path)
                    VALUES (?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        path = excluded.path,
                        last_opened = datetime('now')
                    """,
                    (repository_id, name, path),
                )
        repo = self.get_repository(repository_id)
        assert repo is not None
        return repo

    def get_repository(self, repository_id: str) -> Repository | None:
        with self._db.lock, store_errors("get repository"):
            row = self._db.conn.execute(
                "SELECT * FROM repositories WHERE id = ?", (repository_id,)
            ).fetchone()
        return _row_to_repository(row) if row else None

    def get_repository_by_path(self, path: str) -> Repository | None:
        with self._db.lock, store_errors("get repository by path"):
            row = self._db.conn.execute(
                "SELECT * FROM repositories WHERE path = ?", (path,)
            ).fetchone()
        return _row_to_repository(row) if row else None

    def has_repository(self, path: str) -> bool:
        return self.get_repository_by_path(path) is not None

    def list_repositories(self) -> list[Repository]:
        """All repositories, most recently opened first."""
        with self._db.lock, store_errors("list repositories"):
            rows = self._db.conn.execute(
                "SELECT * FROM repositories ORDER BY last_opened DESC, name"
            ).fetchall()
        return [_row_to_repository(r) for r in rows]

    def names_by_id(self, repository_ids: list[str]) -> dict[str, str]:
        if not repository_ids:
            return {}
        placeholders = ",".join("?" * len(repository_ids))
        with self._db.lock, store_errors("look up repository names"):
            rows = self._db.conn.execute(
                f"SELECT id, name FROM repositories WHERE id IN ({placeholders})",
                repository_ids,
            ).fetchall()
        return {r["id"]: r["name"] for r in rows}

    def touch(self, repository_id: str) -> None:
        """Update ``last_opened`` to now."""
        with self._db.lock, store_errors("update repository"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    "UPDATE repositories SET last_opened = datetime('now') WHERE id = ?",
                    (repository_id,),
                )

    def remove_repository(self, repository_id: str) -> bool:
        """Delete a repository and everything that cascades from it."""
        with self._db.lock, store_errors("remove repository"):
            conn = self._db.conn
            with conn:
                cur = conn.execute("DELETE FROM repositories WHERE id = ?", (repository_id,))
        return cur.rowcount > 0


def _row_to_repository(row: sqlite3.Row) -> Repository:
    return Repository(
        id=row["id"],
        name=row["name"],
        path=row["path"],
        added_at=row["added_at"],
        last_opened=row["last_opened"],
    )

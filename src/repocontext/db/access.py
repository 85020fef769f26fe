"""Directed read-permission graph between repositories.

Invariant: a repository can always read itself, with or without stored
edges. Edges are not transitive: A→B and B→C do not grant A→C.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from repocontext.db.connection import Database, store_errors
from repocontext.db.models import AccessPermission, RepositoryAccess
from repocontext.errors import NotFoundError

logger = logging.getLogger(__name__)

_PERMISSION_READ = "read"
_LIVE = "(expires_at IS NULL OR expires_at > datetime('now'))"


def to_sqlite_timestamp(value: datetime) -> str:
    """Format *value* as UTC ``YYYY-MM-DD HH:MM:SS`` for comparison with datetime('now').

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%d %H:%M:%S")


class RepositoryAccessStore:
    """Grants, revokes and resolves cross-repository read access."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def grant_access(
        self,
        source_repository_id: str,
        target_repository_id: str,
        granted_by: str | None = None,
        expires_at: datetime | None = None,
    ) -> None:
        """Create or refresh the read edge source → target (idempotent).

        Raises:
            NotFoundError: If either repository is not registered.
        """
        expires = to_sqlite_timestamp(expires_at) if expires_at is not None else None
        with self._db.lock, store_errors("grant access"):
            conn = self._db.conn
            known = {
                r["id"]
                for r in conn.execute(
                    "SELECT id FROM repositories WHERE id IN (?, ?)",
                    (source_repository_id, target_repository_id),
                ).fetchall()
            }
            for repo_id in (source_repository_id, target_repository_id):
                if repo_id not in known:
                    raise NotFoundError(f"Unknown repository '{repo_id}'")

            with conn:
                conn.execute(
                    """
                    INSERT INTO repository_access_permissions
                        (source_repository_id, target_repository_id, permission_type,
                         granted_by, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(source_repository_id, target_repository_id, permission_type)
                    DO UPDATE SET
                        granted_at = datetime('now'),
                        granted_by = excluded.granted_by,
                        expires_at = excluded.expires_at
                    """,
                    (source_repository_id, target_repository_id, _PERMISSION_READ,
                     granted_by, expires),
                )
        logger.info(
            "Granted %s read access to %s (expires: %s)",
            source_repository_id, target_repository_id, expires or "never",
        )

    def revoke_access(self, source_repository_id: str, target_repository_id: str) -> bool:
        """Delete the edge source → target. Returns True if an edge was removed."""
        with self._db.lock, store_errors("revoke access"):
            conn = self._db.conn
            with conn:
                cur = conn.execute(
                    """
                    DELETE FROM repository_access_permissions
                    WHERE source_repository_id = ? AND target_repository_id = ?
                    """,
                    (source_repository_id, target_repository_id),
                )
        if cur.rowcount:
            logger.info("Revoked %s read access to %s", source_repository_id, target_repository_id)
        return cur.rowcount > 0

    def has_access(self, source_repository_id: str, target_repository_id: str) -> bool:
        """True if *source* may read *target*: itself always, others via a live edge."""
        if source_repository_id == target_repository_id:
            return True

        with self._db.lock, store_errors("has access"):
            row = self._db.conn.execute(
                f"""
                SELECT 1 FROM repository_access_permissions
                WHERE source_repository_id = ?
                AND target_repository_id = ?
                AND {_LIVE}
                LIMIT 1
                """,
                (source_repository_id, target_repository_id),
            ).fetchone()
        return row is not None

    def get_accessible_repositories(self, source_repository_id: str) -> list[str]:
        """*source* itself followed by every live target, in grant order."""
        accessible = [source_repository_id]

        with self._db.lock, store_errors("get accessible repositories"):
            rows = self._db.conn.execute(
                f"""
                SELECT DISTINCT target_repository_id
                FROM repository_access_permissions
                WHERE source_repository_id = ?
                AND {_LIVE}
                ORDER BY id
                """,
                (source_repository_id,),
            ).fetchall()

        for row in rows:
            if row["target_repository_id"] not in accessible:
                accessible.append(row["target_repository_id"])
        return accessible

    def get_permissions(self, source_repository_id: str) -> list[AccessPermission]:
        """All stored edges out of *source* (live or expired), newest first."""
        with self._db.lock, store_errors("get permissions"):
            rows = self._db.conn.execute(
                """
                SELECT p.*, r.name AS target_repository_name
                FROM repository_access_permissions p
                JOIN repositories r ON p.target_repository_id = r.id
                WHERE p.source_repository_id = ?
                ORDER BY p.granted_at DESC, p.id DESC
                """,
                (source_repository_id,),
            ).fetchall()
        return [
            AccessPermission(
                id=r["id"],
                source_repository_id=r["source_repository_id"],
                target_repository_id=r["target_repository_id"],
                permission_type=r["permission_type"],
                granted_at=r["granted_at"],
                granted_by=r["granted_by"],
                expires_at=r["expires_at"],
                target_repository_name=r["target_repository_name"],
            )
            for r in rows
        ]

    def list_repositories_with_access(self, source_repository_id: str) -> list[RepositoryAccess]:
        """Every registered repository, flagged with whether *source* may read it."""
        with self._db.lock, store_errors("list repositories with access"):
            rows = self._db.conn.execute(
                """
                SELECT r.id, r.name, r.path,
                    CASE
                        WHEN r.id = ? THEN 1
                        WHEN p.id IS NOT NULL
                            AND (p.expires_at IS NULL OR p.expires_at > datetime('now')) THEN 1
                        ELSE 0
                    END AS has_access
                FROM repositories r
                LEFT JOIN repository_access_permissions p
                    ON p.source_repository_id = ?
                    AND p.target_repository_id = r.id
                ORDER BY r.name
                """,
                (source_repository_id, source_repository_id),
            ).fetchall()
        return [
            RepositoryAccess(id=r["id"], name=r["name"], path=r["path"], has_access=bool(r["has_access"]))
            for r in rows
        ]

    def cleanup_expired_permissions(self) -> int:
        """Delete every edge whose expires_at has passed. Returns the count removed."""
        with self._db.lock, store_errors("clean up expired permissions"):
            conn = self._db.conn
            with conn:
                cur = conn.execute(
                    """
                    DELETE FROM repository_access_permissions
                    WHERE expires_at IS NOT NULL AND expires_at <= datetime('now')
                    """
                )
        if cur.rowcount:
            logger.info("Removed %d expired access permissions", cur.rowcount)
        return cur.rowcount

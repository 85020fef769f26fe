"""Forward-only migration runner for the repocontext database schema.

The FTS5 shadow table is an external-content index over ``chunks``; the
triggers keep it in the same transaction as every chunk insert, update
and delete.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS repositories (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    path            TEXT NOT NULL UNIQUE,
    added_at        DATETIME NOT NULL DEFAULT (datetime('now')),
    last_opened     DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_repositories_path ON repositories(path);

CREATE TABLE IF NOT EXISTS repository_access_permissions (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    source_repository_id    TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    target_repository_id    TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    permission_type         TEXT NOT NULL DEFAULT 'read',
    granted_at              DATETIME NOT NULL DEFAULT (datetime('now')),
    granted_by              TEXT,
    expires_at              DATETIME,
    UNIQUE (source_repository_id, target_repository_id, permission_type)
);

CREATE INDEX IF NOT EXISTS idx_repo_access_source ON repository_access_permissions(source_repository_id);
CREATE INDEX IF NOT EXISTS idx_repo_access_target ON repository_access_permissions(target_repository_id);
CREATE INDEX IF NOT EXISTS idx_repo_access_expires
    ON repository_access_permissions(expires_at) WHERE expires_at IS NOT NULL;

CREATE TABLE IF NOT EXISTS documents (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id   TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    file_path       TEXT NOT NULL,
    title           TEXT,
    content         TEXT NOT NULL,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (repository_id, file_path)
);

CREATE INDEX IF NOT EXISTS idx_documents_repository_id ON documents(repository_id);

CREATE TABLE IF NOT EXISTS chunks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index     INTEGER NOT NULL,
    content         TEXT NOT NULL,
    metadata        TEXT NOT NULL DEFAULT '{}',
    embedding       BLOB,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (document_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_document_id ON chunks(document_id);

CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    content,
    content='chunks',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.id, old.content);
END;

CREATE TRIGGER IF NOT EXISTS chunks_au AFTER UPDATE OF content ON chunks BEGIN
    INSERT INTO chunks_fts(chunks_fts, rowid, content) VALUES ('delete', old.id, old.content);
    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
END;

CREATE TABLE IF NOT EXISTS prompt_history (
    id              TEXT PRIMARY KEY,
    prompt          TEXT NOT NULL,
    repository_id   TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
    repository_name TEXT NOT NULL,
    options         TEXT NOT NULL,
    timestamp       DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
    total_results   INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_prompt_history_repository_id ON prompt_history(repository_id);
CREATE INDEX IF NOT EXISTS idx_prompt_history_timestamp ON prompt_history(timestamp);

CREATE TABLE IF NOT EXISTS prompt_results (
    id                  TEXT PRIMARY KEY,
    prompt_history_id   TEXT NOT NULL REFERENCES prompt_history(id) ON DELETE CASCADE,
    repository_id       TEXT NOT NULL,
    document_id         INTEGER NOT NULL,
    document_path       TEXT NOT NULL,
    chunk_index         INTEGER NOT NULL,
    score               REAL NOT NULL,
    content             TEXT NOT NULL,
    metadata            TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_prompt_results_prompt_history_id ON prompt_results(prompt_history_id);
CREATE INDEX IF NOT EXISTS idx_prompt_results_score ON prompt_results(score);

CREATE TABLE IF NOT EXISTS token_usage (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    source          TEXT NOT NULL,
    direction       TEXT NOT NULL CHECK (direction IN ('input', 'output')),
    tokens          INTEGER NOT NULL,
    recorded_at     DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS token_usage_daily (
    date            TEXT NOT NULL,
    source          TEXT NOT NULL,
    direction       TEXT NOT NULL CHECK (direction IN ('input', 'output')),
    tokens          INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (date, source, direction)
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]

CURRENT_VERSION = MIGRATIONS[-1][0]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def schema_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row and row[0] is not None else 0

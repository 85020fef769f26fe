"""Append-only token usage counters, bucketed per (date, source, direction)."""

from __future__ import annotations

from typing import Any

from repocontext.db.connection import Database, store_errors

SOURCE_MCP_SERVER = "mcp_server"
SOURCE_AI_API = "ai_api"
DIRECTIONS = ("input", "output")


def provider_source(model: str) -> str:
    """Usage source name for a LiteLLM model string: ``anthropic/...`` → ``anthropic_api``.

    Models without a provider prefix are counted under ``ai_api``.
    """
    if "/" not in model:
        return SOURCE_AI_API
    return f"{model.split('/')[0].lower()}_api"


class TokenUsageStore:
    """Records token counts for the search server and AI providers."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def track_token_usage(self, source: str, direction: str, tokens: int) -> None:
        """Append one usage row and fold it into today's bucket.

        Non-positive counts are ignored.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
        if tokens <= 0:
            return

        with self._db.lock, store_errors("track token usage"):
            conn = self._db.conn
            with conn:
                conn.execute(
                    "INSERT INTO token_usage (source, direction, tokens) VALUES (?, ?, ?)",
                    (source, direction, tokens),
                )
                conn.execute(
                    """
                    INSERT INTO token_usage_daily (date, source, direction, tokens)
                    VALUES (date('now'), ?, ?, ?)
                    ON CONFLICT(date, source, direction) DO UPDATE SET
                        tokens = tokens + excluded.tokens
                    """,
                    (source, direction, tokens),
                )

    def get_token_usage_stats(self) -> dict[str, dict[str, dict[str, int]]]:
        """Return ``{"today": {source: {"input": n, "output": n}}, "total": {...}}``."""
        with self._db.lock, store_errors("read token usage"):
            conn = self._db.conn
            today_rows = conn.execute(
                """
                SELECT source, direction, tokens FROM token_usage_daily
                WHERE date = date('now')
                """
            ).fetchall()
            total_rows = conn.execute(
                """
                SELECT source, direction, SUM(tokens) AS tokens FROM token_usage_daily
                GROUP BY source, direction
                """
            ).fetchall()
        return {"today": _bucket(today_rows), "total": _bucket(total_rows)}


def _bucket(rows: Any) -> dict[str, dict[str, int]]:
    result: dict[str, dict[str, int]] = {}
    for row in rows:
        entry = result.setdefault(row["source"], {"input": 0, "output": 0})
        entry[row["direction"]] = row["tokens"] or 0
    return result

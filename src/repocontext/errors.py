"""Exception taxonomy shared by the store, the search pipeline and the server.

Every error raised deliberately by repocontext derives from RepoContextError so
callers at the edges (HTTP handlers, CLI commands) can map them to a response
without inspecting driver or provider exceptions.
"""

from __future__ import annotations


class RepoContextError(Exception):
    """Base class for all repocontext errors."""


class ConfigurationError(RepoContextError):
    """Invalid configuration: bad config file, dimension mismatch, store not open.

    Fatal; never retried.
    """


class ExternalProviderError(RepoContextError):
    """An embedding, documentation or query-expansion provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.detail = message


class NotFoundError(RepoContextError):
    """An unknown repository, document, chunk or prompt id was requested."""


class StoreError(RepoContextError):
    """A database operation failed (constraint violation, I/O, FTS syntax)."""

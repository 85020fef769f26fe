"""repocontext database layer."""

from repocontext.db.access import RepositoryAccessStore
from repocontext.db.connection import Database
from repocontext.db.documents import DocumentStore
from repocontext.db.history import PromptHistoryStore
from repocontext.db.migrations import MIGRATIONS, run_migrations
from repocontext.db.repositories import RepositoryStore
from repocontext.db.tokens import TokenUsageStore

__all__ = [
    "Database",
    "DocumentStore",
    "MIGRATIONS",
    "PromptHistoryStore",
    "RepositoryAccessStore",
    "RepositoryStore",
    "TokenUsageStore",
    "run_migrations",
]

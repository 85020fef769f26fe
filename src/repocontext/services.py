"""Service wiring — one place that builds every store and engine from config."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from repocontext.config import RepoContextConfig
from repocontext.db.access import RepositoryAccessStore
from repocontext.db.connection import Database
from repocontext.db.documents import DocumentStore
from repocontext.db.history import PromptHistoryStore
from repocontext.db.repositories import RepositoryStore
from repocontext.db.tokens import TokenUsageStore
from repocontext.ingest.documenter import Documenter
from repocontext.ingest.embeddings import EmbeddingGenerator
from repocontext.ingest.indexer import DocumentIndexer
from repocontext.rag.expansion import PromptExpander
from repocontext.rag.search import HybridSearch
from repocontext.rag.service import SearchService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived component, sharing one Database handle.

    Build with ``Services.build(config)``; use as a context manager (or call
    ``open()``/``close()``) around the work.
    """

    config: RepoContextConfig
    db: Database
    repositories: RepositoryStore
    documents: DocumentStore
    access: RepositoryAccessStore
    history: PromptHistoryStore
    tokens: TokenUsageStore
    embeddings: EmbeddingGenerator
    expander: PromptExpander
    documenter: Documenter
    search: HybridSearch
    indexer: DocumentIndexer
    search_service: SearchService

    @classmethod
    def build(
        cls,
        config: RepoContextConfig,
        *,
        db: Database | None = None,
        embeddings: EmbeddingGenerator | None = None,
        expander: PromptExpander | None = None,
    ) -> Services:
        """Construct all components; nothing touches disk until ``open()``.

        *db*, *embeddings* and *expander* may be injected (tests use fakes).
        """
        db = db or Database(Path(config.database.path).expanduser())
        repositories = RepositoryStore(db)
        documents = DocumentStore(db, dimensions=config.embedding.dimensions)
        access = RepositoryAccessStore(db)
        history = PromptHistoryStore(db)
        tokens = TokenUsageStore(db)
        embeddings = embeddings or EmbeddingGenerator(config.embedding)
        expander = expander or PromptExpander(config.expansion, tokens=tokens)
        documenter = Documenter(config.documentation, tokens=tokens)
        search = HybridSearch(documents)
        indexer = DocumentIndexer(documents, embeddings, documenter, config.indexing)
        search_service = SearchService(
            repositories=repositories,
            access=access,
            history=history,
            tokens=tokens,
            embeddings=embeddings,
            search=search,
            expander=expander,
        )
        return cls(
            config=config,
            db=db,
            repositories=repositories,
            documents=documents,
            access=access,
            history=history,
            tokens=tokens,
            embeddings=embeddings,
            expander=expander,
            documenter=documenter,
            search=search,
            indexer=indexer,
            search_service=search_service,
        )

    def open(self) -> Services:
        self.db.open()
        expired = self.access.cleanup_expired_permissions()
        if expired:
            logger.info("Removed %d expired access permissions", expired)
        return self

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> Services:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

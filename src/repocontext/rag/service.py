"""Search orchestration behind ``POST /search`` and ``repocontext search``.

Per request:
  record history → expand query → embed → access-scoped hybrid search
  → context expansion → persist results → respond

The history row is committed before anything else runs and is never rolled
back: a request that fails later stays in the history with zero results.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from repocontext.config import SearchCfg
from repocontext.db.access import RepositoryAccessStore
from repocontext.db.history import PromptHistoryStore
from repocontext.db.repositories import RepositoryStore
from repocontext.db.tokens import SOURCE_MCP_SERVER, TokenUsageStore
from repocontext.errors import NotFoundError
from repocontext.ingest.embeddings import EmbeddingGenerator
from repocontext.rag import llm_client
from repocontext.rag.expansion import PromptExpander
from repocontext.rag.search import HybridSearch, HybridSearchOptions, SearchHit

logger = logging.getLogger(__name__)

# Tokenizer used to estimate search request/response sizes for usage tracking.
_USAGE_TOKENIZER_MODEL = "gpt-3.5-turbo"


@dataclass
class SearchOptions:
    top_k: int = 5
    context_chunks: int = 2
    weight_fts: float = 1.0
    weight_vector: float = 1.0
    min_score: float = 0.1

    @classmethod
    def from_config(cls, cfg: SearchCfg) -> SearchOptions:
        return cls(
            top_k=cfg.top_k,
            context_chunks=cfg.context_chunks,
            weight_fts=cfg.weight_fts,
            weight_vector=cfg.weight_vector,
            min_score=cfg.min_score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "topK": self.top_k,
            "contextChunks": self.context_chunks,
            "weightFts": self.weight_fts,
            "weightVector": self.weight_vector,
            "minScore": self.min_score,
        }


@dataclass
class SearchRequest:
    prompt: str
    repository_id: str
    repository_name: str | None = None
    options: SearchOptions = field(default_factory=SearchOptions)


@dataclass
class SearchResultItem:
    file_path: str
    title: str | None
    score: float
    content: str
    metadata: dict[str, Any]
    repository_id: str
    repository_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "title": self.title,
            "score": self.score,
            "content": self.content,
            "metadata": self.metadata,
            "repositoryId": self.repository_id,
            "repositoryName": self.repository_name,
        }


@dataclass
class SearchResponse:
    prompt_id: str
    query: str
    expanded_query: str
    results: list[SearchResultItem] = field(default_factory=list)

    @property
    def message(self) -> str | None:
        return None if self.results else "No relevant documents found"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": True,
            "promptId": self.prompt_id,
            "query": self.query,
            "expandedQuery": self.expanded_query,
            "results": [r.to_dict() for r in self.results],
        }
        if self.message:
            data["message"] = self.message
        return data


class SearchService:
    """Run searches on behalf of a source repository.

    The repositories a search may read are the source itself plus every live
    access grant it holds.

    Args:
        repositories: Registered repositories (name lookup, existence check).
        access: Access-control edges.
        history: Prompt history / result audit trail.
        tokens: Token usage counters (``mcp_server`` source).
        embeddings: Query embedding generator.
        search: Hybrid search engine.
        expander: Optional query expander; ``None`` searches the raw prompt.
    """

    def __init__(
        self,
        repositories: RepositoryStore,
        access: RepositoryAccessStore,
        history: PromptHistoryStore,
        tokens: TokenUsageStore,
        embeddings: EmbeddingGenerator,
        search: HybridSearch,
        expander: PromptExpander | None = None,
    ) -> None:
        self._repositories = repositories
        self._access = access
        self._history = history
        self._tokens = tokens
        self._embeddings = embeddings
        self._search = search
        self._expander = expander

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Execute *request* and return context-expanded results.

        Raises:
            ValueError: Empty prompt or repository id.
            NotFoundError: The source repository is not registered.
            ExternalProviderError: The query could not be embedded.
            ConfigurationError: The query embedding has the wrong dimension.
            StoreError: A database operation failed.
        """
        if not request.prompt or not request.repository_id:
            raise ValueError("Missing required fields: prompt and repositoryId")

        source = await asyncio.to_thread(
            self._repositories.get_repository, request.repository_id
        )
        if source is None:
            raise NotFoundError(f"Unknown repository '{request.repository_id}'")
        repository_name = request.repository_name or source.name
        options = request.options

        prompt_id = uuid.uuid4().hex
        await asyncio.to_thread(
            self._history.add_prompt_history,
            prompt_id,
            request.prompt,
            request.repository_id,
            repository_name,
            options.to_dict(),
        )
        logger.info("Search %s for repository %s: %r", prompt_id, request.repository_id, request.prompt)

        try:
            response = await self._run(prompt_id, request, repository_name)
        except Exception:
            logger.warning("Search %s failed; history kept with zero results", prompt_id)
            raise

        await self._track_usage(request.prompt, response)
        return response

    async def _run(
        self, prompt_id: str, request: SearchRequest, repository_name: str
    ) -> SearchResponse:
        options = request.options

        expanded_query = request.prompt
        if self._expander is not None:
            expanded_query = await self._expander.expand_for_search(request.prompt)

        query_embedding = await self._embeddings.generate_embedding(expanded_query)

        accessible = await asyncio.to_thread(
            self._access.get_accessible_repositories, request.repository_id
        )
        hits = await self._search.hybrid_search(
            request.prompt,
            query_embedding,
            accessible,
            HybridSearchOptions(
                weight_fts=options.weight_fts,
                weight_vector=options.weight_vector,
                top_k=options.top_k,
                min_score=options.min_score,
            ),
        )

        contexts = await asyncio.gather(
            *(
                asyncio.to_thread(
                    self._search.get_document_context,
                    hit.document_id,
                    hit.chunk_id,
                    options.context_chunks,
                )
                for hit in hits
            )
        )
        names = await asyncio.to_thread(self._repositories.names_by_id, accessible)
        names[request.repository_id] = repository_name

        results = [
            _to_item(hit, context or hit.content, names.get(hit.repository_id, hit.repository_id))
            for hit, context in zip(hits, contexts)
        ]
        await asyncio.to_thread(
            self._history.add_prompt_results,
            prompt_id,
            [_to_history_row(hit, item) for hit, item in zip(hits, results)],
        )
        logger.debug("Search %s returned %d results", prompt_id, len(results))

        return SearchResponse(
            prompt_id=prompt_id,
            query=request.prompt,
            expanded_query=expanded_query,
            results=results,
        )

    async def _track_usage(self, prompt: str, response: SearchResponse) -> None:
        input_tokens = llm_client.count_tokens(_USAGE_TOKENIZER_MODEL, prompt)
        output_tokens = llm_client.count_tokens(
            _USAGE_TOKENIZER_MODEL, json.dumps(response.to_dict())
        )
        await asyncio.to_thread(
            self._tokens.track_token_usage, SOURCE_MCP_SERVER, "input", input_tokens
        )
        await asyncio.to_thread(
            self._tokens.track_token_usage, SOURCE_MCP_SERVER, "output", output_tokens
        )


def _to_item(hit: SearchHit, content: str, repository_name: str) -> SearchResultItem:
    return SearchResultItem(
        file_path=hit.file_path,
        title=hit.title,
        score=hit.score,
        content=content,
        metadata=hit.metadata,
        repository_id=hit.repository_id,
        repository_name=repository_name,
    )


def _to_history_row(hit: SearchHit, item: SearchResultItem) -> dict[str, Any]:
    return {
        "repository_id": hit.repository_id,
        "document_id": hit.document_id,
        "document_path": hit.file_path,
        "chunk_index": hit.chunk_index,
        "score": hit.score,
        "content": item.content,
        "metadata": hit.metadata,
    }

"""FastAPI app exposing hybrid search, index status and history on loopback.

Every response is JSON. Failures on ``/search`` come back as
``{"success": false, "error": "..."}``; database errors never leak their
driver message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from repocontext import __version__
from repocontext.errors import NotFoundError, RepoContextError, StoreError
from repocontext.rag.service import SearchOptions, SearchRequest
from repocontext.server.schemas import SearchBody
from repocontext.services import Services

logger = logging.getLogger(__name__)

SERVICE_NAME = "repocontext-search"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _merge_options(body: SearchBody, defaults: SearchOptions) -> SearchOptions:
    o = body.options
    return SearchOptions(
        top_k=o.top_k if o.top_k is not None else defaults.top_k,
        context_chunks=(
            o.context_chunks if o.context_chunks is not None else defaults.context_chunks
        ),
        weight_fts=o.weight_fts if o.weight_fts is not None else defaults.weight_fts,
        weight_vector=o.weight_vector if o.weight_vector is not None else defaults.weight_vector,
        min_score=o.min_score if o.min_score is not None else defaults.min_score,
    )


def create_app(services: Services) -> FastAPI:
    """Build the API around an already-constructed *services* bundle.

    The lifespan opens the database on startup (no-op when already open) and
    closes it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services.open()
        logger.info("Search API ready")
        yield
        services.close()

    app = FastAPI(
        title="repocontext",
        version=__version__,
        description="Local hybrid search over indexed repositories",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost", "http://127.0.0.1"],
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # ====== ERROR MAPPING ======

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, f"Invalid request: {exc.errors()[0].get('msg', 'bad input')}")

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(StoreError)
    async def on_store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Database error on %s: %s", request.url.path, exc)
        return _error(500, "Internal database error")

    @app.exception_handler(RepoContextError)
    async def on_repocontext_error(request: Request, exc: RepoContextError) -> JSONResponse:
        logger.error("Request to %s failed: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(ValueError)
    async def on_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, "Internal server error")

    # ====== SEARCH ======

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "service": SERVICE_NAME}

    @app.post("/search")
    async def search(body: SearchBody) -> JSONResponse:
        if not body.prompt or not body.repository_id:
            return _error(400, "Missing required fields: prompt and repositoryId")

        request = SearchRequest(
            prompt=body.prompt,
            repository_id=body.repository_id,
            repository_name=body.repository_name,
            options=_merge_options(body, SearchOptions.from_config(services.config.search)),
        )
        response = await services.search_service.search(request)
        return JSONResponse(content=response.to_dict())

    # ====== REPOSITORY ======

    @app.get("/repository/{repository_id}/status")
    async def repository_status(repository_id: str) -> dict:
        count, last_updated = await asyncio.to_thread(
            services.documents.get_index_status, repository_id
        )
        return {"indexed": count > 0, "documentCount": count, "lastUpdated": last_updated}

    @app.get("/repository/{repository_id}/stats")
    async def repository_stats(repository_id: str) -> dict:
        stats = await asyncio.to_thread(services.documents.get_statistics, repository_id)
        return stats.to_dict()

    # ====== HISTORY ======

    @app.get("/prompt-history/search")
    async def search_history(
        q: str = Query(default=""),
        repository_id: str | None = Query(default=None, alias="repositoryId"),
        limit: int = Query(default=50, ge=1, le=1000),
    ) -> dict:
        entries = await asyncio.to_thread(
            services.history.search_prompt_history, q, repository_id, limit
        )
        return {"success": True, "history": [e.to_dict() for e in entries]}

    @app.get("/prompt-history/{repository_id}")
    async def repository_history(
        repository_id: str, limit: int = Query(default=50, ge=1, le=1000)
    ) -> dict:
        entries = await asyncio.to_thread(
            services.history.get_prompt_history, repository_id, limit
        )
        return {"success": True, "history": [e.to_dict() for e in entries]}

    @app.get("/prompt-history")
    async def all_history(limit: int = Query(default=100, ge=1, le=1000)) -> dict:
        entries = await asyncio.to_thread(services.history.get_all_prompt_history, limit)
        return {"success": True, "history": [e.to_dict() for e in entries]}

    @app.get("/prompt-results/{prompt_id}")
    async def prompt_results(prompt_id: str) -> dict:
        prompt = await asyncio.to_thread(services.history.get_prompt, prompt_id)
        if prompt is None:
            raise NotFoundError(f"Unknown prompt '{prompt_id}'")
        results = await asyncio.to_thread(services.history.get_prompt_results, prompt_id)
        return {"success": True, "results": [r.to_dict() for r in results]}

    # ====== USAGE ======

    @app.get("/token-usage")
    async def token_usage() -> dict:
        return await asyncio.to_thread(services.tokens.get_token_usage_stats)

    return app

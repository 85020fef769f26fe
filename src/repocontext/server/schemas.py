"""Request models for the local search API (camelCase on the wire)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SearchOptionsBody(BaseModel):
    """Per-request overrides; unset fields fall back to the configured defaults."""

    model_config = ConfigDict(populate_by_name=True)

    top_k: int | None = Field(default=None, alias="topK", ge=1, le=100)
    context_chunks: int | None = Field(default=None, alias="contextChunks", ge=0, le=20)
    weight_fts: float | None = Field(default=None, alias="weightFts", ge=0)
    weight_vector: float | None = Field(default=None, alias="weightVector", ge=0)
    min_score: float | None = Field(default=None, alias="minScore", ge=0)


class SearchBody(BaseModel):
    """``POST /search`` payload.

    ``prompt`` and ``repositoryId`` are optional here so that a missing value
    is answered with a 400 by the handler instead of a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = None
    repository_id: str | None = Field(default=None, alias="repositoryId")
    repository_name: str | None = Field(default=None, alias="repositoryName")
    options: SearchOptionsBody = Field(default_factory=SearchOptionsBody)

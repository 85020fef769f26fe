"""Domain models for the repocontext database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChunkType(str, Enum):
    HEADER = "header"
    CONTENT = "content"
    CODE = "code"


@dataclass
class ChunkMetadata:
    """Positional metadata attached to every chunk.

    Serialised with camelCase keys (``chunkType``, ``startLine`` ...), the
    shape returned to search clients and stored in ``chunks.metadata``.
    """

    headers: list[str] = field(default_factory=list)
    chunk_type: ChunkType = ChunkType.CONTENT
    start_line: int | None = None
    end_line: int | None = None
    language: str | None = None
    file_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "headers": list(self.headers),
            "chunkType": self.chunk_type.value,
        }
        if self.start_line is not None:
            data["startLine"] = self.start_line
        if self.end_line is not None:
            data["endLine"] = self.end_line
        if self.language is not None:
            data["language"] = self.language
        if self.file_path is not None:
            data["filePath"] = self.file_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkMetadata:
        return cls(
            headers=list(data.get("headers", [])),
            chunk_type=ChunkType(data.get("chunkType", ChunkType.CONTENT.value)),
            start_line=data.get("startLine"),
            end_line=data.get("endLine"),
            language=data.get("language"),
            file_path=data.get("filePath"),
        )


@dataclass
class DocumentChunk:
    """A chunk produced by the chunker, before it is embedded and stored."""

    content: str
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)


@dataclass
class Repository:
    id: str
    name: str
    path: str
    added_at: str | None = None
    last_opened: str | None = None


@dataclass
class Document:
    id: int
    repository_id: str
    file_path: str
    title: str | None
    content: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Chunk:
    id: int
    document_id: int
    chunk_index: int
    content: str
    metadata: str = "{}"
    embedding: bytes | None = None

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata or "{}")


@dataclass
class ChunkHit:
    """A stored chunk joined with its parent document — one search candidate."""

    chunk_id: int
    document_id: int
    chunk_index: int
    content: str
    metadata: dict[str, Any]
    repository_id: str
    file_path: str
    title: str | None


@dataclass
class AccessPermission:
    source_repository_id: str
    target_repository_id: str
    permission_type: str = "read"
    granted_at: str | None = None
    granted_by: str | None = None
    expires_at: str | None = None
    id: int | None = None
    target_repository_name: str | None = None


@dataclass
class RepositoryAccess:
    """A known repository and whether a given source may read it."""

    id: str
    name: str
    path: str
    has_access: bool


@dataclass
class PromptHistoryEntry:
    id: str
    prompt: str
    repository_id: str
    repository_name: str
    options: dict[str, Any]
    timestamp: str
    total_results: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "repositoryId": self.repository_id,
            "repositoryName": self.repository_name,
            "options": self.options,
            "timestamp": self.timestamp,
            "totalResults": self.total_results,
        }


@dataclass
class PromptResult:
    id: str
    prompt_history_id: str
    repository_id: str
    document_id: int
    document_path: str
    chunk_index: int
    score: float
    content: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "promptHistoryId": self.prompt_history_id,
            "repositoryId": self.repository_id,
            "documentId": self.document_id,
            "documentPath": self.document_path,
            "chunkIndex": self.chunk_index,
            "score": self.score,
            "content": self.content,
            "metadata": self.metadata,
        }


@dataclass
class RepositoryStatistics:
    total_documents: int = 0
    total_chunks: int = 0
    total_size: int = 0
    avg_chunks_per_document: float = 0.0
    avg_chunk_size: float = 0.0
    vector_dimensions: int = 0
    indexed_files: list[str] = field(default_factory=list)
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalDocuments": self.total_documents,
            "totalChunks": self.total_chunks,
            "totalSize": self.total_size,
            "avgChunksPerDocument": self.avg_chunks_per_document,
            "avgChunkSize": self.avg_chunk_size,
            "vectorDimensions": self.vector_dimensions,
            "indexedFiles": list(self.indexed_files),
            "lastUpdated": self.last_updated,
        }

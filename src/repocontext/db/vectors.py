"""Embedding serialisation and dimension checks for the chunks.embedding BLOB column.

Vectors are stored as packed float32 (the sqlite-vec wire format), so the
stored byte length is always ``4 * dimensions``. Similarity is computed inside
SQLite with ``vec_distance_cosine``; see ``DocumentStore.search_vectors``.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlite_vec import serialize_float32

from repocontext.errors import ConfigurationError

_FLOAT_BYTES = 4


def serialize_embedding(embedding: Sequence[float]) -> bytes:
    """Pack *embedding* into the float32 BLOB format."""
    return serialize_float32(list(embedding))


def dimensions_from_bytes(byte_length: int | None) -> int:
    """Infer vector dimensionality from a stored BLOB length."""
    return (byte_length or 0) // _FLOAT_BYTES


def check_dimensions(embedding: Sequence[float], expected: int) -> None:
    """Raise ConfigurationError if *embedding* does not have *expected* entries.

    A mismatch means the embedding model and the stored index disagree;
    there is no recovery short of re-indexing with a matching model.
    """
    if len(embedding) != expected:
        raise ConfigurationError(
            f"Embedding dimension mismatch: got {len(embedding)}, "
            f"index expects {expected}. Check embedding.model / embedding.dimensions."
        )

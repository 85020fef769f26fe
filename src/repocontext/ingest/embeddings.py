"""Embedding generator — batched LiteLLM embeddings with a dimension guard."""

from __future__ import annotations

import asyncio
import logging

from repocontext.config import EmbeddingCfg
from repocontext.errors import ConfigurationError
from repocontext.rag import llm_client

logger = logging.getLogger(__name__)

_SAMPLE_TEXT = "repocontext embedding check"


class EmbeddingGenerator:
    """Turn text into fixed-dimension vectors through the configured model.

    ``initialize()`` must succeed before the first real call; it checks the
    provider key and confirms the model's output dimension with one sample
    request. Every returned vector is checked against ``dimension``.

    Args:
        config: Embedding section of the loaded configuration.
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def dimension(self) -> int:
        return self._config.dimensions

    @property
    def model(self) -> str:
        return self._config.model

    async def initialize(self) -> None:
        """Validate the API key and check the model dimension. Idempotent."""
        async with self._init_lock:
            if self._initialized:
                return
            llm_client.validate_api_key(self.model)
            sample = await self._embed(_SAMPLE_TEXT)
            self._check(sample)
            self._initialized = True
            logger.info("Embedding model %s ready (%d dimensions)", self.model, self.dimension)

    async def generate_embedding(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ExternalProviderError: The provider call failed.
            ConfigurationError: The returned vector has the wrong length.
        """
        await self.initialize()
        vector = await self._embed(text)
        self._check(vector)
        return vector

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order.

        Requests inside one batch run concurrently; batches run one after the
        other so a large file never floods the provider.
        """
        await self.initialize()
        size = max(1, self._config.batch_size)
        vectors: list[list[float]] = []
        for start in range(0, len(texts), size):
            batch = texts[start : start + size]
            results = await asyncio.gather(*(self._embed(text) for text in batch))
            for vector in results:
                self._check(vector)
            vectors.extend(results)
            logger.debug("Embedded %d/%d texts", len(vectors), len(texts))
        return vectors

    async def _embed(self, text: str) -> list[float]:
        return await llm_client.embed(self.model, text, timeout=self._config.timeout)

    def _check(self, vector: list[float]) -> None:
        if len(vector) != self.dimension:
            raise ConfigurationError(
                f"Embedding model '{self.model}' returned {len(vector)} dimensions, "
                f"expected {self.dimension}. Re-index after changing models."
            )

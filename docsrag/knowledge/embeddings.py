"""Embedding generation for knowledge base chunks.

Supports OpenAI-compatible endpoints (text-embedding-3-small) and Google
(text-embedding-004). Providers are constructed explicitly and passed to the
components that need them.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Protocol

import numpy as np

from docsrag.core.config import Settings
from docsrag.observability import MetricsCollector, get_metrics_backend

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_BATCH_SIZE = 50
DEFAULT_API_DELAY_SECONDS = 0.2


class EmbeddingError(Exception):
    """Raised when a provider returns unusable embeddings."""


class EmbeddingProvider(Protocol):
    """Turns text into fixed-dimension vectors."""

    async def embed(self, texts: list[str]) -> "NDArray[np.float32]":
        ...

    async def embed_query(self, text: str) -> "NDArray[np.float32]":
        ...


class OpenAIEmbeddingProvider:
    """Embeddings from an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = "text-embedding-3-small",
        client=None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.client = client
        self.model = model
        self.metrics = metrics or get_metrics_backend()

    async def embed(self, texts: list[str]) -> "NDArray[np.float32]":
        """Embed a batch of texts in one request.

        Returns:
            NumPy array of shape (len(texts), embedding_dim).
        """
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
            status_code = 200
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_external_api(
                "openai", "embeddings.create", status_code, duration_ms
            )

        return np.array([item.embedding for item in response.data], dtype=np.float32)

    async def embed_query(self, text: str) -> "NDArray[np.float32]":
        embeddings = await self.embed([text])
        return embeddings[0]


class GoogleEmbeddingProvider:
    """Embeddings from Google's text-embedding model."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-004",
        client=None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if client is None:
            import google.generativeai as genai

            if api_key:
                genai.configure(api_key=api_key)
            client = genai
        self._genai = client
        self.model = model
        self.metrics = metrics or get_metrics_backend()

    def _embed(self, content: str | list[str], task_type: str):
        start_time = time.perf_counter()
        status_code = 500
        try:
            result = self._genai.embed_content(
                model=f"models/{self.model}",
                content=content,
                task_type=task_type,
            )
            status_code = 200
            return result["embedding"]
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_external_api("google", "embed_content", status_code, duration_ms)

    async def embed(self, texts: list[str]) -> "NDArray[np.float32]":
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        embeddings = self._embed(texts, "retrieval_document")
        return np.array(embeddings, dtype=np.float32)

    async def embed_query(self, text: str) -> "NDArray[np.float32]":
        """Embed a search query using the retrieval_query task type."""
        return np.array(self._embed(text, "retrieval_query"), dtype=np.float32)


def build_embedding_provider(
    settings: Settings,
    metrics: MetricsCollector | None = None,
) -> EmbeddingProvider:
    """Construct the configured embedding provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if settings.embedding_provider == "openai":
        return OpenAIEmbeddingProvider(
            api_key=settings.embedding_api_key,
            base_url=settings.embedding_base_url,
            model=settings.embedding_model,
            metrics=metrics,
        )
    elif settings.embedding_provider == "google":
        return GoogleEmbeddingProvider(
            api_key=settings.embedding_api_key,
            model=settings.embedding_model,
            metrics=metrics,
        )
    else:
        raise ValueError(f"Unsupported embedding provider: {settings.embedding_provider}")


async def embed_in_batches(
    provider: EmbeddingProvider,
    texts: list[str],
    batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
    delay_seconds: float = DEFAULT_API_DELAY_SECONDS,
) -> "NDArray[np.float32]":
    """Embed texts batch by batch, pausing between batches for rate limits.

    Args:
        provider: Embedding provider.
        texts: Texts to embed, in order.
        batch_size: Texts per provider request.
        delay_seconds: Wait between consecutive batches (not after the last).

    Returns:
        NumPy array of shape (len(texts), embedding_dim), rows in input order.

    Raises:
        EmbeddingError: If a batch returns the wrong number of vectors or the
            dimension changes between batches.
    """
    if not texts:
        return np.zeros((0, 0), dtype=np.float32)

    batch_size = max(batch_size, 1)
    total_batches = (len(texts) + batch_size - 1) // batch_size
    batches: list[NDArray[np.float32]] = []

    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]
        logger.info(f"Generating embedding batch {i // batch_size + 1}/{total_batches}")

        embeddings = await provider.embed(batch)
        if embeddings.ndim != 2 or embeddings.shape[0] != len(batch):
            raise EmbeddingError(
                f"Embedding provider returned {embeddings.shape[0] if embeddings.ndim else 0} "
                f"vectors for {len(batch)} texts"
            )
        if batches and embeddings.shape[1] != batches[0].shape[1]:
            raise EmbeddingError(
                f"Embedding dimension changed from {batches[0].shape[1]} to {embeddings.shape[1]}"
            )
        batches.append(embeddings)

        if i + batch_size < len(texts):
            await asyncio.sleep(delay_seconds)

    return np.vstack(batches).astype(np.float32)

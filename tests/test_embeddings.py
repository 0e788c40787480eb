"""Tests for embedding providers and batched embedding."""

from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from docsrag.core.config import Settings
from docsrag.knowledge.embeddings import (
    EmbeddingError,
    GoogleEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_provider,
    embed_in_batches,
)


def openai_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=vector) for vector in vectors]
    return response


class TestEmbedInBatches:
    """Tests for embed_in_batches."""

    async def test_batches_in_order_with_delay(self, embedder, no_sleep):
        texts = [f"text number {i}" for i in range(5)]

        embeddings = await embed_in_batches(embedder, texts, batch_size=2, delay_seconds=0.3)

        assert embeddings.shape == (5, embedder.dimension)
        assert embedder.embed_calls == [2, 2, 1]
        assert no_sleep == [0.3, 0.3]
        np.testing.assert_allclose(embeddings[4], await embedder.embed_query(texts[4]))

    async def test_single_batch_does_not_sleep(self, embedder, no_sleep):
        await embed_in_batches(embedder, ["a", "b"], batch_size=50)

        assert no_sleep == []

    async def test_empty_input(self, embedder, no_sleep):
        embeddings = await embed_in_batches(embedder, [])

        assert embeddings.shape == (0, 0)
        assert embedder.embed_calls == []

    async def test_wrong_vector_count_raises(self, no_sleep):
        provider = MagicMock()
        provider.embed = AsyncMock(return_value=np.ones((1, 4), dtype=np.float32))

        with pytest.raises(EmbeddingError):
            await embed_in_batches(provider, ["a", "b"], batch_size=2)

    async def test_dimension_change_raises(self, no_sleep):
        provider = MagicMock()
        provider.embed = AsyncMock(
            side_effect=[np.ones((1, 4), dtype=np.float32), np.ones((1, 8), dtype=np.float32)]
        )

        with pytest.raises(EmbeddingError):
            await embed_in_batches(provider, ["a", "b"], batch_size=1)


class TestOpenAIEmbeddingProvider:
    """Tests for the OpenAI-compatible provider."""

    async def test_embed_calls_api_and_records_metrics(self, metrics):
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            return_value=openai_response([[1.0, 0.0], [0.0, 1.0]])
        )
        provider = OpenAIEmbeddingProvider(
            model="text-embedding-3-small", client=client, metrics=metrics
        )

        embeddings = await provider.embed(["first", "second"])

        client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small", input=["first", "second"]
        )
        assert embeddings.dtype == np.float32
        assert embeddings.shape == (2, 2)
        assert metrics.external_call_count("openai", "embeddings.create") == 1

    async def test_embed_query_returns_vector(self, metrics):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=openai_response([[0.5, 0.5, 0.0]]))
        provider = OpenAIEmbeddingProvider(client=client, metrics=metrics)

        vector = await provider.embed_query("question")

        assert vector.shape == (3,)

    async def test_api_error_is_recorded_and_raised(self, metrics):
        client = MagicMock()
        client.embeddings.create = AsyncMock(side_effect=RuntimeError("rate limited"))
        provider = OpenAIEmbeddingProvider(client=client, metrics=metrics)

        with pytest.raises(RuntimeError):
            await provider.embed(["text"])

        assert 'status="500"' in metrics.render_prometheus()


class TestGoogleEmbeddingProvider:
    """Tests for the Google provider, with a stub genai module."""

    async def test_embed_uses_document_task(self, metrics):
        genai = MagicMock()
        genai.embed_content.return_value = {"embedding": [[1.0, 0.0], [0.0, 1.0]]}
        provider = GoogleEmbeddingProvider(client=genai, metrics=metrics)

        embeddings = await provider.embed(["first", "second"])

        genai.embed_content.assert_called_once_with(
            model="models/text-embedding-004",
            content=["first", "second"],
            task_type="retrieval_document",
        )
        assert embeddings.dtype == np.float32
        assert embeddings.shape == (2, 2)
        assert metrics.external_call_count("google", "embed_content") == 1

    async def test_embed_query_uses_query_task(self, metrics):
        genai = MagicMock()
        genai.embed_content.return_value = {"embedding": [0.5, 0.5, 0.0]}
        provider = GoogleEmbeddingProvider(client=genai, metrics=metrics)

        vector = await provider.embed_query("question")

        assert vector.shape == (3,)
        assert genai.embed_content.call_args.kwargs["task_type"] == "retrieval_query"


class TestBuildEmbeddingProvider:
    def test_openai_provider_from_settings(self, metrics):
        settings = Settings(
            embedding_provider="openai",
            embedding_api_key="sk-test",
            embedding_model="text-embedding-3-small",
        )

        provider = build_embedding_provider(settings, metrics)

        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model == "text-embedding-3-small"

    def test_google_provider_gets_google_model(self, metrics, monkeypatch):
        """Test that selecting Google alone does not pass an OpenAI model name."""
        configure = MagicMock()
        monkeypatch.setattr("google.generativeai.configure", configure)
        settings = Settings(_env_file=None, embedding_provider="google", embedding_api_key="key")

        provider = build_embedding_provider(settings, metrics)

        assert isinstance(provider, GoogleEmbeddingProvider)
        assert provider.model == "text-embedding-004"
        configure.assert_called_once_with(api_key="key")

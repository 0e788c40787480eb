"""Tests for the retrieval pipeline."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from docsrag.knowledge.lexical import LexicalKnowledgeBase
from docsrag.knowledge.models import ErrorKind, Failure, PipelineAnswer
from docsrag.knowledge.retriever import VectorKnowledgeBase
from docsrag.services.pipeline import NO_RESULTS_ANSWER, RetrievalPipeline
from tests.conftest import EMBEDDING_DIM, InMemoryRepository


@pytest.fixture
def llm() -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(return_value="Use pip install.")
    return llm


@pytest.fixture
def pipeline(repository, llm, metrics) -> RetrievalPipeline:
    knowledge_base = LexicalKnowledgeBase(repository=repository, metrics=metrics)
    return RetrievalPipeline(knowledge_base, llm, max_results=3)


class TestAnswer:
    """Tests for RetrievalPipeline.answer."""

    async def test_first_call_builds_index(self, pipeline, llm):
        result = await pipeline.answer("install package")

        assert isinstance(result, PipelineAnswer)
        assert result.answer == "Use pip install."
        assert result.initialized is True
        assert result.processed_files == 3
        assert result.stored_chunks == 3
        assert result.sources[0] == "docs/install.md"
        assert result.context.startswith("Source: docs/install.md\n# Installation")

    async def test_prompt_includes_query_and_context(self, pipeline, llm):
        result = await pipeline.answer("install package")

        prompt = llm.generate.call_args.args[0]
        assert "install package" in prompt
        assert result.context in prompt

    async def test_second_call_reuses_index(self, pipeline, repository):
        """Test that repeated questions do not refetch or rechunk documents."""
        await pipeline.answer("install package")
        fetched = list(repository.content_calls)

        result = await pipeline.answer("configure server")

        assert result.initialized is False
        assert result.processed_files == 0
        assert repository.list_calls == 1
        assert repository.content_calls == fetched

    async def test_force_reload_rebuilds(self, pipeline, repository):
        await pipeline.answer("install package")

        result = await pipeline.answer("install package", force_reload=True)

        assert result.initialized is True
        assert repository.list_calls == 2

    async def test_sources_are_deduplicated(self, llm, metrics):
        body = "Install steps are described in this paragraph in detail."
        documents = {
            "docs/install.md": f"# Install\n{body}\n# Install again\n{body}\n",
            "docs/other.md": f"# Other\n{body}\n",
        }
        knowledge_base = LexicalKnowledgeBase(
            repository=InMemoryRepository(documents), metrics=metrics
        )
        pipeline = RetrievalPipeline(knowledge_base, llm, max_results=5)

        result = await pipeline.answer("install")

        assert sorted(result.sources) == ["docs/install.md", "docs/other.md"]
        assert result.context.count("Source: docs/install.md") == 2

    async def test_llm_failure_is_reported_in_answer(self, pipeline, llm):
        """Test that a failed generation keeps the retrieved sources and context."""
        llm.generate.side_effect = RuntimeError("quota exceeded")

        result = await pipeline.answer("install package")

        assert isinstance(result, PipelineAnswer)
        assert result.answer == "Error generating answer: quota exceeded"
        assert result.sources
        assert result.context

    async def test_no_matches(self, pipeline, llm):
        result = await pipeline.answer("kubernetes")

        assert isinstance(result, PipelineAnswer)
        assert result.answer == NO_RESULTS_ANSWER
        assert result.sources == []
        assert result.context == ""
        llm.generate.assert_not_awaited()

    async def test_empty_query(self, pipeline):
        result = await pipeline.answer("  ")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.INVALID_INPUT

    async def test_empty_repository(self, llm, metrics):
        knowledge_base = LexicalKnowledgeBase(
            repository=InMemoryRepository({}), metrics=metrics
        )

        result = await RetrievalPipeline(knowledge_base, llm).answer("anything")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.NOT_FOUND

    async def test_unreachable_files_are_not_reported_as_missing(self, docs, llm, metrics):
        """Test that failing every fetch differs from an empty repository."""
        knowledge_base = LexicalKnowledgeBase(
            repository=InMemoryRepository(docs, failing=set(docs)), metrics=metrics
        )

        result = await RetrievalPipeline(knowledge_base, llm).answer("install")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.COLLABORATOR
        llm.generate.assert_not_awaited()

    async def test_repository_failure(self, llm, metrics):
        class BrokenRepository(InMemoryRepository):
            async def list_markdown_files(self, path="", recursive=True):
                raise ConnectionError("bad credentials")

        knowledge_base = LexicalKnowledgeBase(
            repository=BrokenRepository({}), metrics=metrics
        )

        result = await RetrievalPipeline(knowledge_base, llm).answer("anything")

        assert isinstance(result, Failure)
        assert result.kind == ErrorKind.COLLABORATOR


class TestVectorPipeline:
    """Tests for the pipeline over the vector knowledge base."""

    async def test_answers_and_reuses_stored_vectors(
        self, repository, embedder, vector_store, llm, metrics, no_sleep
    ):
        knowledge_base = VectorKnowledgeBase(
            repository=repository,
            embedder=embedder,
            store=vector_store,
            index_name="pipeline_docs",
            dimension=EMBEDDING_DIM,
            metrics=metrics,
        )
        pipeline = RetrievalPipeline(knowledge_base, llm, max_results=2)

        first = await pipeline.answer("deploy reverse proxy tls")
        embedded = list(embedder.embed_calls)
        second = await pipeline.answer("deploy reverse proxy tls")

        assert first.initialized is True
        assert first.stored_chunks == 3
        assert first.sources[0] == "guides/deploy.md"
        assert second.initialized is False
        assert embedder.embed_calls == embedded

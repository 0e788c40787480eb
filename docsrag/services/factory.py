"""Construct the knowledge stack from settings.

Called once per process (application lifespan or command-line run); the
returned objects are passed to whatever needs them.
"""

import logging
from dataclasses import dataclass

from docsrag.core.config import Settings
from docsrag.knowledge.base import KnowledgeBase
from docsrag.knowledge.embeddings import build_embedding_provider
from docsrag.knowledge.ingest import ChunkingOptions, DocumentRepository
from docsrag.knowledge.lexical import LexicalKnowledgeBase
from docsrag.knowledge.retriever import VectorKnowledgeBase
from docsrag.knowledge.vector_store import FaissVectorStore
from docsrag.observability import MetricsCollector
from docsrag.services.github_client import GitHubRepository
from docsrag.services.llm import AnswerGenerator
from docsrag.services.local_repository import LocalRepository
from docsrag.services.pipeline import RetrievalPipeline

logger = logging.getLogger(__name__)


@dataclass
class KnowledgeStack:
    repository: DocumentRepository
    knowledge_base: KnowledgeBase
    pipeline: RetrievalPipeline

    async def close(self) -> None:
        if isinstance(self.repository, GitHubRepository):
            await self.repository.close()


def build_repository(
    settings: Settings, metrics: MetricsCollector | None = None
) -> DocumentRepository:
    if settings.docs_local_path:
        return LocalRepository(settings.docs_local_path)
    return GitHubRepository(
        settings.github_repo_url,
        token=settings.github_token,
        base_url=settings.github_api_base_url,
        timeout=settings.github_http_timeout_seconds,
        metrics=metrics,
    )


def build_knowledge_base(
    settings: Settings,
    repository: DocumentRepository,
    metrics: MetricsCollector | None = None,
) -> KnowledgeBase:
    """Create the knowledge base selected by ``settings.knowledge_backend``."""
    chunking = ChunkingOptions(
        max_chunk_lines=settings.chunk_max_lines,
        heading_split_threshold=settings.heading_split_threshold,
        min_chunk_length=settings.min_chunk_length,
    )

    if settings.knowledge_backend == "lexical":
        return LexicalKnowledgeBase(
            repository=repository,
            chunking=chunking,
            file_batch_size=settings.workflow_batch_size,
            metrics=metrics,
        )

    return VectorKnowledgeBase(
        repository=repository,
        embedder=build_embedding_provider(settings, metrics),
        store=FaissVectorStore(settings.vector_storage_path),
        index_name=settings.default_index_name,
        dimension=settings.embedding_dimension,
        embedding_batch_size=settings.embedding_batch_size,
        store_batch_size=settings.store_batch_size,
        api_delay_seconds=settings.api_delay_seconds,
        file_batch_size=settings.workflow_batch_size,
        chunking=chunking,
        metrics=metrics,
    )


def build_knowledge_stack(
    settings: Settings, metrics: MetricsCollector | None = None
) -> KnowledgeStack:
    repository = build_repository(settings, metrics)
    knowledge_base = build_knowledge_base(settings, repository, metrics)
    pipeline = RetrievalPipeline(
        knowledge_base,
        AnswerGenerator.from_settings(settings, metrics),
        max_results=settings.max_search_results,
    )
    logger.info(
        f"Knowledge stack ready: {settings.knowledge_backend} knowledge base "
        f"over {repository.identifier}"
    )
    return KnowledgeStack(repository=repository, knowledge_base=knowledge_base, pipeline=pipeline)

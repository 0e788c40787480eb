"""In-memory knowledge base ranked by lexical relevance scoring."""

import logging
import time

from docsrag.knowledge.base import CANNOT_INITIALIZE, DEFAULT_MAX_RESULTS, KnowledgeBase
from docsrag.knowledge.ingest import (
    DEFAULT_FILE_BATCH_SIZE,
    ChunkingOptions,
    DocumentRepository,
    collect_chunks,
)
from docsrag.knowledge.loader import split_markdown_into_chunks
from docsrag.knowledge.models import (
    ChunkListing,
    DocumentChunk,
    ErrorKind,
    Failure,
    InitResult,
    SearchHit,
    SearchResponse,
    SourceDocument,
    StatusResult,
)
from docsrag.knowledge.scoring import (
    extract_relevant_content,
    generate_summary,
    rank_chunks,
)
from docsrag.observability import MetricsCollector, get_metrics_backend

logger = logging.getLogger(__name__)


class LexicalKnowledgeBase(KnowledgeBase):
    """Chunks held in memory and scored against each query.

    Every load builds a new generation of chunks and swaps it in whole.
    """

    actions = ("init", "search", "status", "load", "get_all")

    def __init__(
        self,
        repository: DocumentRepository | None = None,
        chunking: ChunkingOptions | None = None,
        file_batch_size: int = DEFAULT_FILE_BATCH_SIZE,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__()
        self.repository = repository
        self.chunking = chunking or ChunkingOptions()
        self.file_batch_size = file_batch_size
        self.metrics = metrics or get_metrics_backend()
        self._chunks: list[DocumentChunk] = []
        self._documents_count = 0
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def chunks(self) -> list[DocumentChunk]:
        return list(self._chunks)

    def _replace(self, chunks: list[DocumentChunk], documents_count: int) -> None:
        self._chunks = chunks
        self._documents_count = documents_count
        self._initialized = bool(chunks)

    async def load(self, documents: list[SourceDocument] | None) -> InitResult | Failure:
        """Replace the knowledge base with chunks of already-fetched documents."""
        if documents is None:
            return Failure(
                kind=ErrorKind.INVALID_INPUT, error="The documents parameter is required"
            )

        chunks: list[DocumentChunk] = []
        for doc in documents:
            chunks.extend(
                split_markdown_into_chunks(
                    doc.content,
                    source=doc.path,
                    display_name=doc.name,
                    max_chunk_lines=self.chunking.max_chunk_lines,
                    heading_split_threshold=self.chunking.heading_split_threshold,
                    min_chunk_length=self.chunking.min_chunk_length,
                )
            )

        async with self._lock:
            self._replace(chunks, len(documents))

        return InitResult(
            message=f"Loaded {len(documents)} documents into {len(chunks)} chunks",
            documents_count=len(documents),
            chunks_count=len(chunks),
        )

    async def init(self, force_reload: bool = False) -> InitResult | Failure:
        async with self._lock:
            return await self._init(force_reload)

    async def _init(self, force_reload: bool) -> InitResult | Failure:
        if self._initialized and not force_reload:
            return InitResult(
                message="Knowledge base already initialized",
                documents_count=self._documents_count,
                chunks_count=len(self._chunks),
                cached=True,
            )

        if self.repository is None:
            return Failure(
                kind=ErrorKind.INVALID_INPUT, error="No document repository configured"
            )

        start = time.perf_counter()
        try:
            files = await self.repository.list_markdown_files("", recursive=True)
        except Exception as e:
            logger.error(f"Listing markdown files failed: {e}")
            self.metrics.observe_ingest_job(
                "lexical", False, (time.perf_counter() - start) * 1000
            )
            return Failure(
                kind=ErrorKind.COLLABORATOR,
                error=f"Failed to list repository files: {e}",
            )

        report = await collect_chunks(
            self.repository, files, batch_size=self.file_batch_size, options=self.chunking
        )
        if files and report.processed_files == 0:
            # Keep the current generation rather than replacing it with nothing
            self.metrics.observe_ingest_job(
                "lexical", False, (time.perf_counter() - start) * 1000
            )
            logger.error(f"All {len(files)} markdown files failed to load")
            return Failure(
                kind=ErrorKind.COLLABORATOR,
                error=f"Failed to fetch all {len(files)} markdown files",
            )
        self._replace(report.chunks, report.processed_files)

        self.metrics.observe_ingest_job(
            "lexical",
            True,
            (time.perf_counter() - start) * 1000,
            files_processed=report.processed_files,
            chunks_stored=len(report.chunks),
        )

        if not files:
            message = "No markdown files found in repository"
        else:
            message = (
                f"Knowledge base initialized: loaded {report.processed_files} documents, "
                f"generated {len(report.chunks)} chunks"
            )
            if report.failed_files:
                message += f", {len(report.failed_files)} files failed"
        logger.info(message)

        return InitResult(
            message=message,
            documents_count=report.processed_files,
            chunks_count=len(report.chunks),
            files_listed=len(files),
            failed_files=report.failed_files,
            cached=False,
        )

    async def search(
        self, query: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> SearchResponse | Failure:
        """Rank held chunks against the query, loading lazily if needed."""
        async with self._lock:
            if not self._initialized or not self._chunks:
                init_result = await self._init(force_reload=False)
                if isinstance(init_result, Failure) or not self._chunks:
                    return Failure(kind=ErrorKind.NOT_INITIALIZED, error=CANNOT_INITIALIZE)

            chunks = self._chunks

        ranked = rank_chunks(chunks, query, max_results)
        results = [
            SearchHit(
                content=item.chunk.content,
                source=item.chunk.source,
                title=item.chunk.title,
                section=item.chunk.section,
                relevant_content=extract_relevant_content(item.chunk.content, query),
                summary=generate_summary(item.chunk.content),
            )
            for item in ranked
        ]

        return SearchResponse(
            query=query,
            results=results,
            count=len(results),
            total_documents=len(chunks),
            search_type="lexical",
        )

    async def status(self) -> StatusResult:
        message = (
            f"Knowledge base initialized with {len(self._chunks)} chunks"
            if self._initialized
            else "Knowledge base not initialized"
        )
        return StatusResult(
            initialized=self._initialized,
            documents_count=len(self._chunks),
            message=message,
        )

    async def get_all(self) -> ChunkListing:
        chunks = self.chunks
        return ChunkListing(documents=chunks, count=len(chunks))

    async def perform_action(
        self,
        action: str,
        query: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        force_reload: bool = False,
        documents: list[SourceDocument] | None = None,
    ):
        if action == "load":
            return await self.load(documents)
        if action == "get_all":
            return await self.get_all()
        return await super().perform_action(action, query, max_results, force_reload)

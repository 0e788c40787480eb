"""FAISS-backed knowledge base for RAG.

Chunks are embedded and upserted into a named vector index; searches embed the
query and return nearest neighbours by cosine similarity.
"""

import logging
import time
from datetime import datetime, timezone

from docsrag.knowledge.base import CANNOT_INITIALIZE, DEFAULT_MAX_RESULTS, KnowledgeBase
from docsrag.knowledge.embeddings import (
    DEFAULT_API_DELAY_SECONDS,
    DEFAULT_EMBEDDING_BATCH_SIZE,
    EmbeddingProvider,
    embed_in_batches,
)
from docsrag.knowledge.ingest import (
    DEFAULT_FILE_BATCH_SIZE,
    ChunkingOptions,
    DocumentRepository,
    collect_chunks,
)
from docsrag.knowledge.loader import assign_chunk_ids
from docsrag.knowledge.models import (
    ClearResult,
    DocumentChunk,
    ErrorKind,
    Failure,
    InitResult,
    SearchHit,
    SearchResponse,
    StatusResult,
)
from docsrag.knowledge.scoring import extract_relevant_content, generate_summary
from docsrag.knowledge.vector_store import FaissVectorStore
from docsrag.observability import MetricsCollector, get_metrics_backend

logger = logging.getLogger(__name__)

DEFAULT_INDEX_NAME = "github_docs"
DEFAULT_DIMENSION = 1536
DEFAULT_STORE_BATCH_SIZE = 25

STAGING_SUFFIX = "__staging"

CONTEXT_SEPARATOR = "\n\n---\n\n"


class VectorKnowledgeBase(KnowledgeBase):
    """Knowledge base stored as embeddings in a named vector index.

    Existing vectors in the index count as a loaded knowledge base, so a
    restarted process reuses them instead of re-embedding the repository.
    """

    actions = ("init", "search", "status", "clear")

    def __init__(
        self,
        repository: DocumentRepository,
        embedder: EmbeddingProvider,
        store: FaissVectorStore,
        index_name: str = DEFAULT_INDEX_NAME,
        dimension: int = DEFAULT_DIMENSION,
        embedding_batch_size: int = DEFAULT_EMBEDDING_BATCH_SIZE,
        store_batch_size: int = DEFAULT_STORE_BATCH_SIZE,
        api_delay_seconds: float = DEFAULT_API_DELAY_SECONDS,
        file_batch_size: int = DEFAULT_FILE_BATCH_SIZE,
        chunking: ChunkingOptions | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        super().__init__()
        self.repository = repository
        self.embedder = embedder
        self.store = store
        self.index_name = index_name
        self.dimension = dimension
        self.embedding_batch_size = embedding_batch_size
        self.store_batch_size = max(1, min(store_batch_size, embedding_batch_size))
        self.api_delay_seconds = api_delay_seconds
        self.file_batch_size = file_batch_size
        self.chunking = chunking or ChunkingOptions()
        self.metrics = metrics or get_metrics_backend()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self, force_reload: bool = False) -> InitResult | Failure:
        """Build the vector index from the repository, or reuse stored vectors.

        Args:
            force_reload: Rebuild from scratch even when stored vectors exist.

        Returns:
            InitResult with document and chunk counts, ``cached=True`` when
            stored vectors were reused, or a COLLABORATOR Failure. A failed
            build leaves the previously stored index as it was.
        """
        async with self._lock:
            return await self._init(force_reload)

    async def _init(self, force_reload: bool) -> InitResult | Failure:
        start = time.perf_counter()
        staging = f"{self.index_name}{STAGING_SUFFIX}"
        try:
            if not force_reload:
                cached = await self._reuse_existing()
                if cached is not None:
                    return cached

            # Built under a separate name; only a complete build replaces the index
            await self.store.delete_index(staging)
            await self.store.create_index(staging, self.dimension)

            logger.info(f"Loading markdown files from {self.repository.identifier}")
            files = await self.repository.list_markdown_files("", recursive=True)
            if not files:
                await self.store.rename_index(staging, self.index_name)
                self._initialized = False
                self._observe_ingest(True, start, 0, 0)
                return InitResult(
                    message="No markdown files found in repository",
                    documents_count=0,
                    chunks_count=0,
                    files_listed=0,
                )

            report = await collect_chunks(
                self.repository,
                files,
                batch_size=self.file_batch_size,
                options=self.chunking,
            )
            if report.processed_files == 0:
                await self._discard(staging)
                self._observe_ingest(False, start, 0, 0)
                return Failure(
                    kind=ErrorKind.COLLABORATOR,
                    error=f"Failed to fetch all {len(files)} markdown files",
                )

            chunks = assign_chunk_ids(report.chunks)
            stored = await self._embed_and_store(staging, chunks)
            await self.store.rename_index(staging, self.index_name)
        except Exception as e:
            logger.error(f"Knowledge base initialization failed: {e}")
            await self._discard(staging)
            self._observe_ingest(False, start, 0, 0)
            return Failure(
                kind=ErrorKind.COLLABORATOR, error=f"Initialization failed: {e}"
            )

        self._initialized = stored > 0
        self._observe_ingest(True, start, report.processed_files, stored)
        message = (
            f"Knowledge base initialized: loaded {report.processed_files} documents, "
            f"stored {stored} chunks"
        )
        if report.failed_files:
            message += f", {len(report.failed_files)} files failed"
        logger.info(message)
        return InitResult(
            message=message,
            documents_count=report.processed_files,
            chunks_count=stored,
            files_listed=len(files),
            failed_files=report.failed_files,
        )

    async def _reuse_existing(self) -> InitResult | Failure | None:
        existing = await self.store.count(self.index_name)
        if existing == 0:
            return None

        dimension = await self.store.index_dimension(self.index_name)
        if dimension != self.dimension:
            return Failure(
                kind=ErrorKind.COLLABORATOR,
                error=(
                    f"Index {self.index_name} has dimension {dimension}, expected "
                    f"{self.dimension}; rebuild it with force_reload"
                ),
            )

        self._initialized = True
        logger.info(f"Vector index {self.index_name} already holds {existing} vectors")
        return InitResult(message="Knowledge base already initialized", cached=True)

    async def _discard(self, index_name: str) -> None:
        try:
            await self.store.delete_index(index_name)
        except Exception as e:
            logger.warning(f"Could not remove staging index {index_name}: {e}")

    async def _embed_and_store(self, index_name: str, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0

        embeddings = await embed_in_batches(
            self.embedder,
            [chunk.content for chunk in chunks],
            batch_size=self.embedding_batch_size,
            delay_seconds=self.api_delay_seconds,
        )

        created_at = datetime.now(timezone.utc).isoformat()
        metadata = [
            {
                "text": chunk.content,
                "source": chunk.source,
                "title": chunk.title,
                "section": chunk.section,
                "id": chunk.id,
                "chunk_index": chunk.metadata.get("chunk_index", 0),
                "created_at": created_at,
            }
            for chunk in chunks
        ]

        total_batches = (len(chunks) + self.store_batch_size - 1) // self.store_batch_size
        stored = 0
        for i in range(0, len(chunks), self.store_batch_size):
            logger.info(
                f"Storing batch {i // self.store_batch_size + 1}/{total_batches}"
            )
            ids = await self.store.upsert(
                index_name,
                embeddings[i : i + self.store_batch_size],
                metadata[i : i + self.store_batch_size],
            )
            stored += len(ids)
        return stored

    def _observe_ingest(
        self, success: bool, start: float, files_processed: int, chunks_stored: int
    ) -> None:
        self.metrics.observe_ingest_job(
            "vector",
            success,
            (time.perf_counter() - start) * 1000,
            files_processed=files_processed,
            chunks_stored=chunks_stored,
        )

    async def search(
        self, query: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> SearchResponse | Failure:
        """Nearest chunks to the query, initializing lazily if needed."""
        async with self._lock:
            if not self._initialized:
                init_result = await self._init(force_reload=False)
                if isinstance(init_result, Failure) or not self._initialized:
                    return Failure(kind=ErrorKind.NOT_INITIALIZED, error=CANNOT_INITIALIZE)

            try:
                query_vector = await self.embedder.embed_query(query)
                matches = await self.store.query(self.index_name, query_vector, max_results)
            except Exception as e:
                logger.error(f"Vector search failed: {e}")
                return Failure(kind=ErrorKind.COLLABORATOR, error=f"Search failed: {e}")

        results = []
        for match in matches:
            text = str(match.metadata.get("text", ""))
            results.append(
                SearchHit(
                    content=text,
                    source=str(match.metadata.get("source", "")),
                    title=str(match.metadata.get("title", "")),
                    section=str(match.metadata.get("section", "")),
                    relevant_content=extract_relevant_content(text, query),
                    summary=generate_summary(text),
                    relevance_score=match.score,
                )
            )

        return SearchResponse(
            query=query,
            results=results,
            count=len(results),
            search_type="vector_similarity",
        )

    async def status(self) -> StatusResult | Failure:
        try:
            count = await self.store.count(self.index_name)
        except Exception as e:
            logger.error(f"Vector store status check failed: {e}")
            return Failure(kind=ErrorKind.COLLABORATOR, error=f"Status check failed: {e}")

        message = (
            "Knowledge base is initialized"
            if self._initialized
            else "Knowledge base not initialized"
        )
        return StatusResult(
            initialized=self._initialized,
            documents_count=count,
            message=message,
            vector_store=self.store.name,
            index_name=self.index_name,
        )

    async def clear(self, purge: bool = False) -> ClearResult:
        """Mark the knowledge base uninitialized.

        Stored vectors survive unless ``purge`` is set, so the next lazy
        initialization finds them and reuses them.
        """
        async with self._lock:
            self._initialized = False
            if purge:
                await self.store.delete_index(self.index_name)
        return ClearResult(message="Knowledge base cleared")

    async def perform_action(
        self,
        action: str,
        query: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        force_reload: bool = False,
    ):
        if action == "clear":
            return await self.clear()
        return await super().perform_action(action, query, max_results, force_reload)


def format_context(results: list[SearchHit]) -> str:
    """Join search hits into one context block labelled by source.

    Args:
        results: Ranked search hits.

    Returns:
        ``Source: <path>`` blocks separated by horizontal rules, or "" if empty.
    """
    return CONTEXT_SEPARATOR.join(
        f"Source: {hit.source}\n{hit.content}" for hit in results
    )

"""Batched document fetching and chunking."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from docsrag.knowledge.loader import (
    DEFAULT_HEADING_SPLIT_THRESHOLD,
    DEFAULT_MAX_CHUNK_LINES,
    DEFAULT_MIN_CHUNK_LENGTH,
    split_markdown_into_chunks,
)
from docsrag.knowledge.models import DocumentChunk, RepositoryFile

logger = logging.getLogger(__name__)

DEFAULT_FILE_BATCH_SIZE = 10


class DocumentRepository(Protocol):
    """Source of markdown files (GitHub, local directory, ...)."""

    @property
    def identifier(self) -> str:
        ...

    async def list_markdown_files(
        self, path: str = "", recursive: bool = True
    ) -> list[RepositoryFile]:
        ...

    async def get_file_content(self, path: str) -> str:
        ...


@dataclass
class ChunkingOptions:
    """Chunker thresholds."""

    max_chunk_lines: int = DEFAULT_MAX_CHUNK_LINES
    heading_split_threshold: int = DEFAULT_HEADING_SPLIT_THRESHOLD
    min_chunk_length: int = DEFAULT_MIN_CHUNK_LENGTH


@dataclass
class IngestReport:
    """Chunks produced from a set of files, with per-file outcomes."""

    chunks: list[DocumentChunk] = field(default_factory=list)
    processed_files: int = 0
    failed_files: list[str] = field(default_factory=list)


async def collect_chunks(
    repository: DocumentRepository,
    files: list[RepositoryFile],
    batch_size: int = DEFAULT_FILE_BATCH_SIZE,
    options: ChunkingOptions | None = None,
) -> IngestReport:
    """Fetch and chunk files in concurrent batches.

    Files within a batch are fetched concurrently; the next batch starts only
    once the whole batch has finished. A file that fails to fetch or chunk
    contributes no chunks and does not abort the run.

    Args:
        repository: Source to fetch file contents from.
        files: Files to process.
        batch_size: Number of files fetched concurrently.
        options: Chunker thresholds.

    Returns:
        IngestReport with chunks in file order.
    """
    options = options or ChunkingOptions()
    batch_size = max(batch_size, 1)
    report = IngestReport()
    total_batches = (len(files) + batch_size - 1) // batch_size

    for i in range(0, len(files), batch_size):
        batch = files[i : i + batch_size]
        logger.info(f"Processing file batch {i // batch_size + 1}/{total_batches}")

        results = await asyncio.gather(
            *(_chunk_file(repository, file, options) for file in batch)
        )
        for file, chunks in zip(batch, results):
            if chunks is None:
                report.failed_files.append(file.path)
                continue
            report.processed_files += 1
            report.chunks.extend(chunks)

    return report


async def _chunk_file(
    repository: DocumentRepository,
    file: RepositoryFile,
    options: ChunkingOptions,
) -> list[DocumentChunk] | None:
    try:
        content = await repository.get_file_content(file.path)
        return split_markdown_into_chunks(
            content,
            source=file.path,
            display_name=file.name,
            max_chunk_lines=options.max_chunk_lines,
            heading_split_threshold=options.heading_split_threshold,
            min_chunk_length=options.min_chunk_length,
        )
    except Exception as e:
        logger.warning(f"Error processing file {file.path}: {e}")
        return None

"""Markdown chunk splitter for the knowledge base.

Splits markdown documents into heading-aware chunks in a single pass over
lines. Level-1 headings always open a new chunk, level-2 headings open one only
when enough lines have accumulated, and long sections are cut at a line ceiling.
"""

import logging

from docsrag.knowledge.models import DocumentChunk

logger = logging.getLogger(__name__)


# Default chunk configuration
DEFAULT_MAX_CHUNK_LINES = 50
DEFAULT_HEADING_SPLIT_THRESHOLD = 5  # lines accumulated before a ## heading may split
DEFAULT_MIN_CHUNK_LENGTH = 50  # characters; shorter chunks are dropped

H1_PREFIX = "# "
H2_PREFIX = "## "


def split_markdown_into_chunks(
    content: str,
    source: str,
    display_name: str,
    max_chunk_lines: int = DEFAULT_MAX_CHUNK_LINES,
    heading_split_threshold: int = DEFAULT_HEADING_SPLIT_THRESHOLD,
    min_chunk_length: int = DEFAULT_MIN_CHUNK_LENGTH,
) -> list[DocumentChunk]:
    """Split a markdown document into heading-aware chunks.

    Args:
        content: Raw markdown text.
        source: Path of the file, used for attribution.
        display_name: File name used as the title until a level-1 heading is seen.
        max_chunk_lines: Line count at which a chunk is force-split.
        heading_split_threshold: A level-2 heading only closes the current chunk
            when more than this many lines have accumulated.
        min_chunk_length: Chunks whose trimmed content is not longer than this
            are discarded.

    Returns:
        List of DocumentChunk objects in document order.
    """
    chunks: list[DocumentChunk] = []

    buffer: list[str] = []
    line_count = 0
    title = ""
    section = ""

    def emit() -> None:
        text = "\n".join(buffer).strip()
        if text:
            chunks.append(
                DocumentChunk(
                    content=text,
                    source=source,
                    title=title or display_name,
                    section=section,
                )
            )

    for line in content.split("\n"):
        stripped = line.strip()

        if stripped.startswith(H1_PREFIX):
            emit()
            title = stripped[len(H1_PREFIX) :].strip()
            section = title
            buffer = [line]
            line_count = 1

        elif stripped.startswith(H2_PREFIX):
            if line_count > heading_split_threshold and "\n".join(buffer).strip():
                emit()
                buffer = []
                line_count = 0
            section = stripped[len(H2_PREFIX) :].strip()
            buffer.append(line)
            line_count += 1

        else:
            buffer.append(line)
            line_count += 1

            # A size-forced split keeps the current heading context
            if line_count >= max_chunk_lines:
                emit()
                buffer = []
                line_count = 0

    emit()

    kept = [chunk for chunk in chunks if len(chunk.content) > min_chunk_length]
    if len(kept) < len(chunks):
        logger.debug(
            "Dropped %d short chunks from %s", len(chunks) - len(kept), source
        )
    return kept


def assign_chunk_ids(chunks: list[DocumentChunk]) -> list[DocumentChunk]:
    """Give each chunk a '<source>:<ordinal>' id, counting per source file."""
    ordinals: dict[str, int] = {}
    identified: list[DocumentChunk] = []
    for chunk in chunks:
        ordinal = ordinals.get(chunk.source, 0)
        ordinals[chunk.source] = ordinal + 1
        identified.append(
            chunk.model_copy(
                update={
                    "id": f"{chunk.source}:{ordinal}",
                    "metadata": {**chunk.metadata, "chunk_index": ordinal},
                }
            )
        )
    return identified

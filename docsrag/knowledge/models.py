"""Data models for knowledge base documents, search hits and operation results."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class DocumentChunk(BaseModel):
    """A single chunk of a markdown document.

    Represents a heading-bounded section of a repository file that can be
    independently scored, embedded and retrieved.
    """

    content: str = Field(..., description="Chunk text content (trimmed)")
    source: str = Field(..., description="Path of the originating file")
    title: str = Field("", description="Nearest level-1 heading, or the file name")
    section: str = Field("", description="Nearest level-1 or level-2 heading")
    id: str | None = Field(
        None, description="'<source>:<ordinal>', set for vector-indexed chunks"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScoredChunk(BaseModel):
    """Ephemeral view pairing a chunk with its relevance score for one query."""

    chunk: DocumentChunk
    score: float = Field(..., ge=0.0)


class SearchHit(BaseModel):
    """A ranked chunk enriched with a query-focused excerpt and a summary."""

    content: str
    source: str
    title: str = ""
    section: str = ""
    relevant_content: str | None = None
    summary: str = ""
    relevance_score: float | None = None


class RepositoryFile(BaseModel):
    """Markdown file metadata returned by a repository listing."""

    name: str
    path: str
    sha: str = ""


class SourceDocument(BaseModel):
    """A fetched document ready for chunking."""

    name: str
    path: str
    content: str


class VectorMatch(BaseModel):
    """One nearest-neighbour hit from the vector store."""

    metadata: dict[str, Any]
    score: float


# -------------------------------------------------------------------------
# Operation results
# -------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    INVALID_INPUT = "invalid_input"
    INVALID_ACTION = "invalid_action"
    NOT_FOUND = "not_found"
    NOT_INITIALIZED = "not_initialized"
    COLLABORATOR = "collaborator"


class Failure(BaseModel):
    """Failed operation with a human-readable message."""

    success: Literal[False] = False
    kind: ErrorKind
    error: str


class InitResult(BaseModel):
    """Outcome of (re)building or reusing a knowledge base."""

    success: Literal[True] = True
    message: str
    documents_count: int | None = None
    chunks_count: int | None = None
    files_listed: int | None = None
    failed_files: list[str] = Field(default_factory=list)
    cached: bool = False


class SearchResponse(BaseModel):
    """Ranked search hits for a query."""

    success: Literal[True] = True
    query: str
    results: list[SearchHit]
    count: int
    total_documents: int | None = None
    search_type: str = "lexical"


class StatusResult(BaseModel):
    """Initialization state of a knowledge base."""

    success: Literal[True] = True
    initialized: bool
    documents_count: int | None = None
    message: str
    vector_store: str | None = None
    index_name: str | None = None


class ClearResult(BaseModel):
    """Acknowledgement that a knowledge base was reset."""

    success: Literal[True] = True
    message: str


class ChunkListing(BaseModel):
    """Every chunk held by an in-memory knowledge base."""

    success: Literal[True] = True
    documents: list[DocumentChunk]
    count: int


class PipelineAnswer(BaseModel):
    """Answer synthesized from retrieved documentation."""

    success: Literal[True] = True
    query: str
    answer: str
    sources: list[str]
    context: str
    initialized: bool = False
    processed_files: int = 0
    stored_chunks: int = 0

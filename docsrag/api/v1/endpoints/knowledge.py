"""Knowledge base endpoints.

Expose index initialization, search, status, clearing and question answering
over the configured repository's markdown documentation.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from docsrag.knowledge.base import KnowledgeBase
from docsrag.knowledge.models import (
    ClearResult,
    ErrorKind,
    Failure,
    InitResult,
    PipelineAnswer,
    SearchResponse,
    StatusResult,
)
from docsrag.observability import get_request_id
from docsrag.services.pipeline import RetrievalPipeline

router = APIRouter()
logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_ACTION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.COLLABORATOR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.NOT_INITIALIZED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# -------------------------------------------------------------------------
# Request Models
# -------------------------------------------------------------------------


class InitRequest(BaseModel):
    """Index (re)build request."""

    force_reload: bool = False


class SearchRequest(BaseModel):
    """Knowledge base search request."""

    query: str = Field(..., min_length=1)
    max_results: int = Field(5, ge=1, le=50)


class ClearRequest(BaseModel):
    """Reset request; ``purge`` also deletes stored vectors."""

    purge: bool = False


class AskRequest(BaseModel):
    """Question answered from the repository documentation."""

    query: str = Field(..., min_length=1)
    max_results: int | None = Field(None, ge=1, le=50)
    force_reload: bool = False


# -------------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------------


def get_knowledge_base(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


def get_pipeline(request: Request) -> RetrievalPipeline:
    return request.app.state.pipeline


def _unwrap(result):
    """Raise an HTTPException for a Failure, pass successes through."""
    if isinstance(result, Failure):
        logger.warning(
            f"Knowledge operation failed ({result.kind.value}) "
            f"request_id={get_request_id()}: {result.error}"
        )
        raise HTTPException(status_code=FAILURE_STATUS[result.kind], detail=result.error)
    return result


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("/init", response_model=InitResult)
async def init_knowledge_base(
    body: InitRequest,
    knowledge_base: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> InitResult:
    """Build the index from the repository, or reuse existing data."""
    return _unwrap(await knowledge_base.init(force_reload=body.force_reload))


@router.post("/search", response_model=SearchResponse)
async def search_knowledge_base(
    body: SearchRequest,
    knowledge_base: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> SearchResponse:
    """Return the highest ranked chunks for a query.

    Args:
        body: Query and result cap.
        knowledge_base: Configured knowledge base.

    Returns:
        Ranked search hits with excerpts and summaries.

    Raises:
        HTTPException: 503 if the index cannot be initialized.
    """
    return _unwrap(
        await knowledge_base.perform_action(
            "search", query=body.query, max_results=body.max_results
        )
    )


@router.get("/status", response_model=StatusResult)
async def get_knowledge_status(
    knowledge_base: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> StatusResult:
    return _unwrap(await knowledge_base.status())


@router.post("/clear", response_model=ClearResult)
async def clear_knowledge_base(
    body: ClearRequest,
    knowledge_base: Annotated[KnowledgeBase, Depends(get_knowledge_base)],
) -> ClearResult:
    """Mark the index uninitialized (vector knowledge base only)."""
    clear = getattr(knowledge_base, "clear", None)
    if clear is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action: clear",
        )
    return await clear(purge=body.purge)


@router.post("/ask", response_model=PipelineAnswer)
async def ask_question(
    body: AskRequest,
    pipeline: Annotated[RetrievalPipeline, Depends(get_pipeline)],
) -> PipelineAnswer:
    """Answer a question from the indexed documentation.

    Args:
        body: Question, optional result cap and reload flag.
        pipeline: Configured retrieval pipeline.

    Returns:
        Answer with cited sources and the context it was generated from.
    """
    return _unwrap(
        await pipeline.answer(
            body.query, force_reload=body.force_reload, max_results=body.max_results
        )
    )

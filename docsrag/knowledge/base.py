"""Shared interface for the lexical and vector knowledge bases."""

import asyncio
from abc import ABC, abstractmethod

from docsrag.knowledge.models import (
    ErrorKind,
    Failure,
    InitResult,
    SearchResponse,
    StatusResult,
)

DEFAULT_MAX_RESULTS = 5

CANNOT_INITIALIZE = "Cannot initialize knowledge base for search"


class KnowledgeBase(ABC):
    """A replaceable collection of chunks that answers ranked searches.

    ``init`` and ``search`` are serialized per instance so a search never
    observes a collection that is being replaced.
    """

    actions: tuple[str, ...] = ("init", "search", "status")

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        ...

    @abstractmethod
    async def init(self, force_reload: bool = False) -> InitResult | Failure:
        ...

    @abstractmethod
    async def search(
        self, query: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> SearchResponse | Failure:
        ...

    @abstractmethod
    async def status(self) -> StatusResult | Failure:
        ...

    async def perform_action(
        self,
        action: str,
        query: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        force_reload: bool = False,
    ):
        """Dispatch a named action, reporting bad input as a Failure."""
        if action not in self.actions:
            return Failure(kind=ErrorKind.INVALID_ACTION, error=f"Invalid action: {action}")
        if action == "init":
            return await self.init(force_reload)
        if action == "search":
            if not query:
                return Failure(
                    kind=ErrorKind.INVALID_INPUT, error="The query parameter is required"
                )
            return await self.search(query, max_results)
        if action == "status":
            return await self.status()
        return Failure(kind=ErrorKind.INVALID_ACTION, error=f"Invalid action: {action}")

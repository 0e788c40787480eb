"""Retrieval pipeline: ensure the index, search it, and synthesize an answer."""

import logging

from docsrag.knowledge.base import DEFAULT_MAX_RESULTS, KnowledgeBase
from docsrag.knowledge.models import ErrorKind, Failure, PipelineAnswer
from docsrag.knowledge.retriever import format_context
from docsrag.services.llm import AnswerGenerator, build_answer_prompt

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "Sorry, I could not find relevant information in the knowledge base "
    "to answer your question."
)


class RetrievalPipeline:
    """Answers questions about a repository's documentation.

    The index is built on the first call (or on a forced reload) and reused
    afterwards, so repeated questions only pay for search and synthesis.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        llm: AnswerGenerator,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.knowledge_base = knowledge_base
        self.llm = llm
        self.max_results = max_results

    async def answer(
        self,
        query: str,
        force_reload: bool = False,
        max_results: int | None = None,
    ) -> PipelineAnswer | Failure:
        """Answer a question from the indexed documentation.

        Args:
            query: User question.
            force_reload: Rebuild the index before searching.
            max_results: Number of chunks used as context.

        Returns:
            PipelineAnswer, or a Failure when the index cannot be built or
            searched. A failed answer generation is reported inside
            ``PipelineAnswer.answer``.
        """
        if not query or not query.strip():
            return Failure(
                kind=ErrorKind.INVALID_INPUT, error="The query parameter is required"
            )

        initialized = False
        processed_files = 0
        stored_chunks = 0

        if force_reload or not self.knowledge_base.is_initialized:
            init_result = await self.knowledge_base.init(force_reload=force_reload)
            if isinstance(init_result, Failure):
                return init_result
            if init_result.documents_count == 0:
                return Failure(
                    kind=ErrorKind.NOT_FOUND,
                    error="No markdown documents found in repository",
                )
            initialized = not init_result.cached
            processed_files = init_result.documents_count or 0
            stored_chunks = init_result.chunks_count or 0

        search_result = await self.knowledge_base.search(
            query, max_results or self.max_results
        )
        if isinstance(search_result, Failure):
            return search_result

        if not search_result.results:
            return PipelineAnswer(
                query=query,
                answer=NO_RESULTS_ANSWER,
                sources=[],
                context="",
                initialized=initialized,
                processed_files=processed_files,
                stored_chunks=stored_chunks,
            )

        context = format_context(search_result.results)
        sources = list(dict.fromkeys(hit.source for hit in search_result.results))

        try:
            answer = await self.llm.generate(build_answer_prompt(query, context))
        except Exception as e:
            logger.error(f"Answer generation failed: {e}")
            answer = f"Error generating answer: {e}"

        return PipelineAnswer(
            query=query,
            answer=answer or "Unable to generate an answer",
            sources=sources,
            context=context,
            initialized=initialized,
            processed_files=processed_files,
            stored_chunks=stored_chunks,
        )

"""Knowledge base module for RAG over repository markdown documentation.

This module chunks markdown files, indexes the chunks either in memory for
lexical scoring or as embeddings in a vector index, and searches them.
"""

from docsrag.knowledge.base import KnowledgeBase
from docsrag.knowledge.lexical import LexicalKnowledgeBase
from docsrag.knowledge.models import DocumentChunk, Failure, SearchHit
from docsrag.knowledge.retriever import VectorKnowledgeBase, format_context

__all__ = [
    "DocumentChunk",
    "Failure",
    "SearchHit",
    "KnowledgeBase",
    "LexicalKnowledgeBase",
    "VectorKnowledgeBase",
    "format_context",
]

"""Field-weighted lexical relevance scoring and excerpt helpers."""

import re
from collections.abc import Iterable

from docsrag.knowledge.models import DocumentChunk, ScoredChunk

# Weights per occurrence of the whole query phrase
TITLE_PHRASE_WEIGHT = 10
SECTION_PHRASE_WEIGHT = 5
CONTENT_PHRASE_WEIGHT = 1

# Bonuses per query word present in a field (once per word, not per occurrence)
TITLE_WORD_BONUS = 3
SECTION_WORD_BONUS = 2
CONTENT_WORD_BONUS = 1

MIN_WORD_LENGTH = 3

EXCERPT_MAX_SENTENCES = 3
EXCERPT_FALLBACK_CHARS = 300
SUMMARY_MAX_CHARS = 150

_SENTENCE_BREAK = re.compile(r"[.!?]\s+")
_LEADING_HEADING = re.compile(r"^#+\s*")


def query_words(query: str) -> list[str]:
    """Lower-cased query words long enough to count toward relevance."""
    return [word for word in query.lower().split() if len(word) >= MIN_WORD_LENGTH]


def calculate_relevance_score(chunk: DocumentChunk, query: str) -> int:
    """Score a chunk against a query.

    The whole query is matched as a literal phrase in the title, section and
    content (weighted 10/5/1 per occurrence), then each word of three or more
    characters adds a presence bonus per field (3/2/1).

    Args:
        chunk: Chunk to score.
        query: Free-text query. Case is ignored.

    Returns:
        Non-negative score; 0 means the chunk does not match.
    """
    phrase = query.lower()
    if not phrase.strip():
        return 0

    content = chunk.content.lower()
    title = chunk.title.lower()
    section = chunk.section.lower()

    # str.count is a literal, non-overlapping match so regex metacharacters are inert
    score = (
        title.count(phrase) * TITLE_PHRASE_WEIGHT
        + section.count(phrase) * SECTION_PHRASE_WEIGHT
        + content.count(phrase) * CONTENT_PHRASE_WEIGHT
    )

    for word in query_words(phrase):
        if word in title:
            score += TITLE_WORD_BONUS
        if word in section:
            score += SECTION_WORD_BONUS
        if word in content:
            score += CONTENT_WORD_BONUS

    return score


def rank_chunks(
    chunks: Iterable[DocumentChunk],
    query: str,
    max_results: int,
) -> list[ScoredChunk]:
    """Return the best-scoring matching chunks, highest first.

    Ties keep insertion order because ``sorted`` is stable.
    """
    scored: list[ScoredChunk] = []
    for chunk in chunks:
        score = calculate_relevance_score(chunk, query)
        if score > 0:
            scored.append(ScoredChunk(chunk=chunk, score=score))

    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[: max(max_results, 0)]


def extract_relevant_content(content: str, query: str) -> str:
    """Pull up to three sentences mentioning a query word.

    Falls back to the first 300 characters when no sentence matches.
    """
    words = query_words(query)
    sentences = _SENTENCE_BREAK.split(content)
    relevant = [
        sentence
        for sentence in sentences
        if any(word in sentence.lower() for word in words)
    ]

    if relevant:
        return ". ".join(relevant[:EXCERPT_MAX_SENTENCES]) + "."

    return content[:EXCERPT_FALLBACK_CHARS] + "..."


def generate_summary(content: str) -> str:
    """First paragraph of a chunk, capped at 150 characters, heading marker removed."""
    first_paragraph = content.split("\n\n")[0]
    if len(first_paragraph) > SUMMARY_MAX_CHARS:
        first_paragraph = first_paragraph[: SUMMARY_MAX_CHARS - 3] + "..."
    return _LEADING_HEADING.sub("", first_paragraph)

"""Pytest configuration and fixtures for docsrag tests."""

import numpy as np
import pytest

from docsrag.knowledge.models import RepositoryFile
from docsrag.knowledge.vector_store import FaissVectorStore
from docsrag.observability import MetricsCollector

EMBEDDING_DIM = 16


# -------------------------------------------------------------------------
# Fakes
# -------------------------------------------------------------------------


class InMemoryRepository:
    """Document repository serving markdown from a dict of path -> text."""

    def __init__(self, documents: dict[str, str], failing: set[str] | None = None) -> None:
        self.documents = documents
        self.failing = failing or set()
        self.list_calls = 0
        self.content_calls: list[str] = []

    @property
    def identifier(self) -> str:
        return "acme/docs"

    async def list_markdown_files(
        self, path: str = "", recursive: bool = True
    ) -> list[RepositoryFile]:
        self.list_calls += 1
        return [
            RepositoryFile(name=doc_path.rsplit("/", 1)[-1], path=doc_path)
            for doc_path in self.documents
        ]

    async def get_file_content(self, path: str) -> str:
        self.content_calls.append(path)
        if path in self.failing:
            raise ConnectionError(f"fetch failed for {path}")
        return self.documents[path]


class KeywordEmbedder:
    """Deterministic bag-of-words embedder.

    Each word adds weight to a fixed bucket, so texts sharing words end up
    close together under cosine similarity.
    """

    def __init__(self, dimension: int = EMBEDDING_DIM) -> None:
        self.dimension = dimension
        self.embed_calls: list[int] = []
        self.query_calls = 0

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for word in text.lower().split():
            word = word.strip(".,!?#:")
            if word:
                vector[sum(ord(c) for c in word) % self.dimension] += 1.0
        vector[0] += 0.01  # never all-zero
        return vector

    async def embed(self, texts: list[str]) -> np.ndarray:
        self.embed_calls.append(len(texts))
        return np.stack([self._vector(text) for text in texts])

    async def embed_query(self, text: str) -> np.ndarray:
        self.query_calls += 1
        return self._vector(text)


def markdown_doc(title: str, body_sentence: str, lines: int = 3) -> str:
    """A markdown document with a level-1 heading and a padded body."""
    body = "\n".join(f"{body_sentence} Line {i}." for i in range(lines))
    return f"# {title}\n{body}\n"


# -------------------------------------------------------------------------
# Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector per test."""
    return MetricsCollector()


@pytest.fixture
def docs() -> dict[str, str]:
    """Three small documentation files."""
    return {
        "docs/install.md": markdown_doc(
            "Installation", "Install the package with pip and verify the setup works."
        ),
        "docs/config.md": markdown_doc(
            "Configuration", "Configure the server through environment variables or a file."
        ),
        "guides/deploy.md": markdown_doc(
            "Deployment", "Deploy the service behind a reverse proxy with TLS enabled."
        ),
    }


@pytest.fixture
def repository(docs: dict[str, str]) -> InMemoryRepository:
    return InMemoryRepository(docs)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    """Record asyncio.sleep calls instead of waiting."""
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr("docsrag.knowledge.embeddings.asyncio.sleep", fake_sleep)
    return delays


@pytest.fixture
def vector_store(tmp_path) -> FaissVectorStore:
    """Vector store persisted under the test's temporary directory."""
    return FaissVectorStore(tmp_path / "vectors")

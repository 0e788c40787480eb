"""FAISS-backed vector store persisted to disk.

Each named index lives in its own directory holding ``chunks.json`` (parallel
metadata) and ``embeddings.npy`` (L2-normalized vectors). Similarity is cosine,
computed as inner product over normalized vectors.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from docsrag.knowledge.models import VectorMatch

if TYPE_CHECKING:
    import faiss
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

CHUNKS_FILE = "chunks.json"
EMBEDDINGS_FILE = "embeddings.npy"


@dataclass
class _IndexData:
    dimension: int
    metadata: list[dict[str, Any]] = field(default_factory=list)
    vectors: "NDArray[np.float32] | None" = None
    index: "faiss.IndexFlatIP | None" = None

    @property
    def size(self) -> int:
        return len(self.metadata)


def _normalized(vectors: "NDArray[np.float32]") -> "NDArray[np.float32]":
    import faiss

    matrix = np.ascontiguousarray(vectors, dtype=np.float32).copy()
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    faiss.normalize_L2(matrix)
    return matrix


class FaissVectorStore:
    """Named FAISS indexes with upsert-by-id and top-k cosine query."""

    name = "FAISS"

    def __init__(self, storage_path: Path | str) -> None:
        self.storage_path = Path(storage_path)
        self._indexes: dict[str, _IndexData] = {}

    def _index_dir(self, index_name: str) -> Path:
        return self.storage_path / index_name

    def _load(self, index_name: str) -> _IndexData | None:
        if index_name in self._indexes:
            return self._indexes[index_name]

        index_dir = self._index_dir(index_name)
        chunks_path = index_dir / CHUNKS_FILE
        embeddings_path = index_dir / EMBEDDINGS_FILE
        if not chunks_path.exists() or not embeddings_path.exists():
            return None

        with open(chunks_path, encoding="utf-8") as f:
            metadata = json.load(f)
        vectors: NDArray[np.float32] = np.load(embeddings_path)

        if len(metadata) != vectors.shape[0]:
            raise ValueError(
                f"Chunk count ({len(metadata)}) does not match "
                f"embedding count ({vectors.shape[0]}) in index {index_name}"
            )

        data = _IndexData(dimension=int(vectors.shape[1]), metadata=metadata, vectors=vectors)
        self._rebuild(data)
        self._indexes[index_name] = data
        logger.info(f"Loaded vector index {index_name}: {data.size} vectors")
        return data

    def _rebuild(self, data: _IndexData) -> None:
        import faiss

        data.index = faiss.IndexFlatIP(data.dimension)
        if data.vectors is not None and len(data.vectors):
            data.index.add(data.vectors)

    def _persist(self, index_name: str, data: _IndexData) -> None:
        index_dir = self._index_dir(index_name)
        index_dir.mkdir(parents=True, exist_ok=True)

        with open(index_dir / CHUNKS_FILE, "w", encoding="utf-8") as f:
            json.dump(data.metadata, f, ensure_ascii=False)
        vectors = (
            data.vectors
            if data.vectors is not None
            else np.zeros((0, data.dimension), dtype=np.float32)
        )
        np.save(index_dir / EMBEDDINGS_FILE, vectors)

    async def create_index(self, index_name: str, dimension: int) -> None:
        """Create an empty index if it does not exist yet.

        Raises:
            ValueError: If the index exists with a different dimension.
        """
        existing = self._load(index_name)
        if existing is not None:
            if existing.dimension != dimension:
                raise ValueError(
                    f"Index {index_name} has dimension {existing.dimension}, "
                    f"requested {dimension}"
                )
            return

        data = _IndexData(dimension=dimension)
        self._rebuild(data)
        self._indexes[index_name] = data
        self._persist(index_name, data)

    async def upsert(
        self,
        index_name: str,
        vectors: "NDArray[np.float32]",
        metadata: list[dict[str, Any]],
    ) -> list[str]:
        """Insert or replace vectors keyed by ``metadata[i]["id"]``.

        Returns:
            Ids written, in input order.

        Raises:
            ValueError: If the index is missing, counts differ, or the vector
                dimension does not match the index.
        """
        data = self._load(index_name)
        if data is None:
            raise ValueError(f"Index {index_name} does not exist")
        if len(vectors) != len(metadata):
            raise ValueError(
                f"Got {len(vectors)} vectors but {len(metadata)} metadata entries"
            )
        if len(vectors) == 0:
            return []

        matrix = _normalized(vectors)
        if matrix.shape[1] != data.dimension:
            raise ValueError(
                f"Vector dimension {matrix.shape[1]} does not match index dimension {data.dimension}"
            )

        positions = {meta.get("id"): pos for pos, meta in enumerate(data.metadata)}
        stored = (
            data.vectors
            if data.vectors is not None
            else np.zeros((0, data.dimension), dtype=np.float32)
        )
        appended_vectors: list[NDArray[np.float32]] = []
        ids: list[str] = []

        for row, meta in zip(matrix, metadata):
            vector_id = str(meta["id"])
            ids.append(vector_id)
            if vector_id in positions:
                pos = positions[vector_id]
                stored[pos] = row
                data.metadata[pos] = dict(meta)
            else:
                positions[vector_id] = len(data.metadata)
                data.metadata.append(dict(meta))
                appended_vectors.append(row)

        if appended_vectors:
            stored = np.vstack([stored, np.stack(appended_vectors)])
        data.vectors = np.ascontiguousarray(stored, dtype=np.float32)

        self._rebuild(data)
        self._persist(index_name, data)
        return ids

    async def query(
        self,
        index_name: str,
        query_vector: "NDArray[np.float32]",
        top_k: int,
    ) -> list[VectorMatch]:
        """Nearest neighbours by cosine similarity, best first.

        A missing or empty index yields an empty list.
        """
        data = self._load(index_name)
        if data is None or data.index is None or data.size == 0 or top_k <= 0:
            return []

        query = _normalized(query_vector)
        if query.shape[1] != data.dimension:
            raise ValueError(
                f"Query dimension {query.shape[1]} does not match index dimension {data.dimension}"
            )

        scores, indices = data.index.search(query, min(top_k, data.size))

        matches: list[VectorMatch] = []
        for score, idx in zip(scores[0], indices[0]):
            if idx < 0:  # FAISS returns -1 for missing results
                continue
            matches.append(VectorMatch(metadata=data.metadata[idx], score=float(score)))
        return matches

    async def count(self, index_name: str) -> int:
        """Number of vectors stored in an index (0 if it does not exist)."""
        data = self._load(index_name)
        return data.size if data is not None else 0

    async def index_dimension(self, index_name: str) -> int | None:
        data = self._load(index_name)
        return data.dimension if data is not None else None

    async def rename_index(self, source: str, target: str) -> None:
        """Move ``source`` to ``target``, replacing whatever ``target`` held.

        Raises:
            ValueError: If the source index does not exist.
        """
        data = self._load(source)
        if data is None:
            raise ValueError(f"Index {source} does not exist")

        await self.delete_index(target)
        self._index_dir(source).rename(self._index_dir(target))
        self._indexes.pop(source, None)
        self._indexes[target] = data
        logger.info(f"Renamed vector index {source} to {target}")

    async def delete_index(self, index_name: str) -> None:
        """Remove an index from memory and disk."""
        self._indexes.pop(index_name, None)
        index_dir = self._index_dir(index_name)
        if index_dir.exists():
            shutil.rmtree(index_dir)
            logger.info(f"Deleted vector index {index_name}")

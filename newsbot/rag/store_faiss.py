"""FAISS vector index for article embeddings.

Handles:
- Collection creation and loading with a fixed dimension
- Cosine similarity via inner product over L2-normalised vectors
- Upsert by numeric ID (existing IDs are overwritten)
- Payload persistence in SQLite, keyed by the same ID
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np
import structlog

from newsbot import config, db
from newsbot.errors import VectorIndexError

logger = structlog.get_logger()

DISTANCE = "cosine"
INDEX_TYPE = "IndexIDMap2(IndexFlatIP)"


@dataclass
class IndexedPoint:
    """A vector plus its article payload, stored under a numeric ID."""

    id: int
    vector: List[float]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredPoint:
    """A search hit: point ID, cosine similarity and payload."""

    id: int
    score: float
    payload: Dict[str, Any]


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    # All-zero vectors stay zero and score 0 against everything
    norms[norms == 0] = 1.0
    return vectors / norms


class FAISSVectorStore:
    """Single-collection FAISS store with cosine distance and ID upserts."""

    def __init__(
        self,
        index_dir: Path = None,
        collection: str = None,
        dimension: int = None,
    ):
        """Initialize the FAISS vector store.

        Args:
            index_dir: Directory to store index and metadata (default: DATA_DIR)
            collection: Collection name (default from config)
            dimension: Vector dimension of the collection (default from config)
        """
        self.index_dir = Path(index_dir or config.DATA_DIR)
        self.collection = collection or config.COLLECTION_NAME
        self.dimension = dimension or config.VECTOR_SIZE

        self.index_path = self.index_dir / f"{self.collection}.index"
        self.metadata_path = self.index_dir / f"{self.collection}.json"

        self.index: Optional[faiss.Index] = None
        self.metadata: Dict[str, Any] = {}

        logger.info(
            "faiss_store_initialized",
            index_dir=str(self.index_dir),
            collection=self.collection,
            dimension=self.dimension,
        )

    def _new_index(self) -> faiss.Index:
        return faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))

    def _require_index(self) -> faiss.Index:
        if self.index is None:
            raise VectorIndexError(
                f"Collection '{self.collection}' not initialized. Call ensure_collection() first."
            )
        return self.index

    async def ensure_collection(self) -> None:
        """Load the collection from disk, or create it if it doesn't exist.

        Raises:
            VectorIndexError: If loading fails or the stored dimension differs
        """
        if self.index is not None:
            return

        if self.index_path.exists() and self.metadata_path.exists():
            logger.info("existing_collection_detected", collection=self.collection)
            await self.load_index()
        else:
            logger.info("creating_collection", collection=self.collection)
            self.index = self._new_index()
            self.metadata = {
                "collection": self.collection,
                "dimension": self.dimension,
                "distance": DISTANCE,
                "index_type": INDEX_TYPE,
                "vector_count": 0,
            }
            await self.save_index()

    async def load_index(self) -> None:
        """Load an existing collection from disk.

        Raises:
            VectorIndexError: If files are missing, unreadable or mismatched
        """
        try:
            with open(self.metadata_path, "r") as f:
                metadata = json.load(f)
            index = faiss.read_index(str(self.index_path))
        except Exception as e:
            raise VectorIndexError(f"Failed to load collection '{self.collection}': {e}") from e

        stored_dim = metadata.get("dimension")
        if stored_dim != self.dimension or index.d != self.dimension:
            raise VectorIndexError(
                f"Dimension mismatch: collection '{self.collection}' has dim={stored_dim}, "
                f"but the configured dimension is {self.dimension}. Rebuild the collection."
            )

        self.index = index
        self.metadata = metadata

        logger.info(
            "collection_loaded",
            collection=self.collection,
            dimension=self.dimension,
            vector_count=self.index.ntotal,
        )

    async def save_index(self) -> None:
        """Persist the FAISS index and its metadata.

        Raises:
            VectorIndexError: If there is no index or writing fails
        """
        index = self._require_index()
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.metadata["vector_count"] = index.ntotal

        try:
            faiss.write_index(index, str(self.index_path))
            with open(self.metadata_path, "w") as f:
                json.dump(self.metadata, f, indent=2)
        except Exception as e:
            raise VectorIndexError(f"Failed to save collection '{self.collection}': {e}") from e

        logger.debug("collection_saved", collection=self.collection, vector_count=index.ntotal)

    async def upsert(self, points: Sequence[IndexedPoint]) -> int:
        """Insert or overwrite points by ID and persist before returning.

        Args:
            points: Points to write; every vector must match the dimension

        Returns:
            Number of points written

        Raises:
            VectorIndexError: On dimension mismatch or storage failure
        """
        index = self._require_index()
        if not points:
            return 0

        vectors = np.array([p.vector for p in points], dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[1] != self.dimension:
            raise VectorIndexError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {vectors.shape[-1] if vectors.ndim == 2 else 'ragged vectors'}"
            )

        ids = np.array([p.id for p in points], dtype=np.int64)

        try:
            index.remove_ids(ids)
            index.add_with_ids(_normalize(vectors), ids)
            db.upsert_article_payloads((p.id, p.payload) for p in points)
        except Exception as e:
            logger.error("vector_upsert_failed", collection=self.collection, error=str(e))
            raise VectorIndexError(f"Upsert into '{self.collection}' failed: {e}") from e

        await self.save_index()

        logger.info(
            "vectors_upserted",
            count=len(points),
            total_vectors=index.ntotal,
        )
        return len(points)

    async def search(self, query_vector: Sequence[float], limit: int = None) -> List[ScoredPoint]:
        """Find the points most similar to a query vector.

        Args:
            query_vector: Query embedding
            limit: Maximum number of results (default from config)

        Returns:
            Up to ``limit`` ScoredPoints, highest cosine similarity first

        Raises:
            VectorIndexError: On dimension mismatch or search failure
        """
        index = self._require_index()
        limit = config.RETRIEVAL_TOP_K if limit is None else limit

        query = np.array([query_vector], dtype=np.float32)
        if query.shape[1] != self.dimension:
            raise VectorIndexError(
                f"Query dimension mismatch: expected {self.dimension}, got {query.shape[1]}"
            )

        # Ensure we don't request more results than we have
        limit = max(min(limit, index.ntotal), 0)
        if limit == 0:
            return []

        try:
            scores, ids = index.search(_normalize(query), limit)
            hits = [
                (int(i), float(s))
                for i, s in zip(ids[0].tolist(), scores[0].tolist())
                if i != -1
            ]
            payloads = db.get_payloads_by_vector_ids([i for i, _ in hits])
        except Exception as e:
            logger.error("vector_search_failed", collection=self.collection, error=str(e))
            raise VectorIndexError(f"Search in '{self.collection}' failed: {e}") from e

        results = [
            ScoredPoint(id=i, score=s, payload=payloads[i])
            for i, s in hits
            if i in payloads
        ]
        results.sort(key=lambda p: p.score, reverse=True)

        logger.info("vector_search_completed", limit=limit, results_found=len(results))
        return results

    async def count(self) -> int:
        """Number of points in the collection."""
        return self._require_index().ntotal

    async def clear(self) -> None:
        """Drop every point and payload, keeping the collection."""
        logger.warning("clearing_collection", collection=self.collection)
        self.index = self._new_index()
        self.metadata.update({
            "collection": self.collection,
            "dimension": self.dimension,
            "distance": DISTANCE,
            "index_type": INDEX_TYPE,
        })
        try:
            db.clear_article_payloads()
        except Exception as e:
            raise VectorIndexError(f"Failed to clear payloads: {e}") from e
        await self.save_index()

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        if self.index is None:
            return {
                "initialized": False,
                "collection": self.collection,
                "vector_count": 0,
                "dimension": self.dimension,
            }

        return {
            "initialized": True,
            "collection": self.collection,
            "vector_count": self.index.ntotal,
            "dimension": self.dimension,
            "distance": DISTANCE,
            "index_exists_on_disk": self.index_path.exists(),
        }

"""Retriever for semantic search over indexed articles.

Handles:
- Query embedding generation
- Vector similarity search
- Mapping hits back to articles with their scores
"""
from typing import List, Optional

import structlog

from newsbot import config
from newsbot.errors import RetrievalError
from newsbot.models import Article, RetrievalResult
from newsbot.rag.embeddings import EmbeddingClient
from newsbot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()


class Retriever:
    """Semantic retriever for the RAG pipeline."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: FAISSVectorStore,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedding_client: Client used to embed queries
            vector_store: Vector index to search
            top_k: Default number of results (default from config)
        """
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k

        logger.info("retriever_initialized", top_k=self.top_k)

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Retrieve the articles most relevant to a query.

        Args:
            query: User query text
            top_k: Number of results to return (overrides default)

        Returns:
            At most ``top_k`` RetrievalResults, highest score first

        Raises:
            RetrievalError: If embedding or search fails; no partial results
        """
        top_k = self.top_k if top_k is None else top_k
        if top_k <= 0:
            return []

        logger.info("retrieval_started", query_preview=query[:50], top_k=top_k)

        try:
            query_embedding = await self.embedding_client.embed_query(query)
            hits = await self.vector_store.search(query_embedding, limit=top_k)

            results = [
                RetrievalResult(article=Article.from_payload(hit.payload), score=hit.score)
                for hit in hits
            ]
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise RetrievalError(f"Retrieval failed: {e}") from e

        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:top_k]

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            scores=[round(r.score, 3) for r in results],
        )
        return results

"""Service context wiring the RAG components together.

``NewsService`` owns the in-memory article collection. Only a full
ingestion replaces it, wholesale; readers get the current list.
"""
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import structlog

from newsbot import config
from newsbot.errors import VectorIndexError
from newsbot.llm_client import get_llm_client
from newsbot.memory import InMemoryKeyValueStore, SessionLocks, SessionStore, SQLiteKeyValueStore
from newsbot.models import Answer, Article, Turn
from newsbot.rag.answer import AnswerGenerator, LanguageModel
from newsbot.rag.embeddings import EmbeddingClient
from newsbot.rag.ingest import IngestPipeline, IngestStats
from newsbot.rag.retriever import Retriever
from newsbot.rag.store_faiss import FAISSVectorStore
from newsbot.sources import fetch_news_articles

logger = structlog.get_logger()


def build_session_store(backend: str = None) -> SessionStore:
    """Session store on the configured key-value backend ('sqlite' or 'memory')."""
    backend = (backend or config.SESSION_BACKEND).lower()
    if backend == "sqlite":
        return SessionStore(SQLiteKeyValueStore())
    if backend == "memory":
        return SessionStore(InMemoryKeyValueStore())
    raise ValueError(f"Unknown session backend: {backend}")


class NewsService:
    """Caller-facing operations of the news chatbot."""

    def __init__(
        self,
        embedding_client: Optional[EmbeddingClient] = None,
        vector_store: Optional[FAISSVectorStore] = None,
        llm: Optional[LanguageModel] = None,
        sessions: Optional[SessionStore] = None,
        locks: Optional[SessionLocks] = None,
        batch_size: int = None,
        batch_delay: float = None,
        top_k: int = None,
    ):
        self.embedding_client = embedding_client or EmbeddingClient()
        self.vector_store = vector_store or FAISSVectorStore(dimension=self.embedding_client.dimension)
        self.sessions = sessions or build_session_store()

        self.pipeline = IngestPipeline(
            self.embedding_client,
            self.vector_store,
            batch_size=batch_size,
            batch_delay=batch_delay,
        )
        self.retriever = Retriever(self.embedding_client, self.vector_store, top_k=top_k)
        self.generator = AnswerGenerator(
            self.retriever,
            llm or get_llm_client(),
            self.sessions,
            locks=locks,
        )

        self._articles: List[Article] = []

    # -------------------------------------------------------------- ingestion

    async def initialize(self, rebuild: bool = False) -> IngestStats:
        """Prepare the collection, fetch articles and ingest them.

        Raises:
            VectorIndexError: If the collection cannot be prepared or loaded
        """
        logger.info("initializing_services")
        await self.vector_store.ensure_collection()
        articles = await fetch_news_articles()
        stats = await self.ingest(articles, rebuild=rebuild)
        logger.info("services_initialized", articles=stats.articles)
        return stats

    async def ingest(self, articles: Sequence[Article], rebuild: bool = False) -> IngestStats:
        """Index a full article collection and make it the current one."""
        articles = list(articles)
        stats = await self.pipeline.ingest(articles, rebuild=rebuild)
        self._articles = articles
        return stats

    def get_articles(self) -> List[Article]:
        return list(self._articles)

    async def get_embeddings_count(self) -> int:
        """Number of points in the vector index (0 if the index is unavailable)."""
        try:
            return await self.vector_store.count()
        except VectorIndexError as e:
            logger.warning("embeddings_count_unavailable", error=str(e))
            return 0

    async def get_stats(self) -> Dict[str, Any]:
        """Ingestion and index statistics."""
        articles = self._articles
        hosts = Counter(urlparse(a.link).hostname or "unknown" for a in articles)
        return {
            "total_articles": len(articles),
            "total_embeddings": await self.get_embeddings_count(),
            "vector_db": "FAISS",
            "collection": self.vector_store.collection,
            "sources": dict(hosts),
            "oldest_article": articles[-1].pub_date if articles else None,
            "newest_article": articles[0].pub_date if articles else None,
        }

    # --------------------------------------------------------------- sessions

    def create_session(self) -> str:
        session_id = str(uuid.uuid4())
        logger.info("session_created", session_id=session_id)
        return session_id

    async def send_message(self, message: str, session_id: str) -> Answer:
        return await self.generator.answer(message, session_id)

    async def get_history(self, session_id: str) -> List[Turn]:
        return await self.sessions.get(session_id)

    async def clear_session(self, session_id: str) -> bool:
        return await self.sessions.delete(session_id)

"""Ingest pipeline for indexing news articles.

Orchestrates:
- Batching the article sequence
- Embedding each batch with a single provider call (local fallback on failure)
- Upserting each batch into the vector index before the next one starts
"""
import asyncio
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional, Sequence

import structlog

from newsbot import config, db
from newsbot.models import Article
from newsbot.rag.embeddings import EmbeddingClient
from newsbot.rag.store_faiss import FAISSVectorStore, IndexedPoint

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, int], None]


@dataclass
class IngestStats:
    """Counters for one ingestion run."""

    articles: int = 0
    batches: int = 0
    fallback_batches: int = 0
    points_upserted: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestPipeline:
    """Pipeline for embedding articles and loading them into the vector index."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: FAISSVectorStore,
        batch_size: int = None,
        batch_delay: float = None,
        record_runs: bool = True,
    ):
        """Initialize the ingest pipeline.

        Args:
            embedding_client: Client used for every batch
            vector_store: Target vector index
            batch_size: Articles per embedding call (default from config)
            batch_delay: Seconds to wait between batches (default from config)
            record_runs: Whether to record each run in the database
        """
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.batch_delay = config.EMBEDDING_BATCH_DELAY if batch_delay is None else batch_delay
        self.record_runs = record_runs

        logger.info(
            "ingest_pipeline_initialized",
            batch_size=self.batch_size,
            batch_delay=self.batch_delay,
        )

    async def ingest(
        self,
        articles: Sequence[Article],
        rebuild: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> IngestStats:
        """Embed and upsert articles batch by batch.

        Point IDs are the absolute positions of the articles in ``articles``,
        so a full run overwrites IDs ``0..N-1``. Batches run strictly in
        order; each upsert completes before the next batch is embedded.

        Args:
            articles: Articles to index, in ID order
            rebuild: If True, clear the collection first (drops stale IDs >= N)
            progress_callback: Optional callback(batch_number, total_batches, batch_len)

        Returns:
            IngestStats for the run

        Raises:
            VectorIndexError: If the collection cannot be prepared or an upsert fails
        """
        logger.info("starting_ingest", articles=len(articles), rebuild=rebuild)

        await self.vector_store.ensure_collection()
        if rebuild:
            await self.vector_store.clear()

        stats = IngestStats(articles=len(articles))
        total_batches = -(-len(articles) // self.batch_size)

        for batch_number, start in enumerate(range(0, len(articles), self.batch_size), 1):
            batch = articles[start : start + self.batch_size]

            logger.info(
                "processing_batch",
                batch=batch_number,
                total_batches=total_batches,
                size=len(batch),
            )
            if progress_callback:
                progress_callback(batch_number, total_batches, len(batch))

            embedded = await self.embedding_client.embed_texts(
                [article.full_text for article in batch]
            )
            if embedded.used_fallback:
                stats.fallback_batches += 1
                logger.warning(
                    "batch_embedded_with_fallback",
                    batch=batch_number,
                    reason=embedded.reason,
                )

            points = [
                IndexedPoint(id=start + idx, vector=vector, payload=article.to_payload())
                for idx, (article, vector) in enumerate(zip(batch, embedded.vectors))
            ]

            try:
                stats.points_upserted += await self.vector_store.upsert(points)
            except Exception as e:
                logger.error("batch_upsert_failed", batch=batch_number, error=str(e))
                raise

            stats.batches += 1
            logger.info("batch_upserted", batch=batch_number, points=len(points))

            if batch_number < total_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        if self.record_runs:
            try:
                db.insert_ingestion_run(
                    collection=self.vector_store.collection,
                    embedding_model=self.embedding_client.model_name,
                    embedding_dimension=self.embedding_client.dimension,
                    batch_size=self.batch_size,
                    total_articles=stats.articles,
                    fallback_batches=stats.fallback_batches,
                    metadata={"batches": stats.batches, "rebuild": rebuild},
                )
            except Exception as e:
                # The index is already complete; only the run ledger is missing
                logger.error("ingestion_run_record_failed", error=str(e))

        logger.info("ingest_completed", stats=stats.as_dict())
        return stats

#!/usr/bin/env python
"""Fetch news articles and (re)index them for the RAG pipeline.

Usage:
    python scripts/reindex.py                   # Fetch and upsert by position
    python scripts/reindex.py --rebuild         # Clear the collection first
    python scripts/reindex.py --batch-size 5    # Smaller embedding batches
    python scripts/reindex.py --status          # Show the last run, no fetching
    python scripts/reindex.py --purge-sessions  # Drop expired session rows
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from newsbot import config, db
from newsbot.logging_setup import configure_logging
from newsbot.memory import SQLiteKeyValueStore
from newsbot.rag.embeddings import EmbeddingClient
from newsbot.rag.ingest import IngestPipeline
from newsbot.rag.store_faiss import FAISSVectorStore
from newsbot.sources import fetch_news_articles
import structlog

logger = structlog.get_logger()

RULE = "-" * 56


class BatchProgress:
    """Prints one line per embedding batch."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.started = None

    def begin(self, title: str):
        self.started = datetime.now()
        print(f"\n{title}\n{RULE}")

    def on_batch(self, batch: int, total: int, size: int):
        done = int(30 * batch / total) if total else 30
        line = f"  batch {batch:>3}/{total:<3} [{'#' * done}{'.' * (30 - done)}] {size} articles"
        # Overwrite in place unless every batch should stay visible
        print(line if self.verbose else f"\r{line}", end="\n" if self.verbose else "", flush=True)

    def report(self, stats: dict):
        elapsed = (datetime.now() - self.started).total_seconds()
        print(f"\n{RULE}")
        for label, key in (
            ("Articles", "articles"),
            ("Batches", "batches"),
            ("Fallback batches", "fallback_batches"),
            ("Points upserted", "points_upserted"),
        ):
            print(f"  {label:<18} {stats[key]}")
        print(f"  {'Elapsed':<18} {elapsed:.1f}s\n")

        if stats["fallback_batches"]:
            print(
                f"Warning: {stats['fallback_batches']} batch(es) used local fallback "
                "embeddings; check JINA_API_KEY.\n"
            )


async def show_status(store: FAISSVectorStore):
    """Print the last recorded ingestion run and the on-disk index."""
    run = db.get_latest_ingestion_run()
    if run is None:
        print("\nNo ingestion run recorded yet.\n")
    else:
        print(f"\nLast run #{run['id']} at {run['ingested_at']}")
        print(f"  Collection         {run['collection']}")
        print(f"  Model / dimension  {run['embedding_model']} / {run['embedding_dimension']}")
        print(f"  Articles           {run['total_articles']} (batch size {run['batch_size']})")
        print(f"  Fallback batches   {run['fallback_batches']}")

    await store.ensure_collection()
    stats = store.get_stats()
    print(f"  Vectors on disk    {stats['vector_count']} ({stats['distance']}, dim {stats['dimension']})\n")


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Fetch news articles and index them for the RAG pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the collection before indexing",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help=f"Articles per embedding call (default: {config.EMBEDDING_BATCH_SIZE})",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show the last ingestion run and exit",
    )
    parser.add_argument(
        "--purge-sessions",
        action="store_true",
        help="Delete expired session rows and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Keep every batch line and log at DEBUG",
    )

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else "WARNING")

    embedding_client = EmbeddingClient()
    store = FAISSVectorStore(dimension=embedding_client.dimension)

    try:
        if args.status:
            await show_status(store)
            return

        if args.purge_sessions:
            removed = await SQLiteKeyValueStore().purge_expired()
            print(f"\nRemoved {removed} expired session(s).\n")
            return

        print(f"\nCollection {config.COLLECTION_NAME} (dim {config.VECTOR_SIZE})")
        print(f"Embeddings {config.JINA_MODEL}{'' if config.JINA_API_KEY else ' [no key: fallback only]'}")
        print(f"Sources    {len(config.NEWS_FEEDS)} feeds, {len(config.SCRAPE_SITES)} sites")

        articles = await fetch_news_articles()
        if not articles:
            print("\nNo articles fetched.\n")
            sys.exit(1)

        progress = BatchProgress(verbose=args.verbose)
        progress.begin(f"{'Rebuilding' if args.rebuild else 'Indexing'} {len(articles)} articles")

        pipeline = IngestPipeline(embedding_client, store, batch_size=args.batch_size)
        stats = await pipeline.ingest(
            articles,
            rebuild=args.rebuild,
            progress_callback=progress.on_batch,
        )
        progress.report(stats.as_dict())

    except KeyboardInterrupt:
        print("\nCancelled.\n")
        sys.exit(1)

    except Exception as e:
        print(f"\nError: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

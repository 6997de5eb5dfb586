"""Database initialization and helpers for the news chatbot.

SQLite database for storing:
- Article payloads keyed by their FAISS vector IDs
- Metadata about ingestion runs
- Expiring key-value entries (session history)
"""
import sqlite3
import json
from typing import Optional, List, Dict, Any, Iterable, Tuple
from datetime import datetime, timezone
import structlog

from newsbot import config

logger = structlog.get_logger()

DB_PATH = config.DB_PATH


def get_connection() -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_database() -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - articles: article payloads addressed by vector ID
    - ingestion_runs: tracks ingestion runs and configuration
    - kv_store: string values with an absolute expiry time
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS articles (
                vector_id INTEGER PRIMARY KEY,
                article_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                link TEXT NOT NULL,
                pub_date TEXT,
                full_text TEXT,
                source TEXT,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ingestion_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ingested_at TEXT NOT NULL,
                collection TEXT NOT NULL,
                embedding_model TEXT NOT NULL,
                embedding_dimension INTEGER NOT NULL,
                batch_size INTEGER NOT NULL,
                total_articles INTEGER NOT NULL,
                fallback_batches INTEGER NOT NULL,
                metadata_json TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_kv_store_expires_at
            ON kv_store(expires_at)
        """)

        conn.commit()
        logger.info("database_initialized", db_path=str(DB_PATH))

    except Exception as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise
    finally:
        conn.close()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------- articles


def upsert_article_payloads(rows: Iterable[Tuple[int, Dict[str, Any]]]) -> int:
    """Insert or overwrite article payloads by vector ID.

    Args:
        rows: (vector_id, payload) pairs; payload uses Article.to_payload() keys

    Returns:
        Number of rows written
    """
    conn = get_connection()
    cursor = conn.cursor()
    now = _utc_now()

    try:
        values = [
            (
                vector_id,
                payload["article_id"],
                payload.get("title", ""),
                payload.get("description", ""),
                payload.get("link", ""),
                payload.get("pub_date", ""),
                payload.get("full_text", ""),
                payload.get("source", ""),
                now,
            )
            for vector_id, payload in rows
        ]
        cursor.executemany("""
            INSERT OR REPLACE INTO articles (
                vector_id, article_id, title, description, link,
                pub_date, full_text, source, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, values)

        conn.commit()
        return len(values)

    except Exception as e:
        conn.rollback()
        logger.error("article_payload_upsert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_payloads_by_vector_ids(vector_ids: List[int]) -> Dict[int, Dict[str, Any]]:
    """Retrieve article payloads by their FAISS vector IDs.

    Args:
        vector_ids: List of FAISS vector IDs to retrieve

    Returns:
        Mapping of vector ID to payload dictionary
    """
    if not vector_ids:
        return {}

    conn = get_connection()
    cursor = conn.cursor()

    try:
        placeholders = ",".join("?" * len(vector_ids))
        cursor.execute(f"""
            SELECT
                vector_id, article_id, title, description, link,
                pub_date, full_text, source
            FROM articles
            WHERE vector_id IN ({placeholders})
        """, vector_ids)

        payloads = {}
        for row in cursor.fetchall():
            payload = dict(row)
            payloads[payload.pop("vector_id")] = payload
        return payloads

    except Exception as e:
        logger.error("article_payload_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def clear_article_payloads() -> int:
    """Delete all article payloads.

    Used when rebuilding the collection from scratch.

    Returns:
        Number of rows deleted
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT COUNT(*) FROM articles")
        count = cursor.fetchone()[0]

        cursor.execute("DELETE FROM articles")
        conn.commit()

        logger.info("article_payloads_cleared", count=count)
        return count

    except Exception as e:
        conn.rollback()
        logger.error("article_payloads_clear_failed", error=str(e))
        raise
    finally:
        conn.close()


# ---------------------------------------------------------- ingestion runs


def insert_ingestion_run(
    collection: str,
    embedding_model: str,
    embedding_dimension: int,
    batch_size: int,
    total_articles: int,
    fallback_batches: int,
    metadata: Optional[Dict[str, Any]] = None,
) -> int:
    """Record a completed ingestion run.

    Returns:
        ID of the inserted row
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            INSERT INTO ingestion_runs (
                ingested_at, collection, embedding_model, embedding_dimension,
                batch_size, total_articles, fallback_batches, metadata_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            _utc_now(),
            collection,
            embedding_model,
            embedding_dimension,
            batch_size,
            total_articles,
            fallback_batches,
            json.dumps(metadata) if metadata else None,
        ))

        conn.commit()
        row_id = cursor.lastrowid
        logger.info("ingestion_run_recorded", id=row_id, total_articles=total_articles)
        return row_id

    except Exception as e:
        conn.rollback()
        logger.error("ingestion_run_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_latest_ingestion_run() -> Optional[Dict[str, Any]]:
    """Get the most recent ingestion run.

    Returns:
        Dictionary with run fields, or None if nothing was ingested yet
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            SELECT * FROM ingestion_runs
            ORDER BY id DESC
            LIMIT 1
        """)

        row = cursor.fetchone()
        if row:
            run = dict(row)
            if run["metadata_json"]:
                run["metadata"] = json.loads(run["metadata_json"])
            return run
        return None

    except Exception as e:
        logger.error("ingestion_run_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


# ---------------------------------------------------------------- kv store


def kv_get(key: str, now: float) -> Optional[str]:
    """Read a value that has not expired yet.

    Expired rows are deleted on the way out so they can never be read again.

    Args:
        key: Entry key
        now: Current epoch time in seconds

    Returns:
        Stored value, or None if absent or expired
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            "SELECT value, expires_at FROM kv_store WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None

        if row["expires_at"] <= now:
            cursor.execute(
                "DELETE FROM kv_store WHERE key = ? AND expires_at <= ?", (key, now)
            )
            conn.commit()
            return None

        return row["value"]

    except Exception as e:
        conn.rollback()
        logger.error("kv_get_failed", key=key, error=str(e))
        raise
    finally:
        conn.close()


def kv_set(key: str, value: str, expires_at: float) -> None:
    """Overwrite a value and its expiry in a single statement."""
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            INSERT INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at
        """, (key, value, expires_at))
        conn.commit()

    except Exception as e:
        conn.rollback()
        logger.error("kv_set_failed", key=key, error=str(e))
        raise
    finally:
        conn.close()


def kv_delete(key: str, now: float) -> bool:
    """Delete a live entry.

    Returns:
        True if a non-expired entry existed and was removed
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute(
            "DELETE FROM kv_store WHERE key = ? AND expires_at > ?", (key, now)
        )
        deleted = cursor.rowcount > 0
        # Expired leftovers for the same key are dropped as well
        cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
        return deleted

    except Exception as e:
        conn.rollback()
        logger.error("kv_delete_failed", key=key, error=str(e))
        raise
    finally:
        conn.close()


def kv_purge_expired(now: float) -> int:
    """Remove every expired entry.

    Returns:
        Number of rows removed
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("DELETE FROM kv_store WHERE expires_at <= ?", (now,))
        conn.commit()
        return cursor.rowcount

    except Exception as e:
        conn.rollback()
        logger.error("kv_purge_failed", error=str(e))
        raise
    finally:
        conn.close()


# Initialize database on module import if it doesn't exist
if not DB_PATH.exists():
    init_database()
    logger.info("database_auto_initialized", db_path=str(DB_PATH))

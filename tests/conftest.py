"""Shared fixtures for the newsbot test suite.

The data directory is redirected before any ``newsbot`` module is imported,
so the auto-created SQLite database never lands in the working tree.
"""
import os
import tempfile

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="newsbot-tests-")
for _var in ("JINA_API_KEY", "GEMINI_API_KEY"):
    os.environ.pop(_var, None)

import pytest

from newsbot import db
from newsbot.memory import InMemoryKeyValueStore, SessionLocks, SessionStore
from newsbot.models import Article
from newsbot.rag.answer import AnswerGenerator
from newsbot.rag.embeddings import EmbeddingClient
from newsbot.rag.retriever import Retriever
from newsbot.rag.store_faiss import FAISSVectorStore

from fakes import DIM, FakeClock, FakeEmbeddingProvider, FakeLLM


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the database module at a fresh SQLite file."""
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "test.sqlite")
    db.init_database()
    return db.DB_PATH


@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_client(provider):
    return EmbeddingClient(provider=provider, dimension=DIM)


@pytest.fixture
async def vector_store(tmp_path, temp_db):
    store = FAISSVectorStore(index_dir=tmp_path / "index", collection="test_articles", dimension=DIM)
    await store.ensure_collection()
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store(clock):
    return SessionStore(InMemoryKeyValueStore(clock=clock), ttl_seconds=60)


@pytest.fixture
def sample_articles():
    return [
        Article(
            id="RSS Feed-0",
            title="New chip boosts tech sector",
            description="A new chip design lifts tech companies.",
            link="https://example.com/tech/chip",
            pub_date="Mon, 06 Jan 2025 10:00:00 GMT",
            full_text="New chip boosts tech sector. tech chip tech",
            source="Example Tech",
        ),
        Article(
            id="RSS Feed-1",
            title="Stocks rally as market recovers",
            description="Markets closed higher.",
            link="https://news.example.org/markets/rally",
            pub_date="Mon, 06 Jan 2025 09:00:00 GMT",
            full_text="Stocks rally as market recovers. market stocks market",
            source="Example Business",
        ),
        Article(
            id="RSS Feed-2",
            title="Storm season driven by climate shifts",
            description="Scientists link storm intensity to climate.",
            link="https://example.com/climate/storm",
            pub_date="Sun, 05 Jan 2025 18:00:00 GMT",
            full_text="Storm season driven by climate shifts. climate storm",
            source="Example World",
        ),
    ]


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def retriever(embedding_client, vector_store):
    return Retriever(embedding_client, vector_store, top_k=20)


@pytest.fixture
def generator(retriever, llm, session_store):
    return AnswerGenerator(retriever, llm, session_store, locks=SessionLocks(enabled=False))

"""HTTP tests for the Quart application, run against fake providers."""
import httpx
import pytest

from newsbot.errors import ProviderUnavailableError
from newsbot.llm_client import GeminiClient
from newsbot.main import create_app
from newsbot.memory import SessionLocks
from newsbot.services import NewsService

from fakes import FakeLLM


@pytest.fixture
async def service(embedding_client, vector_store, session_store, llm, sample_articles):
    news = NewsService(
        embedding_client=embedding_client,
        vector_store=vector_store,
        llm=llm,
        sessions=session_store,
        locks=SessionLocks(enabled=False),
        batch_size=2,
        batch_delay=0,
    )
    await news.ingest(sample_articles)
    return news


@pytest.fixture
def client(service):
    return create_app(service).test_client()


def test_default_service_is_built_on_first_use():
    from newsbot import main

    assert main.app.config["NEWS_SERVICE"] is None
    assert create_app().config["NEWS_SERVICE"] is None


async def test_index_lists_endpoints(client):
    response = await client.get("/")

    data = await response.get_json()
    assert response.status_code == 200
    assert data["endpoints"]["chat"] == "POST /api/chat"


async def test_create_session(client):
    response = await client.post("/api/sessions")

    data = await response.get_json()
    assert response.status_code == 201
    assert data["success"] is True
    assert len(data["sessionId"]) == 36


@pytest.mark.parametrize(
    "body, error",
    [
        ({}, "Message is required"),
        ({"message": 42, "sessionId": "s"}, "Message is required"),
        ({"message": "hello"}, "Session ID is required"),
        ({"message": "   ", "sessionId": "s"}, "Message cannot be empty"),
        ({"message": "x" * 5000, "sessionId": "s"}, "Message too long"),
    ],
)
async def test_chat_validation(client, llm, body, error):
    response = await client.post("/api/chat", json=body)

    data = await response.get_json()
    assert response.status_code == 400
    assert data["success"] is False
    assert error in data["error"]
    assert llm.prompts == []


async def test_chat_then_history(client):
    response = await client.post(
        "/api/chat", json={"message": "Any tech chip news?", "sessionId": "abc"}
    )

    data = await response.get_json()
    assert response.status_code == 200
    assert data["sessionId"] == "abc"
    assert data["response"].startswith("## Answer 1")
    assert len(data["sources"]) == 3
    assert set(data["sources"][0]) == {"title", "link", "pubDate", "source", "relevance"}
    assert data["sources"][0]["title"] == "New chip boosts tech sector"

    response = await client.get("/api/history/abc")
    history = await response.get_json()
    assert history["count"] == 2
    assert history["history"][0] == {
        "role": "user",
        "content": "Any tech chip news?",
        "timestamp": history["history"][0]["timestamp"],
    }
    assert history["history"][1]["sources"][0]["link"] == "https://example.com/tech/chip"


async def test_chat_generation_failure_returns_502(service, client):
    service.generator.llm = FakeLLM(error=ProviderUnavailableError("quota"))

    response = await client.post("/api/chat", json={"message": "hi there", "sessionId": "abc"})

    assert response.status_code == 502
    history = await (await client.get("/api/history/abc")).get_json()
    assert history["count"] == 0


async def test_chat_with_non_json_model_reply_returns_502(service, client):
    service.generator.llm = GeminiClient(
        api_key="key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy</html>")),
    )

    response = await client.post("/api/chat", json={"message": "hi there", "sessionId": "abc"})

    assert response.status_code == 502
    assert (await response.get_json())["success"] is False


async def test_history_of_unknown_session_is_empty(client):
    response = await client.get("/api/history/nobody")

    data = await response.get_json()
    assert data == {"success": True, "history": [], "count": 0, "sessionId": "nobody"}


async def test_delete_session(client):
    await client.post("/api/chat", json={"message": "storm?", "sessionId": "abc"})

    first = await (await client.delete("/api/sessions/abc")).get_json()
    second = await (await client.delete("/api/sessions/abc")).get_json()

    assert first["deleted"] is True
    assert second["deleted"] is False
    history = await (await client.get("/api/history/abc")).get_json()
    assert history["count"] == 0


async def test_health_reports_counts(client):
    data = await (await client.get("/api/health")).get_json()

    assert data["status"] == "healthy"
    assert data["data"]["articlesLoaded"] == 3
    assert data["data"]["embeddingsCreated"] == 3


async def test_articles_with_limit(client):
    data = await (await client.get("/api/articles?limit=2")).get_json()

    assert data["total"] == 3
    assert data["showing"] == 2
    assert data["articles"][0]["preview"] == "A new chip design lifts tech companies...."


async def test_stats(client):
    data = await (await client.get("/api/stats")).get_json()

    stats = data["stats"]
    assert stats["totalArticles"] == 3
    assert stats["totalEmbeddings"] == 3
    assert stats["vectorDB"] == "FAISS"
    assert stats["sources"] == {"example.com": 2, "news.example.org": 1}
    assert stats["newestArticle"] == "Mon, 06 Jan 2025 10:00:00 GMT"
    assert stats["oldestArticle"] == "Sun, 05 Jan 2025 18:00:00 GMT"


async def test_unknown_route_is_404(client):
    response = await client.get("/api/nothing")

    data = await response.get_json()
    assert response.status_code == 404
    assert data["path"] == "/api/nothing"

"""Tests for the language model clients."""
import json

import httpx
import pytest

from newsbot.errors import ProviderUnavailableError
from newsbot.llm_client import GeminiClient, OllamaClient, get_llm_client


def gemini(handler, api_key="key"):
    return GeminiClient(
        api_key=api_key,
        model="gemini-test",
        base_url="https://gemini.test/v1beta/",
        transport=httpx.MockTransport(handler),
    )


class TestGeminiClient:
    async def test_joins_candidate_parts(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": "## Hello"}, {"text": " world"}]}}]
            })

        text = await gemini(handler).generate("the prompt")

        assert text == "## Hello world"
        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "the prompt"
        assert "maxOutputTokens" in seen["body"]["generationConfig"]

    async def test_missing_key_is_unavailable(self):
        client = gemini(lambda request: httpx.Response(200), api_key="")

        with pytest.raises(ProviderUnavailableError, match="not configured"):
            await client.generate("prompt")

    async def test_http_error_is_unavailable(self):
        client = gemini(lambda request: httpx.Response(429, json={"error": "quota"}))

        with pytest.raises(ProviderUnavailableError, match="429"):
            await client.generate("prompt")

    async def test_blocked_prompt_is_unavailable(self):
        client = gemini(
            lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})
        )

        with pytest.raises(ProviderUnavailableError, match="SAFETY"):
            await client.generate("prompt")


    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>proxy</html>"),
            httpx.Response(200, json=["not", "an", "object"]),
            httpx.Response(200, json={"candidates": [{"content": {"parts": ["bare string"]}}]}),
        ],
        ids=["not-json", "list-body", "non-object-part"],
    )
    async def test_unusable_reply_is_unavailable(self, response):
        client = gemini(lambda request: response)

        with pytest.raises(ProviderUnavailableError):
            await client.generate("prompt")


class TestOllamaClient:
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"message": "plain string"}),
            httpx.Response(200, json={"message": {"content": 42}}),
            httpx.Response(200, json=[1, 2]),
        ],
        ids=["not-json", "string-message", "non-text-content", "list-body"],
    )
    async def test_unusable_reply_is_unavailable(self, response):
        client = OllamaClient(
            base_url="http://ollama.test", transport=httpx.MockTransport(lambda request: response)
        )

        with pytest.raises(ProviderUnavailableError):
            await client.generate("hello")

    async def test_generate_wraps_single_user_message(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "hi"}})

        client = OllamaClient(
            base_url="http://ollama.test", model="llama-test", transport=httpx.MockTransport(handler)
        )

        assert await client.generate("hello") == "hi"
        assert seen["path"] == "/api/chat"
        assert seen["body"]["model"] == "llama-test"
        assert seen["body"]["stream"] is False
        assert seen["body"]["messages"] == [{"role": "user", "content": "hello"}]

    async def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler))

        with pytest.raises(ProviderUnavailableError, match="unreachable"):
            await client.generate("hello")


def test_factory_selects_provider():
    assert isinstance(get_llm_client("gemini"), GeminiClient)
    assert isinstance(get_llm_client("OLLAMA"), OllamaClient)
    with pytest.raises(ValueError):
        get_llm_client("other")

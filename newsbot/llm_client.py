"""Language model clients (Gemini, Ollama) with error handling."""
from typing import Dict, List, Optional

import httpx
import structlog

from newsbot import config
from newsbot.errors import ProviderUnavailableError

logger = structlog.get_logger()


class GeminiClient:
    """Async client for the Gemini ``generateContent`` REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini client.

        Args:
            api_key: API key (defaults to config.GEMINI_API_KEY)
            model: Model name (defaults to config.GEMINI_MODEL)
            base_url: API base URL (defaults to config.GEMINI_BASE_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.LLM_TIMEOUT
        self._transport = transport

    def _generation_config(self) -> Dict:
        return {
            "temperature": config.LLM_TEMPERATURE,
            "topK": config.LLM_TOP_K,
            "topP": config.LLM_TOP_P,
            "maxOutputTokens": config.LLM_MAX_OUTPUT_TOKENS,
        }

    async def generate(self, prompt: str) -> str:
        """Generate a completion for a single prompt.

        Args:
            prompt: Full prompt text

        Returns:
            Generated text

        Raises:
            ProviderUnavailableError: On missing key, HTTP errors or an empty reply
        """
        if not self.api_key:
            raise ProviderUnavailableError("GEMINI_API_KEY is not configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self._generation_config(),
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                logger.info("gemini_generate_request", model=self.model, prompt_length=len(prompt))

                response = await client.post(
                    f"{self.base_url}/models/{self.model}:generateContent",
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error("gemini_http_error", status_code=e.response.status_code)
            raise ProviderUnavailableError(
                f"Gemini API error {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("gemini_connection_error", error=str(e))
            raise ProviderUnavailableError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            logger.error("gemini_invalid_json", error=str(e))
            raise ProviderUnavailableError("Gemini returned a non-JSON response") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            feedback = data.get("promptFeedback") if isinstance(data, dict) else None
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            logger.error("gemini_malformed_response", block_reason=block_reason)
            raise ProviderUnavailableError(
                f"Gemini returned no candidates (block reason: {block_reason})"
            ) from e

        logger.info("gemini_generate_response", model=self.model, response_length=len(text))
        return text


class OllamaClient:
    """Async client for interacting with Ollama API."""

    def __init__(
        self,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            model: Chat model (defaults to config.CHAT_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.model = model or config.CHAT_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT
        self._transport = transport

    async def chat(self, messages: List[Dict[str, str]]) -> Dict:
        """Send chat completion request to Ollama.

        Args:
            messages: List of message dicts with 'role' and 'content'

        Returns:
            Response dict with 'message' containing 'content'

        Raises:
            ProviderUnavailableError: On connection or API errors
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": config.LLM_TEMPERATURE,
                "top_k": config.LLM_TOP_K,
                "top_p": config.LLM_TOP_P,
                "num_predict": config.LLM_MAX_OUTPUT_TOKENS,
            },
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                logger.info(
                    "ollama_chat_request",
                    model=self.model,
                    message_count=len(messages),
                )

                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()

        except httpx.ConnectError as e:
            logger.error("ollama_connection_error", error=str(e), base_url=self.base_url)
            raise ProviderUnavailableError(f"Ollama unreachable at {self.base_url}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(
                "ollama_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise ProviderUnavailableError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            logger.error("ollama_invalid_json", error=str(e))
            raise ProviderUnavailableError("Ollama returned a non-JSON response") from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict) or not isinstance(message.get("content", ""), str):
            logger.error("ollama_malformed_response", response_type=type(data).__name__)
            raise ProviderUnavailableError("Ollama response has no message content")

        logger.info(
            "ollama_chat_response",
            model=self.model,
            response_length=len(message.get("content", "")),
        )
        return data

    async def generate(self, prompt: str) -> str:
        """Generate a completion for a single prompt."""
        data = await self.chat([{"role": "user", "content": prompt}])
        return data["message"].get("content", "")


def get_llm_client(provider: str = None):
    """Build the language model client selected by configuration.

    Args:
        provider: 'gemini' or 'ollama' (defaults to config.LLM_PROVIDER)
    """
    provider = (provider or config.LLM_PROVIDER).lower()
    if provider == "gemini":
        return GeminiClient()
    if provider == "ollama":
        return OllamaClient()
    raise ValueError(f"Unknown LLM provider: {provider}")

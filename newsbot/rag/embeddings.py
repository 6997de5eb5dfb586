"""Embedding client with a deterministic local fallback.

The remote provider (Jina) is asked for a whole batch in one request. Its
outcome is returned as a two-variant result, ``EmbeddingSuccess`` or
``ProviderUnavailable``, and ``EmbeddingClient`` branches on that variant:
an unavailable provider never aborts ingestion or retrieval, the texts are
embedded with ``fallback_embedding`` instead.

Fallback vectors and provider vectors live in different spaces. Mixing both
in one collection degrades retrieval quality; that is a known limitation.
"""
import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import httpx
import structlog

from newsbot import config

logger = structlog.get_logger()

FALLBACK_VOCABULARY_SIZE = 100
_WORD_RE = re.compile(r"\b\w+\b")


@dataclass(frozen=True)
class EmbeddingSuccess:
    """Provider returned one vector per input text, in input order."""

    vectors: List[List[float]]


@dataclass(frozen=True)
class ProviderUnavailable:
    """Provider could not embed the batch."""

    reason: str


ProviderResult = Union[EmbeddingSuccess, ProviderUnavailable]


@dataclass
class EmbeddingBatch:
    """Vectors for a batch and how they were produced."""

    vectors: List[List[float]]
    used_fallback: bool = False
    reason: Optional[str] = None


def fallback_embedding(text: str, dimension: int = None) -> List[float]:
    """Deterministic bag-of-words vector for a text.

    Lowercases, splits on word boundaries, drops tokens of two characters or
    fewer and counts the rest. The 100 most frequent tokens (ties keep
    first-seen order) become the vocabulary; their counts fill the first
    positions and the vector is zero-padded or truncated to ``dimension``.

    Args:
        text: Input text
        dimension: Output dimension (defaults to config.VECTOR_SIZE)

    Returns:
        Vector of exactly ``dimension`` floats
    """
    dimension = dimension or config.VECTOR_SIZE

    words = [w for w in _WORD_RE.findall(text.lower()) if len(w) > 2]
    # Counter keeps insertion order and most_common() sorts stably
    counts = Counter(words).most_common(FALLBACK_VOCABULARY_SIZE)

    embedding = [float(count) for _, count in counts]
    embedding.extend([0.0] * (dimension - len(embedding)))
    return embedding[:dimension]


class JinaEmbeddingProvider:
    """Async client for the Jina embeddings API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider.

        Args:
            api_key: Bearer token (defaults to config.JINA_API_KEY)
            api_url: Embeddings endpoint (defaults to config.JINA_API_URL)
            model: Model name (defaults to config.JINA_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key if api_key is not None else config.JINA_API_KEY
        self.api_url = api_url or config.JINA_API_URL
        self.model = model or config.JINA_MODEL
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self._transport = transport

    async def embed(self, texts: Sequence[str]) -> ProviderResult:
        """Embed a batch of texts in a single request.

        Args:
            texts: Texts to embed

        Returns:
            EmbeddingSuccess with one vector per text, or ProviderUnavailable
        """
        if not self.api_key:
            return ProviderUnavailable("no API key configured")

        payload = {"input": list(texts), "model": self.model}
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                logger.info("jina_embedding_request", model=self.model, text_count=len(texts))

                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            return ProviderUnavailable(
                f"Jina API error {e.response.status_code}: {e.response.text[:200]}"
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return ProviderUnavailable(f"Jina request failed: {e}")
        except ValueError as e:
            return ProviderUnavailable(f"Jina response is not JSON: {e}")

        # Any shape other than {"data": [{"index", "embedding"}, ...]} is unusable
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [list(map(float, item["embedding"])) for item in items]
        except Exception as e:
            return ProviderUnavailable(f"malformed Jina response: {type(e).__name__}: {e}")

        if len(vectors) != len(texts):
            return ProviderUnavailable(
                f"expected {len(texts)} embeddings, got {len(vectors)}"
            )

        logger.info("jina_embedding_response", count=len(vectors))
        return EmbeddingSuccess(vectors)


class EmbeddingClient:
    """Turns texts into fixed-dimension vectors, falling back locally."""

    def __init__(
        self,
        provider: Optional[JinaEmbeddingProvider] = None,
        dimension: int = None,
        max_input_chars: int = None,
    ):
        """Initialize the embedding client.

        Args:
            provider: Remote provider; anything with ``async embed(texts)``
                returning a ProviderResult (default: JinaEmbeddingProvider)
            dimension: Vector dimension (default from config)
            max_input_chars: Per-text truncation length (default from config)
        """
        self.provider = provider or JinaEmbeddingProvider()
        self.dimension = dimension or config.VECTOR_SIZE
        self.max_input_chars = max_input_chars or config.EMBEDDING_MAX_INPUT_CHARS

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model", type(self.provider).__name__)

    async def embed_texts(self, texts: Sequence[str]) -> EmbeddingBatch:
        """Embed a batch with one provider call, or locally if it is unavailable.

        Args:
            texts: Texts to embed

        Returns:
            EmbeddingBatch with one vector of ``dimension`` floats per text
        """
        if not texts:
            return EmbeddingBatch(vectors=[])

        processed = [text[: self.max_input_chars] for text in texts]
        result = await self.provider.embed(processed)

        if isinstance(result, EmbeddingSuccess):
            bad = [len(v) for v in result.vectors if len(v) != self.dimension]
            if not bad:
                return EmbeddingBatch(vectors=result.vectors)
            result = ProviderUnavailable(
                f"provider dimension {bad[0]} does not match {self.dimension}"
            )

        logger.warning(
            "embedding_provider_unavailable_using_fallback",
            reason=result.reason,
            text_count=len(processed),
        )
        return EmbeddingBatch(
            vectors=[fallback_embedding(text, self.dimension) for text in processed],
            used_fallback=True,
            reason=result.reason,
        )

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single query text (a one-item batch)."""
        batch = await self.embed_texts([text])
        return batch.vectors[0]

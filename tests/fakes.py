"""Test doubles for providers, the language model and the clock."""
import asyncio

from newsbot.rag.embeddings import EmbeddingSuccess, ProviderUnavailable

DIM = 8
VOCABULARY = ["tech", "chip", "market", "stocks", "climate", "storm", "election", "vote"]


def keyword_vector(text: str):
    """Tiny deterministic 'semantic' embedding: keyword counts over VOCABULARY."""
    words = [w.strip(".,?!") for w in text.lower().split()]
    return [float(words.count(term)) for term in VOCABULARY]


class FakeEmbeddingProvider:
    """Provider returning keyword vectors, or failing on demand."""

    model = "fake-embedder"

    def __init__(self, fail: bool = False, dimension: int = DIM):
        self.fail = fail
        self.dimension = dimension
        self.calls = []

    async def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail:
            return ProviderUnavailable("forced failure")
        vectors = [keyword_vector(t) for t in texts]
        if self.dimension != DIM:
            vectors = [(v + [0.0] * self.dimension)[: self.dimension] for v in vectors]
        return EmbeddingSuccess(vectors)


class FakeLLM:
    """Language model double that records prompts.

    ``gate``, when given, blocks every call until it is set; ``entered``
    counts calls that reached the model.
    """

    def __init__(self, replies=None, error: Exception = None, gate: asyncio.Event = None):
        self.replies = list(replies or [])
        self.error = error
        self.gate = gate
        self.prompts = []
        self.entered = 0

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        self.entered += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            # Yield a few times so unsynchronized callers can interleave
            for _ in range(3):
                await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return f"## Answer {len(self.prompts)}\n- According to Source 1, things happened."


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

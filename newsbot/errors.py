"""Typed failures raised by the newsbot core.

The route layer maps these to HTTP responses; the core never swallows
vector-index or language-model failures. Embedding provider failures are
not exceptions at all: they come back as ``ProviderUnavailable`` results
and are absorbed by the local fallback embedding.
"""


class NewsbotError(Exception):
    """Base class for all newsbot failures."""


class ProviderUnavailableError(NewsbotError):
    """An external model provider could not be reached or answered badly."""


class GenerationError(ProviderUnavailableError):
    """The language model did not produce an answer."""


class VectorIndexError(NewsbotError):
    """Vector index upsert, search or collection management failed."""


class RetrievalError(NewsbotError):
    """Query embedding or similarity search failed; no results are returned."""


class SessionStoreError(NewsbotError):
    """The key-value store backing session history failed."""


class ValidationError(NewsbotError):
    """Malformed input rejected at the HTTP boundary."""

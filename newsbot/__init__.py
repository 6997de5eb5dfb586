"""News chatbot: retrieval-augmented answers over freshly ingested news."""

__version__ = "1.0.0"

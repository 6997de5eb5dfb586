"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Batched embedding generation with a local fallback
- FAISS vector storage with cosine similarity
- Article ingestion
- Semantic retrieval
- Prompt composition and grounded answer generation
"""

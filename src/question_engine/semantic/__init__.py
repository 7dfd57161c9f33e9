"""Embeddings, the bounded embedding cache and vector similarity helpers."""

from .cache import CachedEmbedder, EmbeddingCache
from .embedder import Embedder, OpenAIEmbedder, SentenceTransformersEmbedder, StubEmbedder, build_embedder
from .similarity import cluster_indices, cosine_similarity, dedupe_indices, similarity_matrix

__all__ = [
    "CachedEmbedder",
    "Embedder",
    "EmbeddingCache",
    "OpenAIEmbedder",
    "SentenceTransformersEmbedder",
    "StubEmbedder",
    "build_embedder",
    "cluster_indices",
    "cosine_similarity",
    "dedupe_indices",
    "similarity_matrix",
]

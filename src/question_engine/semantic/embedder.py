from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass

import numpy as np

from question_engine.errors import EmbeddingError
from question_engine.http import HttpClientFactory, transient_retry

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\w+")


class Embedder:
    dim: int

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


@dataclass
class StubEmbedder(Embedder):
    """Hashed bag-of-words vectors for local runs without a model.

    Texts that share words land close together, so dedup and clustering
    still behave plausibly in development.
    """

    dim: int = 384

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    def _vector(self, text: str) -> list[float]:
        v = np.zeros(self.dim)
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            slot = int.from_bytes(digest[:4], "little") % self.dim
            v[slot] += 1.0 if digest[4] & 1 else -1.0
        norm = float(np.linalg.norm(v))
        if norm:
            v /= norm
        return v.tolist()


class SentenceTransformersEmbedder(Embedder):
    """Local sentence-transformers model. Encoding is CPU bound and runs in a worker thread."""

    def __init__(self, model_name: str):
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name
        self._model = SentenceTransformer(model_name)
        self.dim = int(self._model.get_sentence_embedding_dimension() or 384)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        matrix = await asyncio.to_thread(self._model.encode, texts, normalize_embeddings=True)
        return np.asarray(matrix, dtype="float64").tolist()


class OpenAIEmbedder(Embedder):
    """OpenAI embeddings endpoint, one request per batch."""

    def __init__(self, *, api_key: str, model: str, dim: int, base_url: str = "https://api.openai.com/v1"):
        self.model = model
        self.dim = dim
        self._client = HttpClientFactory.client(
            base_url=base_url, headers={"Authorization": f"Bearer {api_key}"}, read_timeout=30.0
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @transient_retry()
    async def _request(self, texts: list[str]) -> dict:
        r = await self._client.post(
            "/embeddings",
            json={"model": self.model, "input": texts, "encoding_format": "float"},
        )
        r.raise_for_status()
        return r.json()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            payload = await self._request(texts)
        except Exception as e:
            raise EmbeddingError(f"embedding request failed: {e}") from e
        items = sorted(payload.get("data") or [], key=lambda d: d.get("index", 0))
        if len(items) != len(texts):
            raise EmbeddingError(f"expected {len(texts)} embeddings, got {len(items)}")
        return [list(d["embedding"]) for d in items]


def build_embedder(
    *,
    openai_api_key: str | None,
    openai_model: str,
    openai_base_url: str,
    st_model: str | None,
    dim: int,
) -> Embedder:
    if openai_api_key:
        return OpenAIEmbedder(api_key=openai_api_key, model=openai_model, dim=dim, base_url=openai_base_url)
    if st_model:
        try:
            return SentenceTransformersEmbedder(st_model)
        except Exception as e:
            logger.warning("sentence-transformers model %s unavailable (%s); using stub embedder", st_model, e)
            return StubEmbedder(dim=dim)
    return StubEmbedder(dim=dim)

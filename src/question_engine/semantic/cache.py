from __future__ import annotations

import logging
from collections import OrderedDict

from .embedder import Embedder

logger = logging.getLogger(__name__)


def cache_key(text: str) -> str:
    return text.lower().strip()


class EmbeddingCache:
    """Bounded LRU map from normalised text to embedding.

    Shared by every concurrent generator task. Reads and inserts happen on
    the event loop without awaiting in between, so no lock is needed; two
    tasks may still compute the same embedding, which is harmless.
    """

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._data: OrderedDict[str, list[float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, text: str) -> bool:
        return cache_key(text) in self._data

    def get(self, text: str) -> list[float] | None:
        key = cache_key(text)
        vec = self._data.get(key)
        if vec is not None:
            self._data.move_to_end(key)
        return vec

    def put(self, text: str, vec: list[float]) -> None:
        key = cache_key(text)
        self._data[key] = vec
        self._data.move_to_end(key)
        while len(self._data) > self.capacity:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()


class CachedEmbedder:
    """Front door for all embedding lookups in the pipeline.

    Only texts missing from the cache are sent to the provider, in one
    batch. A provider failure never propagates: the affected texts get zero
    vectors, which compare as maximally dissimilar, and are not cached.
    """

    def __init__(self, embedder: Embedder, cache: EmbeddingCache | None = None):
        self.embedder = embedder
        self.cache = cache or EmbeddingCache()

    @property
    def dim(self) -> int:
        return self.embedder.dim

    def zero_vector(self) -> list[float]:
        return [0.0] * self.dim

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        out: list[list[float] | None] = [self.cache.get(t) for t in texts]
        missing: dict[str, list[int]] = {}
        for i, (text, vec) in enumerate(zip(texts, out)):
            if vec is None:
                missing.setdefault(cache_key(text), []).append(i)

        if missing:
            # one representative text per normalised key
            to_embed = [texts[idxs[0]] for idxs in missing.values()]
            try:
                vecs = await self.embedder.embed(to_embed)
                if len(vecs) != len(to_embed):
                    raise ValueError(f"provider returned {len(vecs)} vectors for {len(to_embed)} texts")
            except Exception as e:
                logger.warning("Embedding %d texts failed, using zero vectors: %s", len(to_embed), e)
                vecs = None

            for n, idxs in enumerate(missing.values()):
                if vecs is None:
                    vec = self.zero_vector()
                else:
                    vec = vecs[n]
                    self.cache.put(texts[idxs[0]], vec)
                for i in idxs:
                    out[i] = vec

        return [v if v is not None else self.zero_vector() for v in out]

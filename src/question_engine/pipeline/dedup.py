from __future__ import annotations

from question_engine.constants import DEDUP_THRESHOLD
from question_engine.models import Candidate
from question_engine.semantic.cache import CachedEmbedder
from question_engine.semantic.similarity import dedupe_indices


async def deduplicate(
    candidates: list[Candidate], embedder: CachedEmbedder, *, threshold: float = DEDUP_THRESHOLD
) -> list[Candidate]:
    """Drop near-duplicate phrasings, keeping the first occurrence of each."""
    if not candidates:
        return []
    vectors = await embedder.embed_batch([c.question for c in candidates])
    return [candidates[i] for i in dedupe_indices(vectors, threshold)]

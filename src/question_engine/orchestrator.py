"""Public entry point: fan out generators, then format, dedup, score, diversify and rank."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from .constants import DEFAULT_LIMIT
from .generators import CandidateGenerator
from .models import RankedQuestion
from .persistence import SuggestionStore
from .pipeline import Scorer, apply_diversity, deduplicate, format_candidates, rank
from .semantic.cache import CachedEmbedder

logger = logging.getLogger(__name__)


class QuestionOrchestrator:
    def __init__(
        self,
        generators: Sequence[CandidateGenerator],
        *,
        embedder: CachedEmbedder,
        scorer: Scorer,
        store: SuggestionStore,
    ):
        self.generators = list(generators)
        self.embedder = embedder
        self.scorer = scorer
        self.store = store

    async def get_top_questions(self, user_id: str, limit: int = DEFAULT_LIMIT) -> list[RankedQuestion]:
        """Best-effort: always returns a list, empty on total failure."""
        if limit < 1:
            return []
        try:
            cached = await self.store.cached(user_id)
            if cached is not None:
                logger.info("Suggested questions cache hit for user=%s", user_id)
                return cached[:limit]
            logger.info("Suggested questions cache miss for user=%s", user_id)

            ranked = await self._build(user_id, limit)
            if not ranked:
                return []
            retained, top = ranked
            await self.store.persist(user_id, retained)
            await self.store.remember(user_id, retained)
            return top
        except Exception:
            logger.exception("Question orchestration failed for user=%s", user_id)
            return []

    async def clear_cache(self, user_id: str) -> None:
        await self.store.invalidate(user_id)

    async def collect(self, user_id: str) -> list[Any]:
        """Run every generator concurrently and keep results from those that succeeded."""
        results = await asyncio.gather(
            *(g.generate(user_id) for g in self.generators), return_exceptions=True
        )
        raw: list[Any] = []
        for gen, res in zip(self.generators, results):
            if isinstance(res, BaseException):
                logger.warning(
                    "Generator %s failed for user=%s: %s", getattr(gen, "name", type(gen).__name__), user_id, res
                )
                continue
            raw.extend(res or [])
        return raw

    async def _build(self, user_id: str, limit: int):
        raw = await self.collect(user_id)
        logger.info("Generated %d candidate questions for user=%s", len(raw), user_id)
        candidates = format_candidates(raw)
        if not candidates:
            return None

        unique = await deduplicate(candidates, self.embedder)
        logger.info("%d unique questions after deduplication", len(unique))

        snapshot = await self.scorer.load_snapshot(user_id)
        scored = await self.scorer.score(unique, snapshot)
        diverse = await apply_diversity(scored, self.embedder)
        return rank(diverse, limit)

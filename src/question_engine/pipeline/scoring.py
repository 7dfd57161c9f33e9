from __future__ import annotations

import logging

from question_engine.constants import (
    ACTIONABILITY_BASE,
    ACTIONABILITY_MAX_WORDS,
    ACTIONABILITY_MIN_WORDS,
    ACTIONABLE_TERMS,
    DEFAULT_NOVELTY,
    DEFAULT_RELEVANCE,
    NOVELTY_HISTORY_SIZE,
    VAGUE_PHRASES,
)
from question_engine.models import Candidate, RankedQuestion, ScoreBreakdown, UserSnapshot
from question_engine.semantic.cache import CachedEmbedder
from question_engine.semantic.similarity import max_similarity
from question_engine.stores.repository import ResearchRepository

logger = logging.getLogger(__name__)


def _unit(x: float) -> float:
    # float noise from cosine similarity can land just outside [0, 1]
    return min(max(float(x), 0.0), 1.0)


def actionability(question: str) -> float:
    """Heuristic for whether a question can be researched right away."""
    lowered = question.lower()
    words = len(question.split())
    score = ACTIONABILITY_BASE
    if ACTIONABILITY_MIN_WORDS <= words <= ACTIONABILITY_MAX_WORDS:
        score += 0.2
    if not any(p in lowered for p in VAGUE_PHRASES):
        score += 0.2
    if any(t in lowered for t in ACTIONABLE_TERMS):
        score += 0.1
    return min(score, 1.0)


class Scorer:
    """Five-factor scoring relative to one user's interests and recent history."""

    def __init__(self, repo: ResearchRepository, embedder: CachedEmbedder):
        self.repo = repo
        self.embedder = embedder

    async def load_snapshot(self, user_id: str) -> UserSnapshot:
        snap = UserSnapshot(user_id=user_id)
        try:
            profile = await self.repo.get_profile(user_id)
            if profile is not None:
                snap.interests = [i for i in profile.interests if i]
            recent = await self.repo.recent_queries(user_id, limit=NOVELTY_HISTORY_SIZE)
            snap.recent_queries = [q.text for q in recent]
        except Exception as e:
            logger.warning("Could not load scoring context for user=%s, using defaults: %s", user_id, e)
        return snap

    async def score(self, candidates: list[Candidate], snapshot: UserSnapshot) -> list[RankedQuestion]:
        if not candidates:
            return []
        vectors = await self.embedder.embed_batch([c.question for c in candidates])
        interest_vecs = await self.embedder.embed_batch(snapshot.interests)
        history_vecs = await self.embedder.embed_batch(snapshot.recent_queries)

        out: list[RankedQuestion] = []
        for cand, vec in zip(candidates, vectors):
            relevance = max_similarity(vec, interest_vecs) if interest_vecs else DEFAULT_RELEVANCE
            novelty = 1.0 - max_similarity(vec, history_vecs) if history_vecs else DEFAULT_NOVELTY
            scores = ScoreBreakdown(
                relevance=_unit(relevance),
                novelty=_unit(novelty),
                actionability=actionability(cand.question),
                impact=_unit(cand.base_score),
                diversity=1.0,
            )
            out.append(
                RankedQuestion(
                    question=cand.question,
                    category=cand.category,
                    reasoning=cand.reasoning,
                    scores=scores,
                    overall_score=scores.overall(),
                    source_type=cand.source_type,
                    source_ids=list(cand.source_ids),
                )
            )
        return out

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from question_engine.constants import (
    COLLABORATIVE_LIMIT,
    NOVELTY_HISTORY_SIZE,
    PATTERN_HISTORY_SIZE,
    PEER_LIMIT,
    PEER_LOOKBACK_DAYS,
    PEER_MIN_SIMILARITY,
    PEER_NEAR_DUPLICATE,
    PEER_QUERY_SAMPLE,
    PEER_SCORE_FACTOR,
    PEER_WEIGHTS,
    TRENDING_LOOKBACK_DAYS,
    TRENDING_MIN_GROUP,
    TRENDING_PREFIX_CHARS,
)
from question_engine.models import PeerResearcher, QuestionCategory, ResearchProfile, SourceType
from question_engine.semantic.cache import CachedEmbedder
from question_engine.semantic.similarity import max_similarity, similarity_matrix
from question_engine.stores.repository import ResearchRepository

from .text import infer_category, jaccard

logger = logging.getLogger(__name__)

TRENDING_SAMPLE = 50


@dataclass(slots=True)
class CollaborativeInsight:
    question: str
    reasoning: str
    score: float
    category: QuestionCategory
    source_type: SourceType = SourceType.COLLABORATIVE
    source_query_ids: list[str] = field(default_factory=list)
    similar_researchers: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SimilarResearcher:
    user_id: str
    name: str
    similarity: float
    shared_interests: list[str] = field(default_factory=list)


def profile_similarity(mine: ResearchProfile | None, theirs: ResearchProfile | None) -> dict[str, float]:
    """Set-overlap components of researcher similarity, keyed like PEER_WEIGHTS (minus queries)."""
    a = mine or ResearchProfile(user_id="")
    b = theirs or ResearchProfile(user_id="")
    same_level = a.expertise_level is not None and a.expertise_level == b.expertise_level
    return {
        "interests": jaccard(a.interests, b.interests),
        "areas": jaccard(a.research_areas, b.research_areas),
        "techniques": jaccard(a.techniques, b.techniques),
        "expertise": 1.0 if same_level else 0.0,
    }


class CollaborativeGenerator:
    """Recommends what similar researchers found valuable recently."""

    name = "collaborative"

    def __init__(self, repo: ResearchRepository, embedder: CachedEmbedder):
        self.repo = repo
        self.embedder = embedder

    async def generate(self, user_id: str) -> list[CollaborativeInsight]:
        try:
            peers = await self.similar_researchers(user_id)
            if not peers:
                return []
            return await self._from_peers(user_id, peers)
        except Exception as e:
            logger.warning("Collaborative generator failed for user=%s: %s", user_id, e)
            return []

    async def query_similarity(self, mine: list[str], theirs: list[str]) -> float:
        """Average over my sampled queries of the best match among theirs."""
        if not mine or not theirs:
            return 0.0
        a = await self.embedder.embed_batch(mine[:PEER_QUERY_SAMPLE])
        b = await self.embedder.embed_batch(theirs[:PEER_QUERY_SAMPLE])
        sim = similarity_matrix(a, b)
        return float(sim.max(axis=1).clip(min=0.0).mean())

    async def similar_researchers(self, user_id: str) -> list[SimilarResearcher]:
        own = await self.repo.recent_queries(user_id, limit=PATTERN_HISTORY_SIZE)
        if not own:
            return []
        own_texts = [q.text for q in own]
        profile = await self.repo.get_profile(user_id)
        user = await self.repo.get_user(user_id)
        candidates: list[PeerResearcher] = await self.repo.peer_researchers(
            user_id,
            department=user.department if user else None,
            institution=user.institution if user else None,
            query_limit=PATTERN_HISTORY_SIZE,
        )

        my_interests = set(profile.interests) if profile else set()
        out: list[SimilarResearcher] = []
        for peer in candidates:
            if not peer.query_texts:
                continue
            parts = profile_similarity(profile, peer.profile)
            parts["queries"] = await self.query_similarity(own_texts, peer.query_texts)
            similarity = sum(PEER_WEIGHTS[k] * v for k, v in parts.items())
            if similarity < PEER_MIN_SIMILARITY:
                continue
            theirs = set(peer.profile.interests) if peer.profile else set()
            out.append(
                SimilarResearcher(
                    user_id=peer.user.id,
                    name=peer.user.name,
                    similarity=similarity,
                    shared_interests=sorted(my_interests & theirs),
                )
            )

        out.sort(key=lambda s: s.similarity, reverse=True)
        return out[:PEER_LIMIT]

    async def update_similar_researchers(self, user_id: str) -> list[str]:
        """Recompute similar researchers and store their ids on the user's profile."""
        peer_ids = [p.user_id for p in await self.similar_researchers(user_id)]
        await self.repo.set_similar_researchers(user_id, peer_ids)
        logger.info("Stored %d similar researchers for user=%s", len(peer_ids), user_id)
        return peer_ids

    async def _from_peers(self, user_id: str, peers: list[SimilarResearcher]) -> list[CollaborativeInsight]:
        history = await self.repo.all_query_texts(user_id)
        asked = {t.lower() for t in history}
        recent_vecs = await self.embedder.embed_batch(history[:NOVELTY_HISTORY_SIZE])
        since = datetime.now(timezone.utc) - timedelta(days=PEER_LOOKBACK_DAYS)

        insights: list[CollaborativeInsight] = []
        for peer in peers:
            for q in await self.repo.positive_queries(peer.user_id, since=since, limit=10):
                if q.text.lower() in asked:
                    continue
                vec = await self.embedder.embed_one(q.text)
                if max_similarity(vec, recent_vecs) >= PEER_NEAR_DUPLICATE:
                    continue

                reasoning = (
                    f"{peer.name} ({round(peer.similarity * 100)}% similar to you) found this question valuable"
                )
                if peer.shared_interests:
                    reasoning += f". You share interest in: {', '.join(peer.shared_interests[:2])}"
                insights.append(
                    CollaborativeInsight(
                        question=q.text,
                        reasoning=reasoning + ".",
                        score=peer.similarity * PEER_SCORE_FACTOR,
                        category=infer_category(q.text),
                        source_query_ids=[q.id],
                        similar_researchers=[peer.name],
                    )
                )

        insights.sort(key=lambda i: i.score, reverse=True)
        return insights[:COLLABORATIVE_LIMIT]

    async def trending_questions(self, department: str | None = None) -> list[CollaborativeInsight]:
        """Questions several researchers asked successfully in the last week."""
        since = datetime.now(timezone.utc) - timedelta(days=TRENDING_LOOKBACK_DAYS)
        try:
            recent = await self.repo.trending_queries(since=since, department=department, limit=TRENDING_SAMPLE)
        except Exception as e:
            logger.warning("Trending query lookup failed: %s", e)
            return []

        groups: dict[str, list] = {}
        for q in recent:
            groups.setdefault(q.text.lower()[:TRENDING_PREFIX_CHARS], []).append(q)

        ranked = sorted(
            (g for g in groups.values() if len(g) >= TRENDING_MIN_GROUP), key=len, reverse=True
        )[:COLLABORATIVE_LIMIT]

        where = department or "the platform"
        return [
            CollaborativeInsight(
                question=g[0].text,
                reasoning=f"{len(g)} researchers asked about this in the last {TRENDING_LOOKBACK_DAYS} days. "
                f"Trending topic in {where}.",
                score=min(len(g) / 5, 1.0),
                category=infer_category(g[0].text),
                source_query_ids=[q.id for q in g],
                similar_researchers=[q.author_name for q in g],
            )
            for g in ranked
        ]

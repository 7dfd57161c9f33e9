from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from question_engine.constants import FOOTPRINT_QUERY_LIMIT
from question_engine.models import QuestionCategory, SourceType
from question_engine.stores.graph import ConceptGraph, GraphHit
from question_engine.stores.repository import ResearchRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GraphInsight:
    kind: str
    concepts: list[str]
    question: str
    reasoning: str
    score: float
    category: QuestionCategory
    source_type: SourceType = SourceType.KNOWLEDGE_GRAPH
    source_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Footprint:
    user_id: str
    concepts: list[str]
    papers: list[str]
    query_count: int


class GraphGenerator:
    """Suggestions from the structure of the concept graph around the user's footprint."""

    name = "graph"

    def __init__(self, repo: ResearchRepository, graph: ConceptGraph, *, track_gaps: bool = False):
        self.repo = repo
        self.graph = graph
        self.track_gaps = track_gaps

    async def footprint(self, user_id: str) -> Footprint:
        queries = await self.repo.recent_queries(user_id, limit=FOOTPRINT_QUERY_LIMIT, completed_only=False)
        important = await self.repo.important_responses(user_id, limit=FOOTPRINT_QUERY_LIMIT)

        # insertion-ordered de-dup
        concepts = list(dict.fromkeys(c for q in queries for c in q.concepts if c))
        papers = list(dict.fromkeys(r.doi for r in important if r.doi))
        return Footprint(user_id=user_id, concepts=concepts, papers=papers, query_count=len(queries))

    async def generate(self, user_id: str) -> list[GraphInsight]:
        try:
            fp = await self.footprint(user_id)
            if not fp.concepts:
                return []

            unexplored, gaps, trending, clusters = await asyncio.gather(
                self.graph.unexplored_neighbors(fp.concepts),
                self.graph.bridge_concepts(fp.concepts) if len(fp.concepts) >= 2 else _empty(),
                self.graph.trending_concepts(fp.concepts),
                self.graph.adjacent_clusters(fp.concepts),
            )
        except Exception as e:
            logger.warning("Graph generator failed for user=%s: %s", user_id, e)
            return []

        insights: list[GraphInsight] = []
        insights.extend(self._unexplored(h) for h in unexplored if h.via_concepts)
        insights.extend(self._gap(h) for h in gaps)
        insights.extend(self._trending(h) for h in trending if h.via_concepts)
        insights.extend(self._cluster(h) for h in clusters)

        if self.track_gaps and gaps:
            await self.record_gaps(user_id, gaps, related=fp.concepts[:5])
        return insights

    async def record_gaps(self, user_id: str, hits: list[GraphHit], *, related: list[str] | None = None) -> int:
        """Persist bridge concepts as open knowledge gaps. Best-effort; returns rows written."""
        written = 0
        for hit in hits:
            gap = self._gap(hit)
            try:
                await self.repo.record_gap(
                    user_id,
                    concept=hit.concept,
                    related=list(related or []),
                    score=gap.score,
                    reasoning=gap.reasoning,
                )
                written += 1
            except Exception as e:
                logger.warning("Could not record knowledge gap %r for user=%s: %s", hit.concept, user_id, e)
        return written

    @staticmethod
    def _unexplored(h: GraphHit) -> GraphInsight:
        via = h.via_concepts[0]
        return GraphInsight(
            kind="unexplored_connection",
            concepts=[h.concept, *h.via_concepts],
            question=f"How does {h.concept} relate to {via}?",
            reasoning=(
                f"You've researched {via}, but not {h.concept}. They're closely connected "
                f"({h.connection_count} links in the knowledge graph)."
            ),
            score=min(h.connection_count / 10, 1.0),
            category=QuestionCategory.BRIDGING,
        )

    @staticmethod
    def _gap(h: GraphHit) -> GraphInsight:
        return GraphInsight(
            kind="research_gap",
            concepts=[h.concept],
            question=f"What role does {h.concept} play in your research area?",
            reasoning=(
                f"{h.concept} connects {h.connection_count} of your research topics, but you haven't "
                "explored it directly. This may be a critical bridge concept."
            ),
            score=min(h.connection_count / 5, 1.0),
            category=QuestionCategory.GAP,
        )

    @staticmethod
    def _trending(h: GraphHit) -> GraphInsight:
        return GraphInsight(
            kind="trending_path",
            concepts=[h.concept, *h.via_concepts],
            question=f"What are the latest breakthroughs in {h.concept}?",
            reasoning=(
                f"{h.connection_count} papers on {h.concept} published in the last 3 months. "
                f"Related to your work on {h.via_concepts[0]}."
            ),
            score=min(h.connection_count / 20, 1.0),
            category=QuestionCategory.TREND,
        )

    @staticmethod
    def _cluster(h: GraphHit) -> GraphInsight:
        return GraphInsight(
            kind="related_cluster",
            concepts=[h.concept],
            question=f"How does {h.concept} fit into your research area?",
            reasoning=(
                f"{h.concept} is part of a cluster with {h.cluster_size} related concepts you haven't "
                "explored yet. It's well-connected to your current interests."
            ),
            score=min(h.connection_count * h.cluster_size / 20, 1.0),
            category=QuestionCategory.EXPLORATION,
        )


async def _empty() -> list[GraphHit]:
    return []

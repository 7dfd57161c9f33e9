from __future__ import annotations

from collections import Counter

from question_engine.constants import CATEGORY_REPEAT_PENALTY, CLUSTER_REPEAT_PENALTY, CLUSTER_THRESHOLD
from question_engine.models import RankedQuestion
from question_engine.semantic.cache import CachedEmbedder
from question_engine.semantic.similarity import cluster_indices


def diversity_scores(
    categories: list, clusters: list[list[int]]
) -> list[float]:
    """Diversity per position, given categories in processing order and index clusters."""
    cluster_of: dict[int, list[int]] = {}
    for cluster in clusters:
        for i in cluster:
            cluster_of[i] = cluster

    seen: Counter = Counter()
    out: list[float] = []
    for i, category in enumerate(categories):
        penalty = CATEGORY_REPEAT_PENALTY * seen[category]
        seen[category] += 1
        if any(j < i for j in cluster_of.get(i, ())):
            penalty += CLUSTER_REPEAT_PENALTY
        out.append(max(0.0, 1.0 - penalty))
    return out


async def apply_diversity(
    questions: list[RankedQuestion], embedder: CachedEmbedder, *, threshold: float = CLUSTER_THRESHOLD
) -> list[RankedQuestion]:
    """Penalise repeated categories and topical clusters, then rescore in place."""
    if not questions:
        return []
    vectors = await embedder.embed_batch([q.question for q in questions])
    clusters = cluster_indices(vectors, threshold)
    for q, div in zip(questions, diversity_scores([q.category for q in questions], clusters)):
        q.scores.diversity = div
        q.rescore()
    return questions

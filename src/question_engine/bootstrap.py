"""Wire settings into concrete adapters and the orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from .analytics import QuestionAnalytics
from .feedback import FeedbackTracker
from .generators import CollaborativeGenerator, GraphGenerator, LLMGenerator, PatternGenerator
from .llm.client import LLMProvider, build_llm
from .orchestrator import QuestionOrchestrator
from .persistence import SuggestionStore
from .pipeline import Scorer
from .semantic.cache import CachedEmbedder, EmbeddingCache
from .semantic.embedder import build_embedder
from .settings import QuestionEngineSettings
from .stores.cache import QuestionCache, RedisQuestionCache
from .stores.graph import ConceptGraph, build_concept_graph
from .stores.postgres import PostgresRepository
from .stores.repository import ResearchRepository

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    repo: ResearchRepository
    cache: QuestionCache
    graph: ConceptGraph
    embedder: CachedEmbedder
    llm: LLMProvider
    store: SuggestionStore
    orchestrator: QuestionOrchestrator
    feedback: FeedbackTracker
    analytics: QuestionAnalytics

    async def close(self) -> None:
        for res in (self.llm, self.embedder.embedder, self.graph, self.cache, self.repo):
            closer = getattr(res, "aclose", None) or getattr(res, "close", None)
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning("Error closing %s: %s", type(res).__name__, e)


def assemble(
    *,
    repo: ResearchRepository,
    cache: QuestionCache,
    graph: ConceptGraph,
    embedder: CachedEmbedder,
    llm: LLMProvider,
    cache_ttl_seconds: int = 300,
    suggestion_ttl_hours: int = 24,
    track_gaps: bool = True,
) -> Engine:
    """Build an engine from already-constructed adapters."""
    store = SuggestionStore(
        repo, cache, cache_ttl_seconds=cache_ttl_seconds, suggestion_ttl=timedelta(hours=suggestion_ttl_hours)
    )
    generators = [
        GraphGenerator(repo, graph, track_gaps=track_gaps),
        PatternGenerator(repo),
        LLMGenerator(repo, llm),
        CollaborativeGenerator(repo, embedder),
    ]
    orchestrator = QuestionOrchestrator(
        generators, embedder=embedder, scorer=Scorer(repo, embedder), store=store
    )
    return Engine(
        repo=repo,
        cache=cache,
        graph=graph,
        embedder=embedder,
        llm=llm,
        store=store,
        orchestrator=orchestrator,
        feedback=FeedbackTracker(repo),
        analytics=QuestionAnalytics(repo),
    )


async def build_engine(cfg: QuestionEngineSettings) -> Engine:
    repo = await PostgresRepository.connect(cfg.postgres_dsn)
    embedder = CachedEmbedder(
        build_embedder(
            openai_api_key=cfg.openai_api_key,
            openai_model=cfg.openai_embedding_model,
            openai_base_url=cfg.openai_base_url,
            st_model=cfg.st_model,
            dim=cfg.embedding_dim,
        ),
        EmbeddingCache(cfg.embedding_cache_size),
    )
    return assemble(
        repo=repo,
        cache=RedisQuestionCache(cfg.redis_url, prefix=cfg.cache_key_prefix),
        graph=build_concept_graph(
            uri=cfg.neo4j_uri, user=cfg.neo4j_user, password=cfg.neo4j_password, database=cfg.neo4j_database
        ),
        embedder=embedder,
        llm=build_llm(api_key=cfg.anthropic_api_key, model=cfg.anthropic_model, base_url=cfg.anthropic_base_url),
        cache_ttl_seconds=cfg.cache_ttl_seconds,
        suggestion_ttl_hours=cfg.suggestion_ttl_hours,
    )

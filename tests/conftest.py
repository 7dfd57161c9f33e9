"""Shared fixtures and in-memory fakes for every external collaborator.

Ensures the local src/ directory takes priority over any installed package.
"""

from __future__ import annotations

import json
import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import pytest  # noqa: E402

from question_engine.bootstrap import Engine, assemble  # noqa: E402
from question_engine.models import (  # noqa: E402
    Goal,
    ImportantResponse,
    PeerResearcher,
    Project,
    QueryRecord,
    ResearchProfile,
    SuggestionRecord,
    TeamActivity,
    UserRecord,
)
from question_engine.semantic.cache import CachedEmbedder, EmbeddingCache, cache_key  # noqa: E402
from question_engine.semantic.embedder import Embedder  # noqa: E402
from question_engine.stores.graph import GraphHit  # noqa: E402

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def near_duplicates(n: int, similarity: float, *, shared_axis: int = 0, first_axis: int = 1) -> list[list[float]]:
    """``n`` unit vectors whose pairwise cosine similarity is exactly ``similarity``."""
    a = math.sqrt(similarity)
    b = math.sqrt(1.0 - similarity)
    out = []
    for i in range(n):
        v = [0.0] * FixedEmbedder.DIM
        v[shared_axis] = a
        v[first_axis + i] = b
        out.append(v)
    return out


class FixedEmbedder(Embedder):
    """Explicit vectors for known texts; every other text gets its own orthogonal axis."""

    DIM = 256
    RESERVED = 16

    def __init__(self, vectors: dict[str, list[float]] | None = None, *, fail: bool = False):
        self.vectors = {cache_key(k): v for k, v in (vectors or {}).items()}
        self.fail = fail
        self.calls: list[list[str]] = []
        self._next_axis = self.RESERVED

    @property
    def dim(self) -> int:
        return self.DIM

    def _axis(self) -> list[float]:
        v = [0.0] * self.DIM
        v[self._next_axis % self.DIM] = 1.0
        self._next_axis += 1
        return v

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding provider down")
        out = []
        for t in texts:
            key = cache_key(t)
            if key not in self.vectors:
                self.vectors[key] = self._axis()
            out.append(self.vectors[key])
        return out


class FakeRepository:
    def __init__(self) -> None:
        self.users: dict[str, UserRecord] = {}
        self.profiles: dict[str, ResearchProfile] = {}
        self.queries: list[QueryRecord] = []
        self.important: dict[str, list[ImportantResponse]] = {}
        self.projects: dict[str, list[Project]] = {}
        self.goals: dict[str, list[Goal]] = {}
        self.team: dict[str, list[TeamActivity]] = {}
        self.gaps: dict[str, list[str]] = {}
        self.recorded_gaps: list[dict[str, Any]] = []
        self.peers: dict[str, list[PeerResearcher]] = {}
        self.positive: dict[str, list[QueryRecord]] = {}
        self.trending: list[QueryRecord] = []
        self.similar_ids: dict[str, list[str]] = {}
        self.suggestions: dict[str, SuggestionRecord] = {}
        self.fail_writes = False
        self.fail_reads = False
        self._seq = 0

    # --- seeding helpers ---

    def add_user(self, user_id: str, *, name: str = "", department: str | None = None,
                 institution: str | None = None, profile: ResearchProfile | None = None) -> None:
        self.users[user_id] = UserRecord(id=user_id, name=name or user_id, department=department,
                                         institution=institution)
        if profile is not None:
            self.profiles[user_id] = profile

    def add_query(self, user_id: str, text: str, *, age: timedelta = timedelta(0), status: str = "COMPLETED",
                  concepts: list[str] | None = None) -> QueryRecord:
        self._seq += 1
        q = QueryRecord(id=f"q{self._seq}", user_id=user_id, text=text, created_at=NOW - age, status=status,
                        concepts=list(concepts or []))
        self.queries.append(q)
        return q

    def add_suggestion(self, **kw: Any) -> SuggestionRecord:
        self._seq += 1
        defaults: dict[str, Any] = dict(
            id=f"s{self._seq}", question=f"question {self._seq}", category="EXPLORATION",
            relevance_score=0.5, novelty_score=0.5, actionability_score=0.5, impact_score=0.5,
            overall_score=0.5, source_type="PATTERN", generated_at=NOW, expires_at=NOW + timedelta(hours=24),
        )
        defaults.update(kw)
        rec = SuggestionRecord(**defaults)
        self.suggestions[rec.id] = rec
        return rec

    def _check(self) -> None:
        if self.fail_reads:
            raise ConnectionError("database unavailable")

    # --- profile & history ---

    async def get_user(self, user_id):
        self._check()
        return self.users.get(user_id)

    async def get_profile(self, user_id):
        self._check()
        return self.profiles.get(user_id)

    def _history(self, user_id, completed_only=True):
        rows = [q for q in self.queries if q.user_id == user_id and (not completed_only or q.status == "COMPLETED")]
        return sorted(rows, key=lambda q: q.created_at, reverse=True)

    async def recent_queries(self, user_id, *, limit, completed_only=True):
        self._check()
        return self._history(user_id, completed_only)[:limit]

    async def all_query_texts(self, user_id):
        self._check()
        return [q.text for q in self._history(user_id, completed_only=False)]

    async def query_timestamps(self, user_id, *, since):
        self._check()
        return [q.created_at for q in self.queries if q.user_id == user_id and q.created_at >= since]

    async def important_responses(self, user_id, *, limit):
        return self.important.get(user_id, [])[:limit]

    async def active_projects(self, user_id, *, limit=5):
        return self.projects.get(user_id, [])[:limit]

    async def open_goals(self, user_id, *, limit=5):
        return self.goals.get(user_id, [])[:limit]

    async def team_activity(self, department, *, since, limit=10):
        return self.team.get(department, [])[:limit]

    async def knowledge_gaps(self, user_id, *, limit=5):
        return self.gaps.get(user_id, [])[:limit]

    async def record_gap(self, user_id, *, concept, related, score, reasoning):
        if self.fail_writes:
            raise ConnectionError("database unavailable")
        self.recorded_gaps.append(dict(user_id=user_id, concept=concept, related=related, score=score))

    async def peer_researchers(self, user_id, *, department, institution, query_limit=20):
        return self.peers.get(user_id, [])

    async def set_similar_researchers(self, user_id, peer_ids):
        self._check()
        self.similar_ids[user_id] = list(peer_ids)

    async def positive_queries(self, user_id, *, since, limit=10):
        return [q for q in self.positive.get(user_id, []) if q.created_at >= since][:limit]

    async def trending_queries(self, *, since, department=None, limit=50):
        return [q for q in self.trending if q.created_at >= since][:limit]

    # --- suggested questions ---

    async def create_suggestions(self, records):
        if self.fail_writes:
            raise ConnectionError("database unavailable")
        written = 0
        for r in records:
            key = (r.user_id, r.question, r.expires_at)
            if any((s.user_id, s.question, s.expires_at) == key for s in self.suggestions.values()):
                continue
            self._seq += 1
            r = r.model_copy(update={"id": f"s{self._seq}"})
            self.suggestions[r.id] = r
            written += 1
        return written

    async def active_suggestion_texts(self, user_id, *, now):
        return {r.question.lower() for r in self.suggestions.values() if r.user_id == user_id and r.expires_at > now}

    async def delete_expired(self, *, now):
        expired = [k for k, r in self.suggestions.items() if r.expires_at < now]
        for k in expired:
            del self.suggestions[k]
        return len(expired)

    async def get_suggestion(self, suggestion_id):
        return self.suggestions.get(suggestion_id)

    async def mark_displayed(self, user_id, questions, *, at):
        n = 0
        for r in self.suggestions.values():
            if r.user_id == user_id and r.question in questions and not r.displayed:
                r.displayed, r.displayed_at = True, at
                n += 1
        return n

    async def mark_clicked(self, suggestion_id, *, at):
        r = self.suggestions[suggestion_id]
        r.clicked, r.clicked_at = True, at

    async def mark_dismissed(self, suggestion_id, *, at):
        r = self.suggestions[suggestion_id]
        r.dismissed, r.dismissed_at = True, at

    async def mark_executed(self, user_id, question, query_id, *, at):
        clicked = [r for r in self.suggestions.values()
                   if r.user_id == user_id and r.question == question and r.clicked]
        if not clicked:
            return False
        best = max(clicked, key=lambda r: r.clicked_at or NOW)
        best.executed, best.executed_at, best.executed_query_id = True, at, query_id
        return True

    async def displayed_suggestions(self, *, since, user_id=None):
        return [r for r in self.suggestions.values()
                if r.displayed and r.displayed_at and r.displayed_at >= since
                and (user_id is None or r.user_id == user_id)]


class FakeCache:
    """Round-trips through JSON like the Redis adapter does."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, user_id):
        raw = self.data.get(user_id)
        return json.loads(raw) if raw is not None else None

    async def set(self, user_id, questions, *, ttl_seconds):
        self.data[user_id] = json.dumps(questions)
        self.ttls[user_id] = ttl_seconds

    async def delete(self, user_id):
        self.data.pop(user_id, None)


class FakeGraph:
    def __init__(self, **hits: list[GraphHit]) -> None:
        self.hits = hits
        self.calls: list[tuple[str, list[str]]] = []

    async def _get(self, name, concepts):
        self.calls.append((name, list(concepts)))
        return list(self.hits.get(name, []))

    async def unexplored_neighbors(self, concepts):
        return await self._get("unexplored", concepts)

    async def bridge_concepts(self, concepts):
        return await self._get("bridge", concepts)

    async def trending_concepts(self, concepts):
        return await self._get("trending", concepts)

    async def adjacent_clusters(self, concepts):
        return await self._get("cluster", concepts)


class FakeLLM:
    def __init__(self, response: str | Exception = '{"questions": []}') -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    async def complete(self, prompt, *, max_tokens, temperature):
        self.calls.append(dict(prompt=prompt, max_tokens=max_tokens, temperature=temperature))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class StaticGenerator:
    def __init__(self, name: str, items: list[Any] | None = None, *, error: Exception | None = None) -> None:
        self.name = name
        self.items = items or []
        self.error = error
        self.calls = 0

    async def generate(self, user_id):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def fixed_embedder() -> FixedEmbedder:
    return FixedEmbedder()


@pytest.fixture
def embedder(fixed_embedder: FixedEmbedder) -> CachedEmbedder:
    return CachedEmbedder(fixed_embedder, EmbeddingCache(512))


@pytest.fixture
def engine(repo: FakeRepository, cache: FakeCache, embedder: CachedEmbedder) -> Engine:
    return assemble(repo=repo, cache=cache, graph=FakeGraph(), embedder=embedder, llm=FakeLLM())

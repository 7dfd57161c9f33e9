from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import asyncpg

from question_engine.errors import PersistenceError, StoreUnavailableError
from question_engine.models import (
    Goal,
    ImportantResponse,
    PeerResearcher,
    Project,
    QueryRecord,
    QuestionCategory,
    ResearchProfile,
    SourceType,
    SuggestionRecord,
    TeamActivity,
    UserRecord,
)

logger = logging.getLogger(__name__)

# Tables owned by the suggestion engine. Users, profiles, queries, responses,
# feedback, projects and goals belong to the main application and are only read.
SCHEMA = """
CREATE TABLE IF NOT EXISTS suggested_questions (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    user_id TEXT NOT NULL,
    question TEXT NOT NULL,
    rationale TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL,
    relevance_score DOUBLE PRECISION NOT NULL,
    novelty_score DOUBLE PRECISION NOT NULL,
    actionability_score DOUBLE PRECISION NOT NULL,
    impact_score DOUBLE PRECISION NOT NULL,
    diversity_score DOUBLE PRECISION NOT NULL DEFAULT 1.0,
    overall_score DOUBLE PRECISION NOT NULL,
    source_type TEXT NOT NULL,
    source_ids TEXT[] NOT NULL DEFAULT '{}',
    generated_by TEXT NOT NULL DEFAULT 'orchestrator',
    context_snapshot JSONB NOT NULL DEFAULT '{}'::jsonb,
    generated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    expires_at TIMESTAMPTZ NOT NULL,
    displayed BOOLEAN NOT NULL DEFAULT false,
    displayed_at TIMESTAMPTZ,
    clicked BOOLEAN NOT NULL DEFAULT false,
    clicked_at TIMESTAMPTZ,
    dismissed BOOLEAN NOT NULL DEFAULT false,
    dismissed_at TIMESTAMPTZ,
    executed BOOLEAN NOT NULL DEFAULT false,
    executed_at TIMESTAMPTZ,
    executed_query_id TEXT,
    UNIQUE (user_id, question, expires_at)
);
CREATE INDEX IF NOT EXISTS suggested_questions_user_idx ON suggested_questions (user_id, expires_at);
CREATE INDEX IF NOT EXISTS suggested_questions_expiry_idx ON suggested_questions (expires_at);

CREATE TABLE IF NOT EXISTS knowledge_graph_gaps (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    missing_concept TEXT NOT NULL,
    related_concepts TEXT[] NOT NULL DEFAULT '{}',
    gap_type TEXT NOT NULL DEFAULT 'bridge',
    detected_by TEXT NOT NULL DEFAULT 'graph-analysis',
    evidence JSONB NOT NULL DEFAULT '{}'::jsonb,
    potential_impact DOUBLE PRECISION NOT NULL DEFAULT 0,
    relevant_users TEXT[] NOT NULL DEFAULT '{}',
    addressed BOOLEAN NOT NULL DEFAULT false,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (missing_concept, gap_type)
);
"""

_SUGGESTION_COLUMNS = """
id, user_id, question, rationale, category, relevance_score, novelty_score,
actionability_score, impact_score, diversity_score, overall_score, source_type,
source_ids, generated_by, generated_at, expires_at, displayed, displayed_at,
clicked, clicked_at, dismissed, dismissed_at, executed, executed_at, executed_query_id
"""

_POSITIVE_FEEDBACK = """
EXISTS (
    SELECT 1 FROM responses r JOIN feedback f ON f.response_id = r.id
    WHERE r.query_id = q.id AND f.type IN ('LIKE', 'IMPORTANT')
)
"""


def _rowcount(status: str | None) -> int:
    """Affected rows from an asyncpg command tag such as "DELETE 12" or "INSERT 0 1"."""
    try:
        return int((status or "").split()[-1])
    except (ValueError, IndexError):
        return 0


def _json(v: Any) -> Any:
    if isinstance(v, str):
        try:
            return json.loads(v)
        except ValueError:
            return {}
    return v or {}


def _concepts(intent: Any) -> list[str]:
    data = _json(intent)
    if isinstance(data, dict):
        return [str(c) for c in data.get("concepts") or []]
    return []


def _profile(row: asyncpg.Record) -> ResearchProfile:
    return ResearchProfile(
        user_id=row["user_id"],
        primary_interests=list(row["primary_interests"] or []),
        secondary_interests=list(row["secondary_interests"] or []),
        research_areas=list(row["research_areas"] or []),
        techniques=list(row["techniques"] or []),
        computational_skills=list(row["computational_skills"] or []),
        expertise_level=row["expertise_level"],
        phd_focus=row["phd_focus"],
        years_in_field=row["years_in_field"],
        highest_degree=row["highest_degree"],
    )


def _query(row: asyncpg.Record) -> QueryRecord:
    return QueryRecord(
        id=row["id"],
        user_id=row["user_id"],
        text=row["original_query"],
        created_at=row["created_at"],
        status=row["status"],
        concepts=_concepts(row["intent"]) if "intent" in row else [],
        author_name=(row["author_name"] or "") if "author_name" in row else "",
    )


def _suggestion(row: asyncpg.Record) -> SuggestionRecord:
    return SuggestionRecord(
        id=row["id"],
        user_id=row["user_id"],
        question=row["question"],
        rationale=row["rationale"],
        category=QuestionCategory.parse(row["category"]),
        relevance_score=row["relevance_score"],
        novelty_score=row["novelty_score"],
        actionability_score=row["actionability_score"],
        impact_score=row["impact_score"],
        diversity_score=row["diversity_score"],
        overall_score=row["overall_score"],
        source_type=SourceType.parse(row["source_type"]),
        source_ids=list(row["source_ids"] or []),
        generated_by=row["generated_by"],
        generated_at=row["generated_at"],
        expires_at=row["expires_at"],
        displayed=row["displayed"],
        displayed_at=row["displayed_at"],
        clicked=row["clicked"],
        clicked_at=row["clicked_at"],
        dismissed=row["dismissed"],
        dismissed_at=row["dismissed_at"],
        executed=row["executed"],
        executed_at=row["executed_at"],
        executed_query_id=row["executed_query_id"],
    )


_PROFILE_SELECT = """
SELECT user_id, primary_interests, secondary_interests, research_areas, techniques,
       computational_skills, expertise_level, phd_focus, years_in_field, highest_degree
FROM research_profiles
"""


@dataclass
class PostgresRepository:
    pool: asyncpg.Pool

    @classmethod
    async def connect(cls, dsn: str) -> "PostgresRepository":
        try:
            pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=10)
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreUnavailableError(f"cannot reach Postgres: {e}") from e
        return cls(pool=pool)

    async def close(self) -> None:
        await self.pool.close()

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as con:
            await con.execute(SCHEMA)

    # --- profile & history ---

    async def get_user(self, user_id: str) -> UserRecord | None:
        q = "SELECT id, name, department, institution FROM users WHERE id=$1"
        async with self.pool.acquire() as con:
            row = await con.fetchrow(q, user_id)
        if not row:
            return None
        return UserRecord(
            id=row["id"], name=row["name"] or "", department=row["department"], institution=row["institution"]
        )

    async def get_profile(self, user_id: str) -> ResearchProfile | None:
        async with self.pool.acquire() as con:
            row = await con.fetchrow(_PROFILE_SELECT + " WHERE user_id=$1", user_id)
        return _profile(row) if row else None

    async def recent_queries(
        self, user_id: str, *, limit: int, completed_only: bool = True
    ) -> list[QueryRecord]:
        q = """
        SELECT id, user_id, original_query, status, intent, created_at
        FROM queries
        WHERE user_id=$1 AND ($3::bool IS FALSE OR status='COMPLETED')
        ORDER BY created_at DESC
        LIMIT $2
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, limit, completed_only)
        return [_query(r) for r in rows]

    async def all_query_texts(self, user_id: str) -> list[str]:
        q = "SELECT original_query FROM queries WHERE user_id=$1 ORDER BY created_at DESC"
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id)
        return [r["original_query"] for r in rows]

    async def query_timestamps(self, user_id: str, *, since: datetime) -> list[datetime]:
        q = "SELECT created_at FROM queries WHERE user_id=$1 AND created_at >= $2"
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, since)
        return [r["created_at"] for r in rows]

    async def important_responses(self, user_id: str, *, limit: int) -> list[ImportantResponse]:
        q = """
        SELECT r.query_id, r.summary, r.metadata
        FROM responses r
        JOIN queries q ON q.id = r.query_id
        WHERE q.user_id=$1
          AND EXISTS (SELECT 1 FROM feedback f WHERE f.response_id = r.id AND f.type = 'IMPORTANT')
        ORDER BY q.created_at DESC
        LIMIT $2
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, limit)
        out: list[ImportantResponse] = []
        for r in rows:
            meta = _json(r["metadata"])
            out.append(
                ImportantResponse(
                    query_id=r["query_id"],
                    summary=r["summary"] or "",
                    doi=meta.get("doi") if isinstance(meta, dict) else None,
                    concepts=[str(c) for c in (meta.get("concepts") or [])] if isinstance(meta, dict) else [],
                )
            )
        return out

    async def active_projects(self, user_id: str, *, limit: int = 5) -> list[Project]:
        q = """
        SELECT title, description, status FROM projects
        WHERE user_id=$1 AND status IN ('PLANNING', 'IN_PROGRESS', 'ANALYZING')
        ORDER BY updated_at DESC
        LIMIT $2
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, limit)
        return [Project(title=r["title"], description=r["description"], status=r["status"]) for r in rows]

    async def open_goals(self, user_id: str, *, limit: int = 5) -> list[Goal]:
        q = """
        SELECT type, title, target_date FROM goals
        WHERE user_id=$1 AND status IN ('NOT_STARTED', 'IN_PROGRESS')
        ORDER BY target_date ASC NULLS LAST
        LIMIT $2
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, limit)
        return [Goal(type=r["type"], title=r["title"], target_date=r["target_date"]) for r in rows]

    async def team_activity(
        self, department: str, *, since: datetime, limit: int = 10
    ) -> list[TeamActivity]:
        q = """
        SELECT u.name, q.original_query
        FROM queries q JOIN users u ON u.id = q.user_id
        WHERE u.department=$1 AND q.created_at >= $2 AND q.status='COMPLETED'
        ORDER BY q.created_at DESC
        LIMIT $3
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, department, since, limit)
        return [TeamActivity(researcher=r["name"] or "", topic=(r["original_query"] or "")[:60]) for r in rows]

    async def knowledge_gaps(self, user_id: str, *, limit: int = 5) -> list[str]:
        q = """
        SELECT missing_concept FROM knowledge_graph_gaps
        WHERE $1 = ANY(relevant_users) AND addressed = false
        ORDER BY potential_impact DESC
        LIMIT $2
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, limit)
        return [r["missing_concept"] for r in rows]

    async def record_gap(
        self, user_id: str, *, concept: str, related: list[str], score: float, reasoning: str
    ) -> None:
        q = """
        INSERT INTO knowledge_graph_gaps(missing_concept, related_concepts, evidence, potential_impact, relevant_users)
        VALUES($1, $2, $3::jsonb, $4, ARRAY[$5]::text[])
        ON CONFLICT (missing_concept, gap_type) DO UPDATE
        SET relevant_users = (
                SELECT array_agg(DISTINCT u) FROM unnest(knowledge_graph_gaps.relevant_users || excluded.relevant_users) u
            ),
            potential_impact = GREATEST(knowledge_graph_gaps.potential_impact, excluded.potential_impact)
        """
        evidence = json.dumps({"score": score, "reasoning": reasoning}, ensure_ascii=False)
        async with self.pool.acquire() as con:
            await con.execute(q, concept, related, evidence, score, user_id)

    async def peer_researchers(
        self, user_id: str, *, department: str | None, institution: str | None, query_limit: int = 20
    ) -> list[PeerResearcher]:
        q = """
        SELECT u.id, u.name, u.department, u.institution,
               p.user_id, p.primary_interests, p.secondary_interests, p.research_areas, p.techniques,
               p.computational_skills, p.expertise_level, p.phd_focus, p.years_in_field, p.highest_degree,
               ARRAY(
                   SELECT q.original_query FROM queries q
                   WHERE q.user_id = u.id AND q.status = 'COMPLETED'
                   ORDER BY q.created_at DESC LIMIT $4
               ) AS query_texts
        FROM users u
        LEFT JOIN research_profiles p ON p.user_id = u.id
        WHERE u.id <> $1 AND (u.department = $2 OR u.institution = $3)
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, department, institution, query_limit)
        out: list[PeerResearcher] = []
        for r in rows:
            out.append(
                PeerResearcher(
                    user=UserRecord(
                        id=r["id"], name=r["name"] or "", department=r["department"], institution=r["institution"]
                    ),
                    profile=_profile(r) if r["user_id"] else None,
                    query_texts=list(r["query_texts"] or []),
                )
            )
        return out

    async def set_similar_researchers(self, user_id: str, peer_ids: list[str]) -> None:
        q = "UPDATE research_profiles SET similar_researchers = $2::text[] WHERE user_id = $1"
        async with self.pool.acquire() as con:
            await con.execute(q, user_id, peer_ids)

    async def positive_queries(
        self, user_id: str, *, since: datetime, limit: int = 10
    ) -> list[QueryRecord]:
        q = f"""
        SELECT q.id, q.user_id, q.original_query, q.status, q.intent, q.created_at
        FROM queries q
        WHERE q.user_id=$1 AND q.status='COMPLETED' AND q.created_at >= $2 AND {_POSITIVE_FEEDBACK}
        ORDER BY q.created_at DESC
        LIMIT $3
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, since, limit)
        return [_query(r) for r in rows]

    async def trending_queries(
        self, *, since: datetime, department: str | None = None, limit: int = 50
    ) -> list[QueryRecord]:
        q = f"""
        SELECT q.id, q.user_id, q.original_query, q.status, q.intent, q.created_at, u.name AS author_name
        FROM queries q JOIN users u ON u.id = q.user_id
        WHERE q.status='COMPLETED' AND q.created_at >= $1
          AND ($2::text IS NULL OR u.department = $2)
          AND {_POSITIVE_FEEDBACK}
        ORDER BY q.created_at DESC
        LIMIT $3
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, since, department, limit)
        return [_query(r) for r in rows]

    # --- suggested questions ---

    async def create_suggestions(self, records: list[SuggestionRecord]) -> int:
        if not records:
            return 0
        q = """
        INSERT INTO suggested_questions(
            user_id, question, rationale, category, relevance_score, novelty_score,
            actionability_score, impact_score, diversity_score, overall_score,
            source_type, source_ids, generated_by, context_snapshot, generated_at, expires_at
        )
        VALUES($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11,$12,$13,$14::jsonb,$15,$16)
        ON CONFLICT (user_id, question, expires_at) DO NOTHING
        """
        args = [
            (
                r.user_id,
                r.question,
                r.rationale,
                r.category.value,
                r.relevance_score,
                r.novelty_score,
                r.actionability_score,
                r.impact_score,
                r.diversity_score,
                r.overall_score,
                r.source_type.value,
                r.source_ids,
                r.generated_by,
                json.dumps(
                    {
                        "timestamp": r.generated_at.isoformat(),
                        "scores": {
                            "relevance": r.relevance_score,
                            "novelty": r.novelty_score,
                            "actionability": r.actionability_score,
                            "impact": r.impact_score,
                            "diversity": r.diversity_score,
                        },
                    }
                ),
                r.generated_at,
                r.expires_at,
            )
            for r in records
        ]
        # one statement per row so conflicts skipped by ON CONFLICT are not counted
        written = 0
        try:
            async with self.pool.acquire() as con:
                async with con.transaction():
                    for a in args:
                        written += _rowcount(await con.execute(q, *a))
        except asyncpg.PostgresError as e:
            raise PersistenceError(f"could not persist {len(records)} suggestions: {e}") from e
        return written

    async def active_suggestion_texts(self, user_id: str, *, now: datetime) -> set[str]:
        q = "SELECT question FROM suggested_questions WHERE user_id=$1 AND expires_at > $2"
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, user_id, now)
        return {r["question"].lower() for r in rows}

    async def delete_expired(self, *, now: datetime) -> int:
        async with self.pool.acquire() as con:
            status = await con.execute("DELETE FROM suggested_questions WHERE expires_at < $1", now)
        return _rowcount(status)

    async def get_suggestion(self, suggestion_id: str) -> SuggestionRecord | None:
        q = f"SELECT {_SUGGESTION_COLUMNS} FROM suggested_questions WHERE id=$1"
        async with self.pool.acquire() as con:
            row = await con.fetchrow(q, suggestion_id)
        return _suggestion(row) if row else None

    async def mark_displayed(self, user_id: str, questions: list[str], *, at: datetime) -> int:
        if not questions:
            return 0
        q = """
        UPDATE suggested_questions SET displayed = true, displayed_at = $3
        WHERE user_id=$1 AND question = ANY($2::text[]) AND displayed = false
        """
        async with self.pool.acquire() as con:
            status = await con.execute(q, user_id, questions, at)
        return _rowcount(status)

    async def mark_clicked(self, suggestion_id: str, *, at: datetime) -> None:
        q = "UPDATE suggested_questions SET clicked = true, clicked_at = $2 WHERE id=$1"
        async with self.pool.acquire() as con:
            await con.execute(q, suggestion_id, at)

    async def mark_dismissed(self, suggestion_id: str, *, at: datetime) -> None:
        q = "UPDATE suggested_questions SET dismissed = true, dismissed_at = $2 WHERE id=$1"
        async with self.pool.acquire() as con:
            await con.execute(q, suggestion_id, at)

    async def mark_executed(self, user_id: str, question: str, query_id: str, *, at: datetime) -> bool:
        q = """
        UPDATE suggested_questions SET executed = true, executed_query_id = $3, executed_at = $4
        WHERE id = (
            SELECT id FROM suggested_questions
            WHERE user_id=$1 AND question=$2 AND clicked = true
            ORDER BY clicked_at DESC NULLS LAST
            LIMIT 1
        )
        RETURNING id
        """
        async with self.pool.acquire() as con:
            row = await con.fetchrow(q, user_id, question, query_id, at)
        return row is not None

    async def displayed_suggestions(
        self, *, since: datetime, user_id: str | None = None
    ) -> list[SuggestionRecord]:
        q = f"""
        SELECT {_SUGGESTION_COLUMNS} FROM suggested_questions
        WHERE displayed = true AND displayed_at >= $1 AND ($2::text IS NULL OR user_id = $2)
        """
        async with self.pool.acquire() as con:
            rows = await con.fetch(q, since, user_id)
        return [_suggestion(r) for r in rows]

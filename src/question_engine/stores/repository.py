from __future__ import annotations

from datetime import datetime
from typing import Protocol

from question_engine.models import (
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


class ResearchRepository(Protocol):
    """Relational store as seen by the suggestion engine.

    Read methods feed the generators; write methods cover the suggested
    question lifecycle (persist, feedback flags, expiry).
    """

    # --- profile & history ---

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def get_profile(self, user_id: str) -> ResearchProfile | None: ...

    async def recent_queries(
        self, user_id: str, *, limit: int, completed_only: bool = True
    ) -> list[QueryRecord]: ...

    async def all_query_texts(self, user_id: str) -> list[str]: ...

    async def query_timestamps(self, user_id: str, *, since: datetime) -> list[datetime]: ...

    async def important_responses(self, user_id: str, *, limit: int) -> list[ImportantResponse]: ...

    async def active_projects(self, user_id: str, *, limit: int = 5) -> list[Project]: ...

    async def open_goals(self, user_id: str, *, limit: int = 5) -> list[Goal]: ...

    async def team_activity(
        self, department: str, *, since: datetime, limit: int = 10
    ) -> list[TeamActivity]: ...

    async def knowledge_gaps(self, user_id: str, *, limit: int = 5) -> list[str]: ...

    async def record_gap(
        self, user_id: str, *, concept: str, related: list[str], score: float, reasoning: str
    ) -> None: ...

    async def peer_researchers(
        self, user_id: str, *, department: str | None, institution: str | None, query_limit: int = 20
    ) -> list[PeerResearcher]: ...

    async def set_similar_researchers(self, user_id: str, peer_ids: list[str]) -> None: ...

    async def positive_queries(
        self, user_id: str, *, since: datetime, limit: int = 10
    ) -> list[QueryRecord]: ...

    async def trending_queries(
        self, *, since: datetime, department: str | None = None, limit: int = 50
    ) -> list[QueryRecord]: ...

    # --- suggested questions ---

    async def create_suggestions(self, records: list[SuggestionRecord]) -> int: ...

    async def active_suggestion_texts(self, user_id: str, *, now: datetime) -> set[str]: ...

    async def delete_expired(self, *, now: datetime) -> int: ...

    async def get_suggestion(self, suggestion_id: str) -> SuggestionRecord | None: ...

    async def mark_displayed(self, user_id: str, questions: list[str], *, at: datetime) -> int: ...

    async def mark_clicked(self, suggestion_id: str, *, at: datetime) -> None: ...

    async def mark_dismissed(self, suggestion_id: str, *, at: datetime) -> None: ...

    async def mark_executed(self, user_id: str, question: str, query_id: str, *, at: datetime) -> bool: ...

    async def displayed_suggestions(
        self, *, since: datetime, user_id: str | None = None
    ) -> list[SuggestionRecord]: ...

"""Tests for suggestion feedback tracking."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, FakeRepository
from question_engine.errors import ForbiddenSuggestionError, SuggestionNotFoundError
from question_engine.feedback import FeedbackTracker


class _UnwritableRepository(FakeRepository):
    async def mark_displayed(self, user_id, questions, *, at):
        raise ConnectionError("database unavailable")


class TestClicksAndDismissals:
    @pytest.mark.asyncio
    async def test_click_marks_row(self, repo) -> None:
        rec = repo.add_suggestion(user_id="u1")
        await FeedbackTracker(repo).track_click("u1", rec.id)
        assert repo.suggestions[rec.id].clicked
        assert repo.suggestions[rec.id].clicked_at is not None

    @pytest.mark.asyncio
    async def test_dismiss_marks_row(self, repo) -> None:
        rec = repo.add_suggestion(user_id="u1")
        await FeedbackTracker(repo).track_dismiss("u1", rec.id)
        assert repo.suggestions[rec.id].dismissed

    @pytest.mark.asyncio
    async def test_unknown_id(self, repo) -> None:
        with pytest.raises(SuggestionNotFoundError):
            await FeedbackTracker(repo).track_click("u1", "missing")

    @pytest.mark.asyncio
    async def test_other_users_suggestion(self, repo) -> None:
        rec = repo.add_suggestion(user_id="u2")
        tracker = FeedbackTracker(repo)
        with pytest.raises(ForbiddenSuggestionError):
            await tracker.track_click("u1", rec.id)
        with pytest.raises(ForbiddenSuggestionError):
            await tracker.track_dismiss("u1", rec.id)
        assert not repo.suggestions[rec.id].clicked
        assert not repo.suggestions[rec.id].dismissed


class TestDisplayed:
    @pytest.mark.asyncio
    async def test_marks_matching_rows_once(self, repo) -> None:
        a = repo.add_suggestion(user_id="u1", question="A?")
        b = repo.add_suggestion(user_id="u1", question="B?")
        tracker = FeedbackTracker(repo)
        assert await tracker.mark_displayed("u1", ["A?"]) == 1
        assert await tracker.mark_displayed("u1", ["A?", "B?"]) == 1
        assert repo.suggestions[a.id].displayed and repo.suggestions[b.id].displayed

    @pytest.mark.asyncio
    async def test_best_effort(self) -> None:
        assert await FeedbackTracker(_UnwritableRepository()).mark_displayed("u1", ["A?"]) == 0

    @pytest.mark.asyncio
    async def test_nothing_to_mark(self, repo) -> None:
        assert await FeedbackTracker(repo).mark_displayed("u1", []) == 0


class TestExecution:
    @pytest.mark.asyncio
    async def test_links_most_recent_click(self, repo) -> None:
        older = repo.add_suggestion(user_id="u1", question="Q?", clicked=True, clicked_at=NOW - timedelta(hours=2))
        newer = repo.add_suggestion(user_id="u1", question="Q?", clicked=True, clicked_at=NOW - timedelta(minutes=1))
        assert await FeedbackTracker(repo).track_execution("u1", "Q?", "query-9") is True
        assert repo.suggestions[newer.id].executed_query_id == "query-9"
        assert repo.suggestions[newer.id].executed_at is not None
        assert repo.suggestions[older.id].executed_at is None
        assert not repo.suggestions[older.id].executed

    @pytest.mark.asyncio
    async def test_unclicked_suggestion_not_linked(self, repo) -> None:
        repo.add_suggestion(user_id="u1", question="Q?")
        assert await FeedbackTracker(repo).track_execution("u1", "Q?", "query-9") is False

"""Tests for suggestion analytics and the feedback loop."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW
from question_engine.analytics import QuestionAnalytics, compute_metrics, feedback_from
from question_engine.models import QuestionCategory, SourceType

SHOWN = NOW - timedelta(hours=1)


@pytest.fixture
def seeded(repo):
    repo.add_suggestion(user_id="u1", category="GAP", source_type="PATTERN", displayed=True, displayed_at=SHOWN,
                        clicked=True, clicked_at=SHOWN + timedelta(seconds=30), executed=True, overall_score=0.8)
    repo.add_suggestion(user_id="u1", category="GAP", source_type="PATTERN", displayed=True, displayed_at=SHOWN,
                        clicked=True, clicked_at=SHOWN + timedelta(seconds=90), overall_score=0.6)
    repo.add_suggestion(user_id="u2", category="TREND", source_type="LLM_GENERATED", displayed=True,
                        displayed_at=SHOWN, dismissed=True, overall_score=0.4)
    repo.add_suggestion(user_id="u2", category="TREND", source_type="LLM_GENERATED", displayed=True,
                        displayed_at=SHOWN, overall_score=0.4)
    # never shown
    repo.add_suggestion(user_id="u1", category="BRIDGING")
    # shown outside the default window
    repo.add_suggestion(user_id="u1", category="BRIDGING", displayed=True, displayed_at=NOW - timedelta(days=60),
                        clicked=True, clicked_at=NOW - timedelta(days=60))
    return repo


class TestPerformance:
    @pytest.mark.asyncio
    async def test_rates(self, seeded) -> None:
        m = await QuestionAnalytics(seeded).analyze_performance()
        assert (m.total_displayed, m.total_clicked, m.total_executed, m.total_dismissed) == (4, 2, 1, 1)
        assert m.click_through_rate == 0.5
        assert m.execution_rate == 0.25
        assert m.dismissal_rate == 0.25
        assert m.avg_time_to_click == 60.0
        assert m.by_category["GAP"].ctr == 1.0
        assert m.by_category["TREND"].ctr == 0.0
        assert m.by_source["PATTERN"].avg_score == pytest.approx(0.7)

    def test_empty(self) -> None:
        m = compute_metrics([])
        assert m.click_through_rate == 0.0
        assert m.by_category == {}

    @pytest.mark.asyncio
    async def test_top_categories(self, seeded) -> None:
        top = await QuestionAnalytics(seeded).top_categories(limit=1)
        assert [c.category for c in top] == [QuestionCategory.GAP]
        assert top[0].score == pytest.approx(0.75)


class TestFeedbackLoop:
    @pytest.mark.asyncio
    async def test_priorities(self, seeded) -> None:
        loop = await QuestionAnalytics(seeded).feedback_loop()
        assert loop.prioritize_categories == [QuestionCategory.GAP, QuestionCategory.TREND]
        assert loop.deprioritize_categories == [QuestionCategory.TREND]
        assert loop.prioritize_sources == [SourceType.PATTERN, SourceType.LLM_GENERATED]
        assert loop.suggestions == ["GAP questions perform well - generate more"]

    def test_poor_engagement_suggestions(self, repo) -> None:
        for _ in range(3):
            repo.add_suggestion(user_id="u1", displayed=True, displayed_at=SHOWN, dismissed=True)
        loop = feedback_from(compute_metrics(list(repo.suggestions.values())))
        assert loop.suggestions == [
            "Low CTR - Consider making questions more specific and actionable",
            "Low execution rate - Questions may not align well with user intent",
            "High dismissal rate - Review question relevance and diversity",
        ]


class TestUserMetricsAndReport:
    @pytest.mark.asyncio
    async def test_user_metrics_cover_all_time(self, seeded) -> None:
        um = await QuestionAnalytics(seeded).user_metrics("u1")
        assert um.total_suggestions == 3
        assert um.clicked == 3
        assert um.executed == 1
        assert um.favorite_categories == [QuestionCategory.GAP, QuestionCategory.BRIDGING]

    @pytest.mark.asyncio
    async def test_report(self, seeded) -> None:
        report = await QuestionAnalytics(seeded).render_report(30)
        assert report.startswith("# Question Suggestion Analytics Report\n")
        assert "**Period:** Last 30 days" in report
        assert "- Click-Through Rate: 50.0%" in report
        assert "- **GAP**: CTR 100.0%, Execution 50.0%" in report
        assert "- **PATTERN**: CTR 100.0%, Avg Score 0.70" in report
        assert "- GAP questions perform well - generate more" in report

    @pytest.mark.asyncio
    async def test_cleanup(self, repo) -> None:
        repo.add_suggestion(user_id="u1", expires_at=NOW - timedelta(seconds=1))
        assert await QuestionAnalytics(repo).cleanup_expired() == 1

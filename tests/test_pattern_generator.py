"""Tests for pattern classification and templated suggestions."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW
from question_engine.generators.pattern import WEEKDAYS, PatternGenerator, PatternType, classify
from question_engine.generators.text import extract_keywords, infer_category, is_comparison, jaccard
from question_engine.models import QueryRecord, QuestionCategory, ResearchProfile


def _queries(*texts: str) -> list[QueryRecord]:
    """Newest first, like the repository returns them."""
    return [
        QueryRecord(id=f"q{i}", user_id="u1", text=t, created_at=NOW - timedelta(hours=i))
        for i, t in enumerate(texts)
    ]


class TestTextHelpers:
    def test_extract_keywords_filters_short_words_and_stopwords(self) -> None:
        assert extract_keywords("What is the role of T-cell exhaustion in tumors?") == [
            "role",
            "t-cell",
            "exhaustion",
            "tumors",
        ]

    def test_extract_keywords_caps_at_five(self) -> None:
        assert len(extract_keywords("alpha bravo charlie delta echoes foxtrot golfing")) == 5

    def test_jaccard(self) -> None:
        assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
        assert jaccard([], []) == 0.0

    def test_is_comparison_uses_substrings(self) -> None:
        assert is_comparison(["CAR-T vs TCR therapy"])
        assert is_comparison(["Which is better for melanoma?"])
        assert not is_comparison(["CRISPR screens in organoids"])

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Compare PD-1 and CTLA-4", QuestionCategory.COMPARISON),
            ("Latest single-cell methods", QuestionCategory.TREND),
            ("What causes T cell exhaustion?", QuestionCategory.DEEPENING),
            ("Patient outcomes for CAR-T", QuestionCategory.PRACTICAL),
            ("Link between microbiome and immunity", QuestionCategory.BRIDGING),
            ("Organoid culture protocols", QuestionCategory.EXPLORATION),
        ],
    )
    def test_infer_category(self, text: str, expected: QuestionCategory) -> None:
        assert infer_category(text) is expected


class TestClassify:
    def test_no_history_is_new_user(self) -> None:
        assert classify([]).type is PatternType.NEW_USER

    def test_high_overlap_is_deep_dive(self) -> None:
        p = classify(_queries("exhaustion markers tumors", "exhaustion markers tumors"))
        assert p.type is PatternType.DEEP_DIVE
        assert p.focus == "exhaustion"

    def test_comparison_wins_over_deep_dive(self) -> None:
        """Comparison wording is checked before keyword overlap."""
        p = classify(_queries("exhaustion markers versus tumors", "exhaustion markers versus tumors"))
        assert p.type is PatternType.COMPARISON

    def test_low_overlap_is_exploration(self) -> None:
        p = classify(_queries("microbiome diversity", "organoid protocols"))
        assert p.type is PatternType.EXPLORATION

    def test_single_query_is_exploration(self) -> None:
        assert classify(_queries("microbiome diversity")).type is PatternType.EXPLORATION

    def test_medium_overlap_is_problem_solving(self) -> None:
        # {resistance, melanoma, immunotherapy} vs {resistance, melanoma, biopsy}: 2/4
        p = classify(_queries("resistance melanoma immunotherapy", "resistance melanoma biopsy"))
        assert p.type is PatternType.PROBLEM_SOLVING

    def test_only_two_most_recent_queries_drive_overlap(self) -> None:
        p = classify(_queries("alpha bravo", "alpha bravo", "charlie delta", "echoes foxtrot"))
        assert p.type is PatternType.DEEP_DIVE
        assert len(p.queries) == 4


class TestPatternGenerator:
    @pytest.mark.asyncio
    async def test_deep_dive_templates(self, repo) -> None:
        repo.add_user("u1")
        repo.add_query("u1", "exhaustion markers tumors", age=timedelta(hours=2))
        q = repo.add_query("u1", "exhaustion markers tumors")
        out = await PatternGenerator(repo).generate("u1")
        assert [i.score for i in out] == [0.85, 0.8, 0.75, 0.7]
        assert [i.category for i in out] == [
            QuestionCategory.DEEPENING,
            QuestionCategory.TREND,
            QuestionCategory.PRACTICAL,
            QuestionCategory.EXPLORATION,
        ]
        assert out[0].question == "What are the current limitations of exhaustion approaches?"
        assert q.id in out[0].source_query_ids

    @pytest.mark.asyncio
    async def test_comparison_templates_use_first_keywords(self, repo) -> None:
        repo.add_query("u1", "pembrolizumab versus nivolumab", age=timedelta(hours=1))
        repo.add_query("u1", "ipilimumab toxicity")
        out = await PatternGenerator(repo).generate("u1")
        assert out[0].question == "How do ipilimumab and pembrolizumab compare in terms of clinical efficacy?"
        assert out[0].category is QuestionCategory.COMPARISON

    @pytest.mark.asyncio
    async def test_new_user_gets_department_starters(self, repo) -> None:
        repo.add_user("u1", department="Cancer Research")
        out = await PatternGenerator(repo).generate("u1")
        assert len(out) == 4
        assert out[0].score == 0.9
        assert all(i.pattern_type == "new_user_starter" for i in out)

    @pytest.mark.asyncio
    async def test_unknown_department_falls_back_to_general(self, repo) -> None:
        repo.add_user("u1", department="Astrophysics")
        out = await PatternGenerator(repo).generate("u1")
        assert out[0].question == "What are the most highly cited papers in my research area this year?"

    @pytest.mark.asyncio
    async def test_new_user_with_interests_gets_interest_questions(self, repo) -> None:
        repo.add_user("u1", department="Cancer Research",
                      profile=ResearchProfile(user_id="u1", primary_interests=["glioma", "CAR-T"]))
        out = await PatternGenerator(repo).generate("u1")
        assert [i.question for i in out] == [
            "What are the latest developments in glioma?",
            "What are the latest developments in CAR-T?",
        ]
        assert all(i.category is QuestionCategory.TREND and i.score == 0.9 for i in out)

    @pytest.mark.asyncio
    async def test_repository_failure_yields_nothing(self, repo) -> None:
        repo.fail_reads = True
        assert await PatternGenerator(repo).generate("u1") == []

    @pytest.mark.asyncio
    async def test_temporal_patterns(self, repo) -> None:
        for _ in range(20):
            repo.add_query("u1", "q")
        repo.add_query("u1", "q", age=timedelta(hours=3))
        tp = await PatternGenerator(repo).analyze_temporal_patterns("u1")
        # 21 queries over 30 days is 0.7 per day
        assert tp.query_frequency == "medium"
        assert tp.peak_hours[0] == NOW.hour
        assert tp.weekly_pattern[WEEKDAYS[NOW.weekday()]] >= 20
        assert sum(tp.weekly_pattern.values()) == 21

"""Tests for shared enums and score models."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from conftest import NOW
from question_engine.models import (
    QuestionCategory,
    RankedQuestion,
    ScoreBreakdown,
    SourceType,
    SuggestionRecord,
)


class TestEnums:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("gap", QuestionCategory.GAP),
            (" Trend ", QuestionCategory.TREND),
            ("TRENDING", QuestionCategory.TREND),
            ("nonsense", QuestionCategory.EXPLORATION),
            (None, QuestionCategory.EXPLORATION),
            (QuestionCategory.BRIDGING, QuestionCategory.BRIDGING),
        ],
    )
    def test_category_parse(self, raw, expected) -> None:
        assert QuestionCategory.parse(raw) is expected

    def test_source_parse(self) -> None:
        assert SourceType.parse("pattern") is SourceType.PATTERN
        assert SourceType.parse("") is SourceType.HYBRID
        assert SourceType.parse("other") is SourceType.HYBRID


class TestScores:
    def test_overall_is_weighted_sum(self) -> None:
        s = ScoreBreakdown(relevance=1.0, novelty=0.0, actionability=0.5, impact=1.0, diversity=0.0)
        assert s.overall() == pytest.approx(0.35 + 0.10 + 0.15)

    def test_perfect_and_zero(self) -> None:
        assert ScoreBreakdown(relevance=1, novelty=1, actionability=1, impact=1).overall() == pytest.approx(1.0)
        zero = ScoreBreakdown(relevance=0, novelty=0, actionability=0, impact=0, diversity=0)
        assert zero.overall() == 0.0

    def test_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScoreBreakdown(relevance=1.5, novelty=0, actionability=0, impact=0)


class TestRecords:
    def test_from_ranked(self) -> None:
        scores = ScoreBreakdown(relevance=0.9, novelty=0.8, actionability=0.7, impact=0.6, diversity=0.5)
        q = RankedQuestion(
            question="Q?",
            category=QuestionCategory.GAP,
            scores=scores,
            overallScore=scores.overall(),
            sourceType=SourceType.COLLABORATIVE,
            sourceIds=["x"],
        )
        rec = SuggestionRecord.from_ranked("u1", q, generated_at=NOW, expires_at=NOW + timedelta(hours=24))
        assert rec.relevance_score == 0.9
        assert rec.diversity_score == 0.5
        assert rec.overall_score == q.overall_score
        assert rec.source_type is SourceType.COLLABORATIVE
        assert not rec.is_expired(NOW)
        assert rec.is_expired(NOW + timedelta(hours=24))

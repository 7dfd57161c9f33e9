"""Click-through and execution analytics over persisted suggestions."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from .models import QuestionCategory, SourceType, SuggestionRecord
from .persistence import utcnow
from .stores.repository import ResearchRepository

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CategoryMetrics(BaseModel):
    displayed: int = 0
    clicked: int = 0
    executed: int = 0
    dismissed: int = 0
    ctr: float = 0.0
    execution_rate: float = 0.0


class SourceMetrics(BaseModel):
    displayed: int = 0
    clicked: int = 0
    executed: int = 0
    avg_score: float = 0.0
    ctr: float = 0.0


class QuestionMetrics(BaseModel):
    total_displayed: int = 0
    total_clicked: int = 0
    total_dismissed: int = 0
    total_executed: int = 0
    click_through_rate: float = 0.0
    execution_rate: float = 0.0
    dismissal_rate: float = 0.0
    avg_time_to_click: float = 0.0  # seconds
    by_category: dict[str, CategoryMetrics] = Field(default_factory=dict)
    by_source: dict[str, SourceMetrics] = Field(default_factory=dict)


class CategoryScore(BaseModel):
    category: QuestionCategory
    score: float
    metrics: CategoryMetrics


class FeedbackLoop(BaseModel):
    prioritize_categories: list[QuestionCategory] = Field(default_factory=list)
    deprioritize_categories: list[QuestionCategory] = Field(default_factory=list)
    prioritize_sources: list[SourceType] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class UserMetrics(BaseModel):
    total_suggestions: int = 0
    clicked: int = 0
    executed: int = 0
    favorite_categories: list[QuestionCategory] = Field(default_factory=list)


def _rate(n: int, d: int) -> float:
    return n / d if d else 0.0


def compute_metrics(rows: list[SuggestionRecord]) -> QuestionMetrics:
    total = len(rows)
    m = QuestionMetrics(
        total_displayed=total,
        total_clicked=sum(r.clicked for r in rows),
        total_dismissed=sum(r.dismissed for r in rows),
        total_executed=sum(r.executed for r in rows),
    )
    m.click_through_rate = _rate(m.total_clicked, total)
    m.execution_rate = _rate(m.total_executed, total)
    m.dismissal_rate = _rate(m.total_dismissed, total)

    waits = [
        (r.clicked_at - r.displayed_at).total_seconds()
        for r in rows
        if r.clicked and r.clicked_at and r.displayed_at
    ]
    if waits:
        m.avg_time_to_click = sum(waits) / len(waits)

    by_cat: dict[str, list[SuggestionRecord]] = {}
    by_src: dict[str, list[SuggestionRecord]] = {}
    for r in rows:
        by_cat.setdefault(r.category.value, []).append(r)
        by_src.setdefault(r.source_type.value, []).append(r)

    for cat, items in by_cat.items():
        n = len(items)
        clicked = sum(r.clicked for r in items)
        executed = sum(r.executed for r in items)
        m.by_category[cat] = CategoryMetrics(
            displayed=n,
            clicked=clicked,
            executed=executed,
            dismissed=sum(r.dismissed for r in items),
            ctr=_rate(clicked, n),
            execution_rate=_rate(executed, n),
        )
    for src, items in by_src.items():
        n = len(items)
        clicked = sum(r.clicked for r in items)
        m.by_source[src] = SourceMetrics(
            displayed=n,
            clicked=clicked,
            executed=sum(r.executed for r in items),
            avg_score=sum(r.overall_score for r in items) / n,
            ctr=_rate(clicked, n),
        )
    return m


def category_scores(m: QuestionMetrics) -> list[CategoryScore]:
    out = [
        CategoryScore(category=QuestionCategory.parse(cat), score=0.5 * cm.ctr + 0.5 * cm.execution_rate, metrics=cm)
        for cat, cm in m.by_category.items()
    ]
    out.sort(key=lambda c: c.score, reverse=True)
    return out


def feedback_from(m: QuestionMetrics) -> FeedbackLoop:
    cats = category_scores(m)
    sources = sorted(
        m.by_source.items(), key=lambda kv: 0.4 * kv[1].ctr + 0.6 * kv[1].avg_score, reverse=True
    )
    loop = FeedbackLoop(
        prioritize_categories=[c.category for c in cats[:3]],
        deprioritize_categories=[c.category for c in cats[-2:] if c.score < 0.1],
        prioritize_sources=[SourceType.parse(s) for s, _ in sources[:2]],
    )
    if m.click_through_rate < 0.2:
        loop.suggestions.append("Low CTR - Consider making questions more specific and actionable")
    if m.execution_rate < 0.1:
        loop.suggestions.append("Low execution rate - Questions may not align well with user intent")
    if m.dismissal_rate > 0.3:
        loop.suggestions.append("High dismissal rate - Review question relevance and diversity")
    if cats and cats[0].score > 0.5:
        loop.suggestions.append(f"{cats[0].category.value} questions perform well - generate more")
    return loop


class QuestionAnalytics:
    def __init__(self, repo: ResearchRepository):
        self.repo = repo

    async def analyze_performance(self, days: int = 30) -> QuestionMetrics:
        rows = await self.repo.displayed_suggestions(since=utcnow() - timedelta(days=days))
        return compute_metrics(rows)

    async def top_categories(self, limit: int = 5, *, days: int = 30) -> list[CategoryScore]:
        return category_scores(await self.analyze_performance(days))[:limit]

    async def feedback_loop(self, *, days: int = 30) -> FeedbackLoop:
        return feedback_from(await self.analyze_performance(days))

    async def user_metrics(self, user_id: str) -> UserMetrics:
        rows = await self.repo.displayed_suggestions(since=EPOCH, user_id=user_id)
        clicks = Counter(r.category for r in rows if r.clicked)
        return UserMetrics(
            total_suggestions=len(rows),
            clicked=sum(r.clicked for r in rows),
            executed=sum(r.executed for r in rows),
            favorite_categories=[c for c, _ in clicks.most_common(3)],
        )

    async def cleanup_expired(self) -> int:
        return await self.repo.delete_expired(now=utcnow())

    async def render_report(self, days: int = 30) -> str:
        m = await self.analyze_performance(days)
        loop = feedback_from(m)

        lines = [
            "# Question Suggestion Analytics Report",
            "",
            f"**Period:** Last {days} days",
            "",
            "## Overview",
            f"- Total Displayed: {m.total_displayed}",
            f"- Total Clicked: {m.total_clicked}",
            f"- Total Executed: {m.total_executed}",
            f"- Click-Through Rate: {m.click_through_rate * 100:.1f}%",
            f"- Execution Rate: {m.execution_rate * 100:.1f}%",
            f"- Dismissal Rate: {m.dismissal_rate * 100:.1f}%",
            "",
            "## Category Performance",
        ]
        for cat, cm in sorted(m.by_category.items(), key=lambda kv: kv[1].ctr, reverse=True):
            lines.append(f"- **{cat}**: CTR {cm.ctr * 100:.1f}%, Execution {cm.execution_rate * 100:.1f}%")
        lines += ["", "## Source Performance"]
        for src, sm in sorted(m.by_source.items(), key=lambda kv: kv[1].ctr, reverse=True):
            lines.append(f"- **{src}**: CTR {sm.ctr * 100:.1f}%, Avg Score {sm.avg_score:.2f}")
        lines += ["", "## Recommendations"]
        lines += [f"- {s}" for s in loop.suggestions]
        return "\n".join(lines) + "\n"

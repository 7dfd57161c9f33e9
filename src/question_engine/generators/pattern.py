from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from question_engine.constants import (
    DEEP_DIVE_OVERLAP,
    EXPLORATION_OVERLAP,
    PATTERN_HISTORY_SIZE,
    PATTERN_WINDOW,
)
from question_engine.models import QueryRecord, QuestionCategory, SourceType
from question_engine.stores.repository import ResearchRepository

from .text import extract_keywords, is_comparison, jaccard

logger = logging.getLogger(__name__)

C = QuestionCategory

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class PatternType(str, Enum):
    DEEP_DIVE = "deep_dive"
    COMPARISON = "comparison"
    EXPLORATION = "exploration"
    PROBLEM_SOLVING = "problem_solving"
    NEW_USER = "new_user"


@dataclass(slots=True)
class PatternInsight:
    question: str
    reasoning: str
    score: float
    category: QuestionCategory
    pattern_type: str
    source_query_ids: list[str] = field(default_factory=list)
    source_type: SourceType = SourceType.PATTERN


@dataclass(slots=True)
class QueryPattern:
    type: PatternType
    topics: list[list[str]]
    queries: list[QueryRecord]
    focus: str | None = None


@dataclass(slots=True)
class TemporalPattern:
    query_frequency: str
    peak_hours: list[int]
    weekly_pattern: dict[str, int]


# (question, reasoning, score, category)
_Template = tuple[str, str, float, QuestionCategory]

STARTER_QUESTIONS: dict[str, list[_Template]] = {
    "Cancer Research": [
        (
            "What are the latest CAR-T cell therapy breakthroughs in solid tumors?",
            "CAR-T is revolutionizing cancer treatment. Understanding latest advances is essential.",
            0.9,
            C.TREND,
        ),
        (
            "How effective are checkpoint inhibitors in different cancer types?",
            "Checkpoint inhibitors are a cornerstone of modern immunotherapy.",
            0.85,
            C.EXPLORATION,
        ),
        (
            "What are emerging biomarkers for immunotherapy response prediction?",
            "Predicting treatment response is critical for personalized medicine.",
            0.85,
            C.PRACTICAL,
        ),
        (
            "How can we overcome tumor microenvironment barriers to therapy?",
            "The tumor microenvironment is a major obstacle to effective cancer treatment.",
            0.8,
            C.DEEPENING,
        ),
    ],
    "General": [
        (
            "What are the most highly cited papers in my research area this year?",
            "High-impact papers shape the direction of the field.",
            0.8,
            C.TREND,
        ),
        (
            "What conferences should I attend in the next 6 months?",
            "Conferences are crucial for networking and staying current.",
            0.75,
            C.PRACTICAL,
        ),
        (
            "What are the emerging trends in cancer biology research?",
            "Understanding trends helps identify promising research directions.",
            0.75,
            C.TREND,
        ),
    ],
}


def classify(queries: list[QueryRecord]) -> QueryPattern:
    """Classify the user's most recent queries (newest first) into an interaction pattern.

    Comparison wording wins over everything else. Otherwise the keyword
    overlap between the two most recent queries decides.
    """
    if not queries:
        return QueryPattern(type=PatternType.NEW_USER, topics=[], queries=[])

    recent = queries[:PATTERN_WINDOW]
    topics = [extract_keywords(q.text) for q in recent]
    overlap = jaccard(topics[0], topics[1]) if len(topics) >= 2 else 0.0
    focus = topics[0][0] if topics and topics[0] else None

    if is_comparison(q.text for q in recent):
        kind = PatternType.COMPARISON
    elif overlap > DEEP_DIVE_OVERLAP:
        kind = PatternType.DEEP_DIVE
    elif overlap < EXPLORATION_OVERLAP:
        kind = PatternType.EXPLORATION
    else:
        kind = PatternType.PROBLEM_SOLVING
    return QueryPattern(type=kind, topics=topics, queries=recent, focus=focus)


def _first(topics: list[list[str]], i: int) -> str | None:
    if i < len(topics) and topics[i]:
        return topics[i][0]
    return None


class PatternGenerator:
    """Suggestions templated from how the user has been querying lately."""

    name = "pattern"

    def __init__(self, repo: ResearchRepository):
        self.repo = repo

    async def generate(self, user_id: str) -> list[PatternInsight]:
        try:
            queries = await self.repo.recent_queries(user_id, limit=PATTERN_HISTORY_SIZE)
            if not queries:
                return await self.new_user_questions(user_id)
            return self.questions_for(classify(queries))
        except Exception as e:
            logger.warning("Pattern generator failed for user=%s: %s", user_id, e)
            return []

    def questions_for(self, pattern: QueryPattern) -> list[PatternInsight]:
        ids = [q.id for q in pattern.queries]
        if pattern.type is PatternType.DEEP_DIVE:
            templates = self._deep_dive(pattern)
        elif pattern.type is PatternType.COMPARISON:
            templates = self._comparison(pattern)
        elif pattern.type is PatternType.EXPLORATION:
            templates = self._exploration(pattern)
        elif pattern.type is PatternType.PROBLEM_SOLVING:
            templates = self._problem_solving(pattern)
        else:
            return []
        return [
            PatternInsight(
                question=q,
                reasoning=r,
                score=s,
                category=c,
                pattern_type=pattern.type.value,
                source_query_ids=list(ids),
            )
            for q, r, s, c in templates
        ]

    @staticmethod
    def _deep_dive(p: QueryPattern) -> list[_Template]:
        topic = p.focus or "your research area"
        return [
            (
                f"What are the current limitations of {topic} approaches?",
                f"You've been exploring {topic} in depth. Understanding limitations is key to advancing the field.",
                0.85,
                C.DEEPENING,
            ),
            (
                f"How has {topic} research evolved in the last 2 years?",
                f"You're focused on {topic}. Tracking recent developments will reveal emerging trends.",
                0.8,
                C.TREND,
            ),
            (
                f"What are the clinical applications of {topic}?",
                f"Deep knowledge of {topic} enables exploration of practical applications.",
                0.75,
                C.PRACTICAL,
            ),
            (
                f"Which research groups are leading {topic} development?",
                f"Your deep interest in {topic} suggests tracking key contributors would be valuable.",
                0.7,
                C.EXPLORATION,
            ),
        ]

    @staticmethod
    def _comparison(p: QueryPattern) -> list[_Template]:
        a = _first(p.topics, 0) or "approach A"
        b = _first(p.topics, 1) or "approach B"
        return [
            (
                f"How do {a} and {b} compare in terms of clinical efficacy?",
                "You're comparing different approaches. Clinical outcomes are the ultimate test.",
                0.85,
                C.COMPARISON,
            ),
            (
                f"What are the cost-benefit tradeoffs between {a} and {b}?",
                "Practical implementation requires understanding economic factors beyond efficacy.",
                0.8,
                C.PRACTICAL,
            ),
            (
                f"Can {a} and {b} be combined for synergistic effects?",
                "Your comparative analysis suggests exploring combination strategies could be valuable.",
                0.75,
                C.EXPLORATION,
            ),
            (
                f"Which patient populations benefit most from {a} vs {b}?",
                "Personalized medicine requires understanding which approach works best for whom.",
                0.7,
                C.PRACTICAL,
            ),
        ]

    @staticmethod
    def _exploration(p: QueryPattern) -> list[_Template]:
        first = _first(p.topics, 0) or "your recent topics"
        second = _first(p.topics, 1) or "related fields"
        return [
            (
                f"What connects {first} and {second}?",
                "You're exploring diverse topics. Finding connections could reveal new research directions.",
                0.85,
                C.BRIDGING,
            ),
            (
                f"What's the current state of the art in {first}?",
                "Your broad exploration would benefit from understanding the frontier in each area.",
                0.75,
                C.TREND,
            ),
            (
                "How do these different areas inform each other?",
                "Exploring multiple fields creates opportunity for cross-pollination of ideas.",
                0.7,
                C.BRIDGING,
            ),
        ]

    @staticmethod
    def _problem_solving(p: QueryPattern) -> list[_Template]:
        topic = p.focus or "this problem"
        return [
            (
                f"What are alternative approaches to solving {topic}?",
                "You seem focused on a specific challenge. Exploring alternatives often leads to breakthroughs.",
                0.85,
                C.EXPLORATION,
            ),
            (
                f"What barriers have prevented progress on {topic}?",
                "Understanding obstacles is crucial when working on specific problems.",
                0.8,
                C.DEEPENING,
            ),
            (
                "How have others successfully addressed similar challenges?",
                "Learning from analogous problems can provide valuable insights.",
                0.75,
                C.EXPLORATION,
            ),
        ]

    async def new_user_questions(self, user_id: str) -> list[PatternInsight]:
        user = await self.repo.get_user(user_id)
        profile = await self.repo.get_profile(user_id)

        interests = profile.primary_interests if profile else []
        if interests:
            return [
                PatternInsight(
                    question=f"What are the latest developments in {interest}?",
                    reasoning=f"This aligns with your stated research interest in {interest}.",
                    score=0.9,
                    category=C.TREND,
                    pattern_type="new_user_interest",
                )
                for interest in interests
            ]

        department = (user.department if user else None) or "General"
        templates = STARTER_QUESTIONS.get(department, STARTER_QUESTIONS["General"])
        return [
            PatternInsight(question=q, reasoning=r, score=s, category=c, pattern_type="new_user_starter")
            for q, r, s, c in templates
        ]

    async def analyze_temporal_patterns(self, user_id: str, *, days: int = 30) -> TemporalPattern:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        stamps = await self.repo.query_timestamps(user_id, since=since)

        per_day = len(stamps) / days
        if per_day > 2:
            frequency = "high"
        elif per_day > 0.5:
            frequency = "medium"
        else:
            frequency = "low"

        hours = Counter(ts.hour for ts in stamps)
        weekly = dict.fromkeys(WEEKDAYS, 0)
        for ts in stamps:
            weekly[WEEKDAYS[ts.weekday()]] += 1

        return TemporalPattern(
            query_frequency=frequency,
            peak_hours=[h for h, _ in hours.most_common(3)],
            weekly_pattern=weekly,
        )

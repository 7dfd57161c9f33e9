from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .constants import DEFAULT_IMPACT, SCORE_WEIGHTS


class QuestionCategory(str, Enum):
    CONTINUATION = "CONTINUATION"
    DEEPENING = "DEEPENING"
    TREND = "TREND"
    GAP = "GAP"
    PRACTICAL = "PRACTICAL"
    BRIDGING = "BRIDGING"
    EXPLORATION = "EXPLORATION"
    COMPARISON = "COMPARISON"

    @classmethod
    def parse(cls, value: Any) -> "QuestionCategory":
        """Map free text onto a category; unknown values become EXPLORATION."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().upper()
        if key == "TRENDING":
            return cls.TREND
        try:
            return cls(key)
        except ValueError:
            return cls.EXPLORATION


class SourceType(str, Enum):
    KNOWLEDGE_GRAPH = "KNOWLEDGE_GRAPH"
    PATTERN = "PATTERN"
    LLM_GENERATED = "LLM_GENERATED"
    COLLABORATIVE = "COLLABORATIVE"
    HYBRID = "HYBRID"

    @classmethod
    def parse(cls, value: Any) -> "SourceType":
        """Map free text onto a source type; unknown values become HYBRID."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().upper()
        if key == "TRENDING":
            return cls.COLLABORATIVE
        try:
            return cls(key)
        except ValueError:
            return cls.HYBRID


@dataclass(slots=True)
class Candidate:
    """Canonical, unscored suggestion produced by the formatter."""

    question: str
    category: QuestionCategory = QuestionCategory.EXPLORATION
    reasoning: str = ""
    base_score: float = DEFAULT_IMPACT
    source_type: SourceType = SourceType.HYBRID
    source_ids: list[str] = field(default_factory=list)


class ScoreBreakdown(BaseModel):
    relevance: float = Field(ge=0.0, le=1.0)
    novelty: float = Field(ge=0.0, le=1.0)
    actionability: float = Field(ge=0.0, le=1.0)
    impact: float = Field(ge=0.0, le=1.0)
    diversity: float = Field(default=1.0, ge=0.0, le=1.0)

    def overall(self) -> float:
        return (
            self.relevance * SCORE_WEIGHTS["relevance"]
            + self.novelty * SCORE_WEIGHTS["novelty"]
            + self.actionability * SCORE_WEIGHTS["actionability"]
            + self.impact * SCORE_WEIGHTS["impact"]
            + self.diversity * SCORE_WEIGHTS["diversity"]
        )


class RankedQuestion(BaseModel):
    question: str
    category: QuestionCategory
    reasoning: str = ""
    scores: ScoreBreakdown
    overall_score: float = Field(alias="overallScore")
    source_type: SourceType = Field(alias="sourceType")
    source_ids: list[str] = Field(default_factory=list, alias="sourceIds")

    model_config = ConfigDict(populate_by_name=True)

    def rescore(self) -> None:
        self.overall_score = self.scores.overall()


class SuggestionRecord(BaseModel):
    """Durable suggested-question row plus its feedback flags."""

    id: str | None = None
    user_id: str
    question: str
    rationale: str = ""
    category: QuestionCategory
    relevance_score: float
    novelty_score: float
    actionability_score: float
    impact_score: float
    diversity_score: float = 1.0
    overall_score: float
    source_type: SourceType
    source_ids: list[str] = Field(default_factory=list)
    generated_by: str = "orchestrator"
    generated_at: datetime
    expires_at: datetime

    displayed: bool = False
    displayed_at: datetime | None = None
    clicked: bool = False
    clicked_at: datetime | None = None
    dismissed: bool = False
    dismissed_at: datetime | None = None
    executed: bool = False
    executed_at: datetime | None = None
    executed_query_id: str | None = None

    @classmethod
    def from_ranked(
        cls, user_id: str, q: RankedQuestion, *, generated_at: datetime, expires_at: datetime
    ) -> "SuggestionRecord":
        return cls(
            user_id=user_id,
            question=q.question,
            rationale=q.reasoning,
            category=q.category,
            relevance_score=q.scores.relevance,
            novelty_score=q.scores.novelty,
            actionability_score=q.scores.actionability,
            impact_score=q.scores.impact,
            diversity_score=q.scores.diversity,
            overall_score=q.overall_score,
            source_type=q.source_type,
            source_ids=list(q.source_ids),
            generated_at=generated_at,
            expires_at=expires_at,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


# --- Read-side rows used to build generator context ---


@dataclass(slots=True)
class UserRecord:
    id: str
    name: str = ""
    department: str | None = None
    institution: str | None = None


@dataclass(slots=True)
class ResearchProfile:
    user_id: str
    primary_interests: list[str] = field(default_factory=list)
    secondary_interests: list[str] = field(default_factory=list)
    research_areas: list[str] = field(default_factory=list)
    techniques: list[str] = field(default_factory=list)
    computational_skills: list[str] = field(default_factory=list)
    expertise_level: str | None = None
    phd_focus: str | None = None
    years_in_field: int | None = None
    highest_degree: str | None = None

    @property
    def interests(self) -> list[str]:
        return [*self.primary_interests, *self.secondary_interests]


@dataclass(slots=True)
class QueryRecord:
    id: str
    user_id: str
    text: str
    created_at: datetime
    status: str = "COMPLETED"
    concepts: list[str] = field(default_factory=list)
    author_name: str = ""


@dataclass(slots=True)
class ImportantResponse:
    query_id: str
    summary: str
    doi: str | None = None
    concepts: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Project:
    title: str
    description: str | None = None
    status: str | None = None


@dataclass(slots=True)
class Goal:
    type: str
    title: str
    target_date: datetime | None = None


@dataclass(slots=True)
class TeamActivity:
    researcher: str
    topic: str


@dataclass(slots=True)
class PeerResearcher:
    user: UserRecord
    profile: ResearchProfile | None
    query_texts: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UserSnapshot:
    """Scoring input: who the user is interested in and what they asked lately."""

    user_id: str
    interests: list[str] = field(default_factory=list)
    recent_queries: list[str] = field(default_factory=list)

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from question_engine.constants import (
    LLM_COLD_START_COUNT,
    LLM_COLD_START_MAX_TOKENS,
    LLM_COLD_START_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_QUESTION_COUNT,
    LLM_TEMPERATURE,
    PRIORITY_SCORES,
)
from question_engine.errors import GenerationError, LLMParseError
from question_engine.llm.client import LLMProvider
from question_engine.llm.parsing import parse_question_response
from question_engine.models import Goal, Project, QuestionCategory, SourceType, TeamActivity
from question_engine.stores.repository import ResearchRepository

logger = logging.getLogger(__name__)

CONTEXT_ITEMS = 5
RECENT_QUERY_COUNT = 10
TEAM_LOOKBACK_DAYS = 7


@dataclass(slots=True)
class LLMQuestion:
    question: str
    type: QuestionCategory
    reasoning: str
    priority: str
    score: float
    source_type: SourceType = SourceType.LLM_GENERATED


@dataclass(slots=True)
class GoalContext:
    type: str
    title: str
    target_date: str | None = None
    days_until: int | None = None


@dataclass(slots=True)
class UserContext:
    name: str = ""
    department: str = "General"
    interests: list[str] = field(default_factory=list)
    expertise: str = "STUDENT"
    phd_focus: str | None = None
    years_in_field: int | None = None
    techniques: list[str] = field(default_factory=list)
    computational_skills: list[str] = field(default_factory=list)
    highest_degree: str | None = None
    recent_queries: list[tuple[str, str]] = field(default_factory=list)
    important_papers: list[tuple[str, list[str]]] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    goals: list[GoalContext] = field(default_factory=list)
    team_activity: list[TeamActivity] = field(default_factory=list)
    gaps: list[str] = field(default_factory=list)


FALLBACK_QUESTIONS: dict[str, list[tuple[str, str]]] = {
    "Cancer Research": [
        (
            "What are the latest breakthroughs in CAR-T cell therapy for solid tumors?",
            "CAR-T therapy is rapidly evolving. Understanding recent advances is crucial.",
        ),
        (
            "Which immunotherapy approaches show the most promise this year?",
            "Staying current with immunotherapy trends is essential for cancer research.",
        ),
    ],
    "General": [
        (
            "What are the most cited cancer research papers published this year?",
            "High-impact papers shape the direction of research.",
        ),
    ],
}


def _goal_context(goal: Goal, now: datetime) -> GoalContext:
    if goal.target_date is None:
        return GoalContext(type=goal.type, title=goal.title)
    target = goal.target_date
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    seconds = (target - now).total_seconds()
    # ceil to whole days
    days = -int(-seconds // 86400)
    return GoalContext(type=goal.type, title=goal.title, target_date=target.date().isoformat(), days_until=days)


def _bullets(lines: list[str], empty: str) -> str:
    return "\n".join(lines) if lines else empty


def _deadline(days: int | None) -> str:
    if days is None:
        return ""
    if days > 0:
        return f" (in {days} days)"
    if days == 0:
        return " (TODAY!)"
    return f" ({abs(days)} days overdue)"


def build_prompt(ctx: UserContext) -> str:
    profile = [
        f"- Name: {ctx.name}",
        f"- Department: {ctx.department}",
        f"- Highest Degree: {ctx.highest_degree or 'Not specified'}",
        f"- Expertise Level: {ctx.expertise}",
    ]
    if ctx.years_in_field:
        profile.append(f"- Years in Field: {ctx.years_in_field}")
    if ctx.phd_focus:
        profile.append(f"- PhD Research Focus: {ctx.phd_focus}")
    profile.append(f"- Primary Research Interests: {', '.join(ctx.interests) or 'Not specified yet'}")
    if ctx.techniques:
        profile.append(f"- Laboratory Techniques: {', '.join(ctx.techniques)}")
    if ctx.computational_skills:
        profile.append(f"- Computational Skills: {', '.join(ctx.computational_skills)}")

    queries = [f'- "{q}" ({d})' for q, d in ctx.recent_queries]
    papers = [f"- {t}" + (f" [Concepts: {', '.join(c)}]" if c else "") for t, c in ctx.important_papers]
    projects = [
        f"- {p.title}" + (f": {p.description[:100]}" if p.description else "") + f" [Status: {p.status}]"
        for p in ctx.projects
    ]
    goals = [f"- [{g.type}] {g.title}{_deadline(g.days_until)}" for g in ctx.goals]
    team = [f"- {a.researcher}: {a.topic}" for a in ctx.team_activity]

    instructions = [
        "1. Highly relevant to their current research trajectory"
        + (f" and PhD focus ({ctx.phd_focus})" if ctx.phd_focus else ""),
        "2. Actionable (can be researched using available tools)",
        "3. Progressive (build on existing knowledge and expertise)",
        "4. Diverse (cover different aspects and question types)",
        "5. Timely (consider current trends" + (" and upcoming deadlines" if ctx.goals else "") + ")",
        "6. Valuable (high potential to advance their research" + (" projects" if ctx.projects else "") + ")",
    ]
    if any(g.days_until is not None and 0 <= g.days_until <= 30 for g in ctx.goals):
        instructions.append("7. URGENT: Prioritize questions that help with upcoming goals/deadlines (within 30 days)")

    practical = "- PRACTICAL: Clinical/translational applications"
    if ctx.techniques:
        practical += f" (relevant to their techniques: {', '.join(ctx.techniques)})"
    experience = f" with {ctx.years_in_field} years experience" if ctx.years_in_field else ""
    lab = f" ({', '.join(ctx.techniques[:3])})" if ctx.techniques else ""
    comp = f" ({', '.join(ctx.computational_skills[:3])})" if ctx.computational_skills else ""

    return f"""You are an AI research advisor for a researcher.

USER PROFILE:
{chr(10).join(profile)}

RECENT RESEARCH ACTIVITY (Last {RECENT_QUERY_COUNT} queries):
{_bullets(queries, "No recent queries")}

PAPERS MARKED AS IMPORTANT:
{_bullets(papers, "None yet")}

CURRENT RESEARCH PROJECTS:
{_bullets(projects, "No active projects specified")}

UPCOMING GOALS & DEADLINES:
{_bullets(goals, "No upcoming goals")}

TEAM RESEARCH ACTIVITY (Same department):
{_bullets(team, "No team activity data")}

KNOWLEDGE GAPS (Areas not yet explored):
{', '.join(ctx.gaps) or "No gaps identified"}

INSTRUCTIONS:
Generate {LLM_QUESTION_COUNT} highly relevant research questions this person should explore next. Make them:
{chr(10).join(instructions)}

Mix these question types:
- CONTINUATION: Natural follow-ups to recent work
- DEEPENING: Dig into specific mechanisms or details
- BRIDGING: Connect different research areas
- TREND: What's new and emerging in the field
{practical}
- GAP: Unexplored but relevant areas
- COMPARISON: Compare approaches or concepts
- EXPLORATION: New promising directions

For each question, consider:
- The researcher's expertise level ({ctx.expertise}){experience}
- Their recent query patterns and research trajectory
- Active research projects and their current status
- Upcoming goals and deadlines (especially urgent ones)
- Their laboratory skills{lab}
- Their computational abilities{comp}
- Team interests and potential collaborations
- Identified knowledge gaps

Return ONLY a valid JSON object with this exact structure:
{{
  "questions": [
    {{
      "question": "The specific research question",
      "type": "CONTINUATION|DEEPENING|BRIDGING|TREND|PRACTICAL|GAP|COMPARISON|EXPLORATION",
      "reasoning": "Why this question is relevant and valuable (1-2 sentences)",
      "priority": "high|medium|low"
    }}
  ]
}}

Make questions natural, specific, and genuinely useful for advancing their research."""


def build_cold_start_prompt(ctx: UserContext) -> str:
    return f"""You are an AI research advisor for a new researcher.

USER PROFILE:
- Department: {ctx.department}
- Expertise Level: {ctx.expertise}
- Stated Interests: {', '.join(ctx.interests) or 'Not specified yet'}

This is a NEW USER with no query history yet.

Generate {LLM_COLD_START_COUNT} excellent starter questions for someone in {ctx.department} to help them:
1. Get familiar with the research platform
2. Explore their field effectively
3. Discover relevant recent breakthroughs
4. Understand current trends
5. Find impactful research directions

Return ONLY a valid JSON object:
{{
  "questions": [
    {{
      "question": "The specific research question",
      "type": "TREND|EXPLORATION|PRACTICAL",
      "reasoning": "Why this is a great starting question",
      "priority": "high"
    }}
  ]
}}"""


def fallback_questions(department: str | None) -> list[LLMQuestion]:
    items = FALLBACK_QUESTIONS.get(department or "General", FALLBACK_QUESTIONS["General"])
    return [
        LLMQuestion(question=q, type=QuestionCategory.TREND, reasoning=r, priority="high", score=PRIORITY_SCORES["high"])
        for q, r in items
    ]


class LLMGenerator:
    """Asks a language model for questions given a rich picture of the researcher."""

    name = "llm"

    def __init__(self, repo: ResearchRepository, llm: LLMProvider):
        self.repo = repo
        self.llm = llm

    async def gather_context(self, user_id: str) -> UserContext:
        user = await self.repo.get_user(user_id)
        if user is None:
            raise GenerationError(f"user {user_id!r} not found")
        profile = await self.repo.get_profile(user_id)
        now = datetime.now(timezone.utc)

        queries = await self.repo.recent_queries(user_id, limit=RECENT_QUERY_COUNT, completed_only=False)
        important = await self.repo.important_responses(user_id, limit=CONTEXT_ITEMS)
        projects = await self.repo.active_projects(user_id, limit=CONTEXT_ITEMS)
        goals = await self.repo.open_goals(user_id, limit=CONTEXT_ITEMS)
        team: list[TeamActivity] = []
        if user.department:
            team = await self.repo.team_activity(
                user.department, since=now - timedelta(days=TEAM_LOOKBACK_DAYS), limit=RECENT_QUERY_COUNT
            )
        gaps = await self.repo.knowledge_gaps(user_id, limit=CONTEXT_ITEMS)

        ctx = UserContext(
            name=user.name,
            department=user.department or "General",
            recent_queries=[(q.text, q.created_at.date().isoformat()) for q in queries],
            important_papers=[(r.summary[:100], list(r.concepts)) for r in important],
            projects=projects,
            goals=[_goal_context(g, now) for g in goals],
            team_activity=team,
            gaps=gaps,
        )
        if profile is not None:
            ctx.interests = list(profile.primary_interests)
            ctx.expertise = profile.expertise_level or "STUDENT"
            ctx.phd_focus = profile.phd_focus
            ctx.years_in_field = profile.years_in_field
            ctx.techniques = list(profile.techniques)
            ctx.computational_skills = list(profile.computational_skills)
            ctx.highest_degree = profile.highest_degree
        return ctx

    async def generate(self, user_id: str) -> list[LLMQuestion]:
        try:
            ctx = await self.gather_context(user_id)
            if not ctx.recent_queries:
                return await self.cold_start(ctx)
            text = await self.llm.complete(build_prompt(ctx), max_tokens=LLM_MAX_TOKENS, temperature=LLM_TEMPERATURE)
            return self._parse(text)
        except Exception as e:
            logger.warning("LLM generator failed for user=%s: %s", user_id, e)
            return []

    async def cold_start(self, ctx: UserContext) -> list[LLMQuestion]:
        try:
            text = await self.llm.complete(
                build_cold_start_prompt(ctx),
                max_tokens=LLM_COLD_START_MAX_TOKENS,
                temperature=LLM_COLD_START_TEMPERATURE,
            )
        except Exception as e:
            logger.warning("Cold-start prompt failed, using fallback questions for %s: %s", ctx.department, e)
            return fallback_questions(ctx.department)
        return self._parse(text)

    @staticmethod
    def _parse(text: str) -> list[LLMQuestion]:
        try:
            parsed = parse_question_response(text)
        except LLMParseError as e:
            logger.warning("Discarding unparseable model response: %s", e)
            return []
        return [
            LLMQuestion(question=p.question, type=p.type, reasoning=p.reasoning, priority=p.priority, score=p.score)
            for p in parsed
        ]

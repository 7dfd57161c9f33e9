"""Schema-validating adapter over free-form model output.

Models are asked for a JSON object but often wrap it in prose or markdown
fences. Everything that depends on that fragility lives here, so a provider
with structured-output guarantees only has to produce :class:`QuestionPayload`.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, Field, ValidationError, field_validator

from question_engine.constants import DEFAULT_PRIORITY, PRIORITY_SCORES
from question_engine.errors import LLMParseError
from question_engine.models import QuestionCategory


class ParsedQuestion(BaseModel):
    question: str = Field(min_length=1)
    type: QuestionCategory = QuestionCategory.EXPLORATION
    reasoning: str = ""
    priority: str = DEFAULT_PRIORITY

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v):
        return QuestionCategory.parse(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, v):
        p = str(v or "").strip().lower()
        return p if p in PRIORITY_SCORES else DEFAULT_PRIORITY

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, v):
        return "" if v is None else str(v)

    @property
    def score(self) -> float:
        return PRIORITY_SCORES[self.priority]


class QuestionPayload(BaseModel):
    questions: list[ParsedQuestion]


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_str = False
        escape = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_question_response(text: str) -> list[ParsedQuestion]:
    if not text:
        raise LLMParseError("empty model response")
    raw = extract_json_object(text)
    if raw is None:
        raise LLMParseError("no JSON object found in model response")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LLMParseError(f"invalid JSON in model response: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        raise LLMParseError("model response has no 'questions' array")

    # drop individual malformed entries rather than the whole payload
    valid = []
    for item in data["questions"]:
        try:
            valid.append(ParsedQuestion.model_validate(item))
        except ValidationError:
            continue
    return QuestionPayload(questions=valid).questions

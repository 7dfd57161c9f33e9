"""Candidate generation strategies.

Each generator is an independent object with a ``name`` and an
``async generate(user_id)`` coroutine. They share nothing but the embedding
cache and are fanned out concurrently by the orchestrator.
"""

from __future__ import annotations

from typing import Any, Protocol

from .collaborative import CollaborativeGenerator
from .graph import GraphGenerator
from .llm import LLMGenerator
from .pattern import PatternGenerator


class CandidateGenerator(Protocol):
    name: str

    async def generate(self, user_id: str) -> list[Any]: ...


__all__ = [
    "CandidateGenerator",
    "CollaborativeGenerator",
    "GraphGenerator",
    "LLMGenerator",
    "PatternGenerator",
]

"""Adapters for the relational, cache and graph stores."""

from .cache import QuestionCache, RedisQuestionCache
from .graph import ConceptGraph, GraphHit, Neo4jConceptGraph, Neo4jConfig, NullConceptGraph
from .postgres import PostgresRepository
from .repository import ResearchRepository

__all__ = [
    "ConceptGraph",
    "GraphHit",
    "Neo4jConceptGraph",
    "Neo4jConfig",
    "NullConceptGraph",
    "PostgresRepository",
    "QuestionCache",
    "RedisQuestionCache",
    "ResearchRepository",
]

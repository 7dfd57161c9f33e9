from __future__ import annotations


class QuestionEngineError(Exception):
    """Base class for recoverable failures inside the suggestion pipeline."""


class GenerationError(QuestionEngineError):
    """A single candidate generator could not produce candidates."""


class EmbeddingError(QuestionEngineError):
    """The embedding provider failed for a batch of texts."""


class StoreUnavailableError(QuestionEngineError):
    """A graph, cache or relational store could not be reached."""


class PersistenceError(QuestionEngineError):
    """Suggested questions could not be written to the durable store."""


class LLMParseError(QuestionEngineError):
    """A model response did not contain a valid question payload."""


class SuggestionNotFoundError(QuestionEngineError):
    pass


class ForbiddenSuggestionError(QuestionEngineError):
    """The suggestion exists but belongs to another user."""

from .client import AnthropicLLM, LLMProvider, build_llm
from .parsing import ParsedQuestion, QuestionPayload, extract_json_object, parse_question_response

__all__ = [
    "AnthropicLLM",
    "LLMProvider",
    "ParsedQuestion",
    "QuestionPayload",
    "build_llm",
    "extract_json_object",
    "parse_question_response",
]

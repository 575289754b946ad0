"""LLM advisor: prompt, line protocol, and completion backends."""

from faultline.analysis.llm.advisor import LLMAdvisor
from faultline.analysis.llm.backend import (
    LiteLLMBackend,
    LLMBackend,
    guarded_completion,
)
from faultline.analysis.llm.protocol import parse_reply

__all__ = [
    "LLMAdvisor",
    "LLMBackend",
    "LiteLLMBackend",
    "guarded_completion",
    "parse_reply",
]

"""LLM provider integration: client, retry policy and output parsing."""

from learnhub.llm.client import LLMClient, ModerationResult
from learnhub.llm.errors import (
    AIServiceError,
    LLMDisabledError,
    ModelOutputError,
    ProviderError,
    ProviderRateLimitError,
)
from learnhub.llm.retry import RetryPolicy, call_with_retry, retrying

__all__ = [
    "LLMClient",
    "ModerationResult",
    "AIServiceError",
    "LLMDisabledError",
    "ModelOutputError",
    "ProviderError",
    "ProviderRateLimitError",
    "RetryPolicy",
    "call_with_retry",
    "retrying",
]

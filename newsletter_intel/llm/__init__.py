"""
LLM module: single typed async interface for all LLM calls.
Public API: LLMService, LLMSettings, LLMRequest, LLMResponse, LLMMessage.
Other modules must not call LiteLLM directly.
"""
from newsletter_intel.llm.errors import (
    LLMAuthError,
    LLMBadRequest,
    LLMError,
    LLMRateLimited,
    LLMResponseInvalid,
    LLMTimeout,
    LLMUnavailable,
)
from newsletter_intel.llm.service import LLMService
from newsletter_intel.llm.settings import LLMSettings
from newsletter_intel.llm.types import LLMMessage, LLMRequest, LLMResponse, LLMUsage

__all__ = [
    "LLMService",
    "LLMSettings",
    "LLMRequest",
    "LLMResponse",
    "LLMMessage",
    "LLMUsage",
    "LLMError",
    "LLMTimeout",
    "LLMRateLimited",
    "LLMBadRequest",
    "LLMAuthError",
    "LLMUnavailable",
    "LLMResponseInvalid",
]

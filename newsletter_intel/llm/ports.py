"""Port interface for the LLM module. Other modules depend on this, not on LiteLLM."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from newsletter_intel.llm.types import LLMRequest, LLMResponse


@runtime_checkable
class LLMClientPort(Protocol):
    """Low-level, provider-agnostic completion. Used by LLMService."""

    async def acompletion(
        self,
        model: str,
        req: LLMRequest,
        *,
        timeout_s: float | None = None,
        api_base: str | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Execute one completion for the given model. Raises LLMError on failure."""
        ...

"""Typed request/response models for the LLM module (Pydantic v2)."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


def provider_of(model: str) -> str:
    """LiteLLM provider prefix of a model string ("gemini/gemini-2.0-flash" -> "gemini")."""
    if "/" in model:
        return model.split("/", 1)[0]
    return "openai"


class LLMMessage(BaseModel):
    """Single message in OpenAI-style format."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str


class LLMRequest(BaseModel):
    """Request for a single chat completion."""

    messages: list[LLMMessage]
    temperature: float | None = None
    max_output_tokens: int | None = None
    response_format: dict[str, Any] | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    timeout_s: float | None = None


class LLMUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float | None = None


class LLMResponse(BaseModel):
    """Normalized response from any provider."""

    text: str
    raw: dict[str, Any] | None = None
    usage: LLMUsage | None = None
    provider: str
    model: str
    latency_ms: int
    finish_reason: str | None = None

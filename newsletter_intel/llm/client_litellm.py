"""
LiteLLM client wrapper: normalize request/response, timeouts, semaphore, optional retries.
Exception mapping (LiteLLM -> LLMError):
  - APITimeoutError / Timeout -> LLMTimeout
  - RateLimitError -> LLMRateLimited
  - AuthenticationError / PermissionDeniedError -> LLMAuthError
  - BadRequestError / InvalidRequestError / ContextWindowExceededError -> LLMBadRequest
  - APIError / ServiceUnavailableError / APIConnectionError / InternalServerError -> LLMUnavailable
  - unknown -> LLMUnavailable (5xx or "timeout" in message) or LLMError(UNKNOWN)
"""
from __future__ import annotations

import asyncio
import time
from typing import Any

from litellm import acompletion

from newsletter_intel.llm.errors import (
    LLMAuthError,
    LLMBadRequest,
    LLMError,
    LLMRateLimited,
    LLMTimeout,
    LLMUnavailable,
)
from newsletter_intel.llm.telemetry import emit_error_metric, emit_latency_metric, emit_tokens_metric
from newsletter_intel.llm.types import LLMRequest, LLMResponse, LLMUsage, provider_of


def _map_exception(e: Exception, provider: str) -> LLMError:
    """Map LiteLLM/provider exceptions to LLMError. Uses class name so it works across import paths."""
    if isinstance(e, LLMError):
        return e
    exc_name = type(e).__name__
    if exc_name in ("APITimeoutError", "Timeout"):
        return LLMTimeout(details=exc_name, provider=provider)
    if exc_name == "RateLimitError":
        return LLMRateLimited(details=exc_name, provider=provider)
    if exc_name in ("AuthenticationError", "PermissionDeniedError"):
        return LLMAuthError(details=exc_name, provider=provider)
    if exc_name in ("BadRequestError", "InvalidRequestError", "ContextWindowExceededError"):
        return LLMBadRequest(details=exc_name, provider=provider)
    if exc_name in ("ServiceUnavailableError", "APIConnectionError", "APIError", "InternalServerError"):
        return LLMUnavailable(str(e), details=exc_name, provider=provider)
    if getattr(e, "status_code", None) in (500, 502, 503, 504) or "timeout" in str(e).lower():
        return LLMUnavailable(str(e), details=exc_name, provider=provider)
    return LLMError(
        str(e),
        code="UNKNOWN",
        retryable=False,
        provider=provider,
        details=exc_name,
    )


def _request_to_kwargs(req: LLMRequest, model: str, timeout_s: float) -> dict[str, Any]:
    """Build LiteLLM completion kwargs from LLMRequest."""
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [m.model_dump() for m in req.messages],
        "timeout": timeout_s,
    }
    if req.temperature is not None:
        kwargs["temperature"] = req.temperature
    if req.max_output_tokens is not None:
        kwargs["max_tokens"] = req.max_output_tokens
    if req.response_format is not None:
        kwargs["response_format"] = req.response_format
    return kwargs


def _response_from_completion(raw: Any, provider: str, model: str, latency_ms: int) -> LLMResponse:
    """Build LLMResponse from LiteLLM response object."""
    text = ""
    usage = None
    finish_reason = None
    if getattr(raw, "choices", None):
        c0 = raw.choices[0]
        msg = getattr(c0, "message", None)
        if msg is not None:
            text = getattr(msg, "content", None) or ""
        else:
            text = getattr(c0, "text", None) or ""
        finish_reason = getattr(c0, "finish_reason", None)
    if getattr(raw, "usage", None):
        u = raw.usage
        usage = LLMUsage(
            input_tokens=getattr(u, "prompt_tokens", 0) or 0,
            output_tokens=getattr(u, "completion_tokens", 0) or 0,
            total_tokens=getattr(u, "total_tokens", 0) or 0,
        )
    raw_dict: dict[str, Any] = {}
    if hasattr(raw, "model_dump"):
        raw_dict = raw.model_dump()
    return LLMResponse(
        text=text,
        raw=raw_dict,
        usage=usage,
        provider=provider,
        model=model,
        latency_ms=latency_ms,
        finish_reason=finish_reason,
    )


class LiteLLMClient:
    """Async LiteLLM wrapper: semaphore, timeout, retries, request/response normalization."""

    def __init__(
        self,
        *,
        concurrency_limit: int = 8,
        max_retries: int = 0,
        backoff_base_s: float = 0.5,
        backoff_max_s: float = 8.0,
        drop_params: bool = True,
    ) -> None:
        self._sem = asyncio.Semaphore(concurrency_limit)
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s
        self._backoff_max_s = backoff_max_s
        self._drop_params = drop_params

    async def acompletion(
        self,
        model: str,
        req: LLMRequest,
        *,
        timeout_s: float | None = None,
        api_base: str | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Execute one completion. Applies semaphore, timeout, retries. Raises LLMError on failure."""
        provider = provider_of(model)
        timeout = timeout_s if timeout_s is not None else req.timeout_s or 60.0
        kwargs = _request_to_kwargs(req, model, timeout)
        if self._drop_params:
            kwargs["drop_params"] = True
        if api_base is not None:
            kwargs["api_base"] = api_base
        if api_key is not None:
            kwargs["api_key"] = api_key

        for attempt in range(self._max_retries + 1):
            async with self._sem:
                t0 = time.perf_counter()
                try:
                    raw = await acompletion(**kwargs)
                except Exception as e:  # noqa: BLE001
                    err = _map_exception(e, provider)
                    emit_error_metric(provider, err.code)
                    if not err.retryable or attempt == self._max_retries:
                        raise err from e
                else:
                    latency_ms = int((time.perf_counter() - t0) * 1000)
                    resp = _response_from_completion(raw, provider, model, latency_ms)
                    emit_latency_metric(provider, model, float(latency_ms))
                    if resp.usage:
                        emit_tokens_metric(provider, model, "in", resp.usage.input_tokens)
                        emit_tokens_metric(provider, model, "out", resp.usage.output_tokens)
                    return resp
            await asyncio.sleep(min(self._backoff_base_s * (2**attempt), self._backoff_max_s))
        raise LLMUnavailable("Max retries exceeded", provider=provider)

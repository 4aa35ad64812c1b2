"""
LLMService: single public entrypoint for chat completions.
Other modules import only LLMService and the request/response types.
"""
from __future__ import annotations

import json

from newsletter_intel.llm.client_litellm import LiteLLMClient
from newsletter_intel.llm.errors import LLMError
from newsletter_intel.llm.ports import LLMClientPort
from newsletter_intel.llm.settings import LLMSettings
from newsletter_intel.llm.telemetry import log_llm_call, stable_hash
from newsletter_intel.llm.types import LLMRequest, LLMResponse, provider_of


def _prompt_hash(req: LLMRequest, model: str) -> str:
    payload = json.dumps([m.model_dump() for m in req.messages], sort_keys=True)
    return stable_hash(f"{model}|{payload}")


class LLMService:
    def __init__(self, settings: LLMSettings, *, client: LLMClientPort | None = None) -> None:
        self._settings = settings
        self._client = client or LiteLLMClient(
            concurrency_limit=settings.concurrency_limit,
            max_retries=settings.max_retries,
            backoff_base_s=settings.retry_backoff_base_s,
            backoff_max_s=settings.retry_backoff_max_s,
            drop_params=settings.drop_unsupported_params,
        )

    @property
    def model(self) -> str:
        return self._settings.model

    async def chat(self, req: LLMRequest) -> LLMResponse:
        """
        Execute one chat completion with the configured model.
        Settings fill in temperature/max tokens/timeout the request leaves unset.
        Raises LLMError on failure; every call is logged (never the prompt text).
        """
        model = self._settings.model
        updates = {}
        if req.temperature is None and self._settings.temperature is not None:
            updates["temperature"] = self._settings.temperature
        if req.max_output_tokens is None and self._settings.max_output_tokens is not None:
            updates["max_output_tokens"] = self._settings.max_output_tokens
        if updates:
            req = req.model_copy(update=updates)
        timeout_s = req.timeout_s or self._settings.default_timeout_s
        user_id = req.metadata.get("user_id")
        stage = req.metadata.get("stage")
        prompt_sha256 = _prompt_hash(req, model)
        try:
            resp = await self._client.acompletion(
                model,
                req,
                timeout_s=timeout_s,
                api_base=self._settings.api_base,
                api_key=self._settings.api_key,
            )
        except LLMError as e:
            log_llm_call(
                provider=provider_of(model),
                model=model,
                latency_ms=0,
                status="FAILED",
                prompt_sha256=prompt_sha256,
                user_id=user_id,
                stage=stage,
                error_code=e.code,
            )
            raise
        log_llm_call(
            provider=resp.provider,
            model=resp.model,
            latency_ms=resp.latency_ms,
            status="SUCCEEDED",
            prompt_sha256=prompt_sha256,
            user_id=user_id,
            stage=stage,
        )
        return resp

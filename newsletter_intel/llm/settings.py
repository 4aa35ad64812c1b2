"""LLM module configuration. Env prefix: LLM_ (e.g. LLM_MODEL, LLM_API_KEY)."""
from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Settings for the LiteLLM client and the extraction call. All overridable via LLM_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    model: str = Field(default="gemini/gemini-2.0-flash", description="LiteLLM model string (provider/ prefix)")
    api_key: str | None = Field(default=None, description="Provider API key (env: LLM_API_KEY)")
    api_base: str | None = Field(default=None, description="Override provider base URL (e.g. Ollama server)")
    concurrency_limit: int = Field(default=8, ge=1, description="Max concurrent LLM calls per process")
    default_timeout_s: float = Field(default=30.0, gt=0, description="Default request timeout")
    # Extraction failures are never retried inside one pipeline run.
    max_retries: int = Field(default=0, ge=0, description="Max retries for retryable errors")
    retry_backoff_base_s: float = Field(default=0.5, gt=0, description="Base delay for exponential backoff")
    retry_backoff_max_s: float = Field(default=8.0, gt=0, description="Max backoff delay")
    temperature: float | None = Field(default=0.0, description="Sampling temperature")
    max_output_tokens: int | None = Field(default=2048, ge=1, description="Completion token cap")
    drop_unsupported_params: bool = Field(
        default=True,
        description="Drop OpenAI params not supported by provider (multi-provider safety)",
    )
    max_content_chars: int = Field(default=8000, ge=1, description="Newsletter text truncation before the call")

    @model_validator(mode="after")
    def validate_model(self) -> "LLMSettings":
        if not (self.model or "").strip():
            raise ValueError("LLM_MODEL must be a non-empty LiteLLM model string")
        if self.retry_backoff_max_s < self.retry_backoff_base_s:
            raise ValueError("retry_backoff_max_s must be >= retry_backoff_base_s")
        return self

"""Background pipeline configuration. Env prefix: PIPELINE_."""
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Execution budget, batch limits, resolver defaults, continuation and progress backends."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_processing_seconds: float = Field(
        default=50.0,
        gt=0,
        description="Wall-clock budget per invocation; stays under the host's hard invocation limit",
    )
    default_batch_size: int = Field(default=10, ge=1, description="Batch size when the request omits one")
    min_batch_size: int = Field(default=1, ge=1)
    max_batch_size: int = Field(default=25, ge=1)
    min_content_chars: int = Field(default=20, ge=0, description="Shorter usable text completes with 0 companies")

    default_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    default_sentiment: str = Field(default="neutral")
    default_mention_context: str = Field(default="Mentioned in newsletter")
    default_source_label: str = Field(default="Unknown Newsletter")

    public_url: str = Field(default="http://localhost:3000", description="Origin for self-calls without forwarded host")
    process_path: str = Field(default="/api/pipeline/process-background")
    forwarded_headers: list[str] = Field(default_factory=lambda: ["cookie", "authorization"])
    forwarded_header_prefixes: list[str] = Field(
        default_factory=lambda: ["x-clerk-"],
        description="Session-vendor header prefixes forwarded on continuation",
    )
    continuation_backend: Literal["http", "queue"] = Field(default="http")
    continuation_timeout_s: float = Field(default=5.0, gt=0)

    progress_backend: Literal["db", "memory"] = Field(default="db")
    progress_drain_timeout_s: float = Field(default=2.0, gt=0)

    user_lock_enabled: bool = Field(default=True, description="Per-user advisory lock around the fetch loop")
    user_lock_ttl_s: float = Field(default=120.0, gt=0)

    cron_secret: str | None = Field(default=None, description="Bearer secret for the cron sweep (env: PIPELINE_CRON_SECRET)")
    sweep_user_limit: int = Field(default=10, ge=1)
    sweep_batch_size: int = Field(default=5, ge=1)

    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def validate_batch_bounds(self) -> "PipelineSettings":
        if self.min_batch_size > self.max_batch_size:
            raise ValueError("min_batch_size must be <= max_batch_size")
        if not self.min_batch_size <= self.default_batch_size <= self.max_batch_size:
            raise ValueError("default_batch_size must lie within [min_batch_size, max_batch_size]")
        return self

    def clamp_batch_size(self, requested: int | None) -> int:
        if requested is None:
            return self.default_batch_size
        return max(self.min_batch_size, min(int(requested), self.max_batch_size))

"""Pipeline DTOs: extraction payloads, request/response bodies, continuation token, run context."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from newsletter_intel.pipeline.budget import ExecutionBudget


class ExtractedCompany(BaseModel):
    """One company as returned by the extractor. Tags accept a single string or a list."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str | None = None
    industry_tags: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("industryTags", "industry_tags", "industry"),
    )
    context: str | None = None
    confidence: float | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("industry_tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        tags: list[str] = []
        for tag in v:
            tag = str(tag).strip() if tag is not None else ""
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> float | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return min(1.0, max(0.0, value))


class ExtractionResult(BaseModel):
    """Extractor output. The list key may be "entities" or "companies"; blank names are dropped."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    entities: list[ExtractedCompany] = Field(
        default_factory=list,
        validation_alias=AliasChoices("entities", "companies"),
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("entities", mode="before")
    @classmethod
    def _drop_unnamed(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        kept = []
        for item in v:
            if isinstance(item, ExtractedCompany):
                item = item.model_dump()
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if name is None or not str(name).strip():
                continue
            kept.append(item)
        return kept

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_dict(cls, v: Any) -> dict[str, Any]:
        return v if isinstance(v, dict) else {}


class ProcessRequest(BaseModel):
    """Body of POST /api/pipeline/process-background."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId", min_length=1)
    batch_size: int | None = Field(default=None, alias="batchSize")

    @field_validator("user_id", mode="before")
    @classmethod
    def _strip_user(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class ProcessResult(BaseModel):
    """What one invocation accomplished. to_response() renders the camelCase HTTP body."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    processed: int
    remaining: int
    companies_extracted: int = Field(alias="companiesExtracted")
    failed: int = 0
    errors: list[str] | None = None
    follow_up_triggered: bool = Field(default=False, alias="followUpTriggered")
    message: str

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ContinuationToken(BaseModel):
    """Everything the next invocation needs to resume: who, and how many."""

    user_id: str
    batch_size: int = Field(ge=1)

    def to_payload(self) -> dict[str, Any]:
        return {"userId": self.user_id, "batchSize": self.batch_size}


@dataclass
class RunContext:
    """Per-invocation state. Counters are local to one run."""

    user_id: str
    batch_size: int
    budget: ExecutionBudget
    started_at: datetime
    trigger: str = "manual"
    forwarded_headers: dict[str, str] = field(default_factory=dict)
    origin: str | None = None
    run_id: str | None = None
    processed_count: int = 0
    extracted_count: int = 0
    failed_count: int = 0
    queued_count: int = 0
    errors: list[str] = field(default_factory=list)
    attempted: set[str] = field(default_factory=set)

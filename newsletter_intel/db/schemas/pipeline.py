"""PipelineRun and PipelineUpdate DTOs."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class PipelineRunDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    trigger: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    processed: int = 0
    companies_extracted: int = 0
    failed: int = 0
    remaining: int | None = None
    follow_up_triggered: bool = False
    error_summary: str | None = None


class PipelineUpdateDTO(BaseModel):
    id: str
    user_id: str
    update: dict[str, Any]
    consumed: bool
    created_at: datetime

"""Company and CompanyMention DTOs."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CompanyDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    normalized_name: str
    description: str | None = None
    industry: list[str] = []
    mention_count: int
    first_seen_at: datetime
    last_updated_at: datetime


class CompanyMentionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    company_id: str
    email_id: str
    context: str | None = None
    sentiment: str
    confidence: float
    extracted_at: datetime

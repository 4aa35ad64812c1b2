"""Email DTOs."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class EmailDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    newsletter_name: str | None = None
    subject: str | None = None
    received_at: datetime | None = None
    clean_text: str | None = None
    raw_html: str | None = None
    processing_status: str
    extraction_status: str
    extraction_started_at: datetime | None = None
    extraction_completed_at: datetime | None = None
    companies_extracted: int = 0
    extraction_error: str | None = None

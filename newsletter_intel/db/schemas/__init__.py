"""Pydantic DTOs for DB entities."""
from newsletter_intel.db.schemas.email import EmailDTO
from newsletter_intel.db.schemas.company import CompanyDTO, CompanyMentionDTO
from newsletter_intel.db.schemas.pipeline import PipelineRunDTO, PipelineUpdateDTO

__all__ = [
    "EmailDTO",
    "CompanyDTO",
    "CompanyMentionDTO",
    "PipelineRunDTO",
    "PipelineUpdateDTO",
]

"""Repositories for CRUD and idempotent operations."""
from newsletter_intel.db.repositories.email_repo import EmailRepo
from newsletter_intel.db.repositories.company_repo import CompanyMentionRepo, CompanyRepo
from newsletter_intel.db.repositories.pipeline_repo import (
    PipelineLockRepo,
    PipelineRunRepo,
    PipelineUpdateRepo,
)

__all__ = [
    "EmailRepo",
    "CompanyRepo",
    "CompanyMentionRepo",
    "PipelineLockRepo",
    "PipelineRunRepo",
    "PipelineUpdateRepo",
]

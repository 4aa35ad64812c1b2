# ORM models: import all so Alembic can autogenerate from Base.metadata.
from newsletter_intel.db.models.email import Email
from newsletter_intel.db.models.company import Company, CompanyMention
from newsletter_intel.db.models.pipeline import PipelineLock, PipelineRun, PipelineUpdate

__all__ = [
    "Email",
    "Company",
    "CompanyMention",
    "PipelineLock",
    "PipelineRun",
    "PipelineUpdate",
]

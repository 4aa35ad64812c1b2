"""
Time-boxed newsletter processing pipeline.
Public API: BackgroundProcessor, create_processor, PipelineSettings, ProcessResult.
"""
from newsletter_intel.pipeline.errors import (
    ExtractionError,
    InvalidRequestError,
    InvalidTransitionError,
    PipelineError,
    StoreUnavailableError,
)
from newsletter_intel.pipeline.factory import create_processor
from newsletter_intel.pipeline.models import ContinuationToken, ProcessRequest, ProcessResult
from newsletter_intel.pipeline.processor import BackgroundProcessor
from newsletter_intel.pipeline.settings import PipelineSettings

__all__ = [
    "BackgroundProcessor",
    "create_processor",
    "PipelineSettings",
    "ProcessRequest",
    "ProcessResult",
    "ContinuationToken",
    "PipelineError",
    "InvalidRequestError",
    "StoreUnavailableError",
    "InvalidTransitionError",
    "ExtractionError",
]

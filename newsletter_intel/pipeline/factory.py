"""Factory for BackgroundProcessor with default adapters (shared by API, CLI and sweep)."""
from newsletter_intel.llm import LLMService, LLMSettings
from newsletter_intel.pipeline.continuation import HttpSelfInvoker, QueueContinuationDispatcher
from newsletter_intel.pipeline.extraction import LLMCompanyExtractor
from newsletter_intel.pipeline.processor import BackgroundProcessor
from newsletter_intel.pipeline.progress import DbProgressSink, InMemoryProgressSink
from newsletter_intel.pipeline.settings import PipelineSettings
from newsletter_intel.pipeline.store import SqlWorkStore

_memory_sink = InMemoryProgressSink()


def default_progress_sink(settings: PipelineSettings):
    if settings.progress_backend == "memory":
        return _memory_sink
    return DbProgressSink()


def default_dispatcher(settings: PipelineSettings):
    if settings.continuation_backend == "queue":
        return QueueContinuationDispatcher()
    return HttpSelfInvoker(settings)


def default_extractor(llm_settings: LLMSettings | None = None) -> LLMCompanyExtractor:
    llm_settings = llm_settings or LLMSettings()
    return LLMCompanyExtractor(LLMService(llm_settings), llm_settings)


def create_processor(
    settings=None,
    *,
    store=None,
    extractor=None,
    dispatcher=None,
    sink=None,
    llm_settings=None,
) -> BackgroundProcessor:
    """Build BackgroundProcessor; any adapter not given falls back to the configured default."""
    settings = settings or PipelineSettings()
    return BackgroundProcessor(
        store=store or SqlWorkStore(),
        extractor=extractor or default_extractor(llm_settings),
        dispatcher=dispatcher or default_dispatcher(settings),
        sink=sink or default_progress_sink(settings),
        settings=settings,
    )

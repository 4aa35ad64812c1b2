"""Pipeline-specific exceptions."""


class PipelineError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, *, code: str = "PIPELINE_ERROR") -> None:
        super().__init__(message)
        self.code = code


class InvalidRequestError(PipelineError):
    """Missing userId or malformed body. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_REQUEST")


class StoreUnavailableError(PipelineError):
    """Data store unreachable before any work was done. Maps to HTTP 500."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STORE_UNAVAILABLE")


class InvalidTransitionError(PipelineError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_TRANSITION")


class ExtractionError(PipelineError):
    """Extractor reported an error or returned an unusable payload."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EXTRACTION_FAILED")

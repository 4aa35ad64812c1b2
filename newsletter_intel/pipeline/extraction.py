"""Extraction adapter gateway and the LLM-backed company extractor."""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from newsletter_intel.db.schemas import EmailDTO
from newsletter_intel.llm import LLMMessage, LLMRequest, LLMService, LLMSettings
from newsletter_intel.llm.errors import LLMResponseInvalid
from newsletter_intel.pipeline.contracts import ExtractorPort
from newsletter_intel.pipeline.errors import ExtractionError
from newsletter_intel.pipeline.models import ExtractionResult
from newsletter_intel.pipeline.prompt import SYSTEM_PROMPT, build_user_prompt
from newsletter_intel.pipeline.settings import PipelineSettings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def select_content(item: EmailDTO) -> str:
    """Cleaned text if present, else the raw markup, else empty."""
    return item.clean_text or item.raw_html or ""


class ExtractionGateway:
    """Call boundary to the extractor. Failures propagate; nothing is retried here."""

    def __init__(self, extractor: ExtractorPort, settings: PipelineSettings) -> None:
        self._extractor = extractor
        self._settings = settings

    def is_extractable(self, content: str) -> bool:
        return len((content or "").strip()) >= self._settings.min_content_chars

    async def extract(self, content: str, source_label: str | None) -> ExtractionResult:
        label = source_label or self._settings.default_source_label
        result = await self._extractor.extract(content, label)
        if not isinstance(result, ExtractionResult):
            raise ExtractionError(f"Extractor returned {type(result).__name__}, expected ExtractionResult")
        error = result.metadata.get("error")
        if error:
            raise ExtractionError(str(error))
        return result


def _load_json(text: str) -> Any:
    text = (text or "").strip()
    if not text:
        raise LLMResponseInvalid("Empty extraction response")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    match = _FENCE_RE.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise LLMResponseInvalid(f"Fenced extraction block is not valid JSON: {e.msg}") from e
    raise LLMResponseInvalid("Extraction response is not JSON")


def parse_extraction(text: str) -> ExtractionResult:
    """Parse model output into an ExtractionResult. A bare list is taken as the company list."""
    data = _load_json(text)
    if isinstance(data, list):
        data = {"companies": data}
    if not isinstance(data, dict):
        raise LLMResponseInvalid(f"Extraction response is a JSON {type(data).__name__}, expected object")
    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as e:
        raise LLMResponseInvalid(f"Extraction response failed validation: {e.error_count()} error(s)") from e


class LLMCompanyExtractor:
    """ExtractorPort over LLMService: JSON-mode prompt, lenient parse, strict shape."""

    def __init__(self, llm: LLMService, settings: LLMSettings) -> None:
        self._llm = llm
        self._settings = settings

    async def extract(self, content: str, source_label: str) -> ExtractionResult:
        req = LLMRequest(
            messages=[
                LLMMessage(role="system", content=SYSTEM_PROMPT),
                LLMMessage(
                    role="user",
                    content=build_user_prompt(content, source_label, self._settings.max_content_chars),
                ),
            ],
            response_format={"type": "json_object"},
            metadata={"stage": "company_extract"},
        )
        resp = await self._llm.chat(req)
        result = parse_extraction(resp.text)
        logger.debug(
            "extraction parsed: source=%s companies=%d model=%s",
            source_label,
            len(result.entities),
            resp.model,
        )
        return result

"""Extraction gateway, lenient JSON parsing, and the LLM-backed extractor."""
import pytest

from newsletter_intel.db.schemas import EmailDTO
from newsletter_intel.llm import LLMResponse, LLMService, LLMSettings
from newsletter_intel.llm.errors import LLMResponseInvalid
from newsletter_intel.pipeline.errors import ExtractionError
from newsletter_intel.pipeline.extraction import (
    ExtractionGateway,
    LLMCompanyExtractor,
    parse_extraction,
    select_content,
)
from newsletter_intel.pipeline.models import ExtractedCompany, ExtractionResult
from newsletter_intel.pipeline.settings import PipelineSettings


def _email(**kw) -> EmailDTO:
    base = {
        "id": "e1",
        "user_id": "u1",
        "processing_status": "pending",
        "extraction_status": "pending",
    }
    base.update(kw)
    return EmailDTO(**base)


class StaticExtractor:
    def __init__(self, result):
        self.result = result
        self.labels = []

    async def extract(self, content, source_label):
        self.labels.append(source_label)
        return self.result


class CannedClient:
    def __init__(self, text):
        self.text = text
        self.requests = []

    async def acompletion(self, model, req, *, timeout_s=None, api_base=None, api_key=None):
        self.requests.append(req)
        return LLMResponse(text=self.text, provider="gemini", model=model, latency_ms=5)


def test_select_content_prefers_clean_text():
    assert select_content(_email(clean_text="clean", raw_html="<p>raw</p>")) == "clean"
    assert select_content(_email(clean_text="", raw_html="<p>raw</p>")) == "<p>raw</p>"
    assert select_content(_email()) == ""


def test_extractable_threshold_is_inclusive():
    gateway = ExtractionGateway(StaticExtractor(ExtractionResult()), PipelineSettings(min_content_chars=20))
    assert not gateway.is_extractable("a" * 19)
    assert gateway.is_extractable("a" * 20)
    assert not gateway.is_extractable("   " + "a" * 19 + "   ")
    assert not gateway.is_extractable("")


@pytest.mark.asyncio
async def test_gateway_defaults_source_label():
    extractor = StaticExtractor(ExtractionResult())
    gateway = ExtractionGateway(extractor, PipelineSettings())
    await gateway.extract("some content", None)
    await gateway.extract("some content", "Morning Brew")
    assert extractor.labels == ["Unknown Newsletter", "Morning Brew"]


@pytest.mark.asyncio
async def test_gateway_raises_on_reported_error():
    extractor = StaticExtractor(ExtractionResult(metadata={"error": "model overloaded"}))
    gateway = ExtractionGateway(extractor, PipelineSettings())
    with pytest.raises(ExtractionError, match="model overloaded"):
        await gateway.extract("some content", "Tech Weekly")


@pytest.mark.asyncio
async def test_gateway_rejects_wrong_result_type():
    gateway = ExtractionGateway(StaticExtractor({"companies": []}), PipelineSettings())
    with pytest.raises(ExtractionError):
        await gateway.extract("some content", "Tech Weekly")


def test_parse_plain_json_with_companies_key():
    result = parse_extraction(
        '{"companies": [{"name": "Acme", "industry": "Robotics", "confidence": 0.9}], "metadata": {}}'
    )
    assert [c.name for c in result.entities] == ["Acme"]
    assert result.entities[0].industry_tags == ["Robotics"]
    assert result.entities[0].confidence == 0.9


def test_parse_fenced_block():
    text = 'Here you go:\n```json\n{"entities": [{"name": "Globex"}]}\n```'
    assert [c.name for c in parse_extraction(text).entities] == ["Globex"]


def test_parse_bare_list():
    result = parse_extraction('[{"name": "Initech"}, {"name": "  "}, "junk"]')
    assert [c.name for c in result.entities] == ["Initech"]


@pytest.mark.parametrize("text", ["", "not json at all", "```json\n{broken\n```", "42"])
def test_parse_rejects_non_objects(text):
    with pytest.raises(LLMResponseInvalid):
        parse_extraction(text)


def test_extracted_company_coercions():
    company = ExtractedCompany.model_validate(
        {"name": " Acme ", "industryTags": ["AI", "AI", " Robotics "], "confidence": "1.7"}
    )
    assert company.name == "Acme"
    assert company.industry_tags == ["AI", "Robotics"]
    assert company.confidence == 1.0
    assert ExtractedCompany.model_validate({"name": "X", "confidence": "high"}).confidence is None


@pytest.mark.asyncio
async def test_llm_extractor_sends_json_mode_prompt():
    client = CannedClient('{"companies": [{"name": "Acme Robotics", "context": "raised a Series B"}]}')
    settings = LLMSettings(model="gemini/gemini-2.0-flash", max_content_chars=50)
    extractor = LLMCompanyExtractor(LLMService(settings, client=client), settings)

    result = await extractor.extract("x" * 200, "Tech Weekly")

    assert [c.name for c in result.entities] == ["Acme Robotics"]
    assert result.entities[0].context == "raised a Series B"
    req = client.requests[0]
    assert req.response_format == {"type": "json_object"}
    assert req.metadata["stage"] == "company_extract"
    assert req.messages[0].role == "system"
    assert "Tech Weekly" in req.messages[1].content
    assert "x" * 51 not in req.messages[1].content


@pytest.mark.asyncio
async def test_llm_extractor_invalid_output_raises():
    settings = LLMSettings()
    extractor = LLMCompanyExtractor(LLMService(settings, client=CannedClient("sorry, no")), settings)
    with pytest.raises(LLMResponseInvalid):
        await extractor.extract("Acme Robotics raised money", "Tech Weekly")

"""
Unit tests for GeminiService page extraction
"""
import pytest
from google.genai import errors

from medparse.services.gemini_service import GeminiService


@pytest.fixture
def service(fake_genai_client):
    return GeminiService(api_key="test-key", model="gemini-test", client=fake_genai_client)


@pytest.mark.asyncio
async def test_good_response_is_parsed(service, fake_genai_client, model_response, page_json):
    fake_genai_client.aio.models.generate_content.return_value = model_response(
        page_json(patientInfo={"fullName": "John Doe"}, extractionMetadata={"confidenceScore": 90})
    )

    result = await service.extract_page(b"jpeg-bytes", "image/jpeg", 1, 2)

    assert result.succeeded
    assert result.page_number == 1
    assert result.extraction.patient_info.full_name == "John Doe"
    assert result.extraction.extraction_metadata.confidence_score == 90


@pytest.mark.asyncio
async def test_request_carries_prompt_and_image(service, fake_genai_client, model_response):
    fake_genai_client.aio.models.generate_content.return_value = model_response("{}")

    await service.extract_page(b"png-bytes", "image/png", 3, 4)

    kwargs = fake_genai_client.aio.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    prompt, image_part = kwargs["contents"]
    assert "page 3 of 4" in prompt
    assert image_part.inline_data.mime_type == "image/png"
    assert image_part.inline_data.data == b"png-bytes"


@pytest.mark.asyncio
async def test_transport_failure_becomes_stub(service, fake_genai_client):
    fake_genai_client.aio.models.generate_content.side_effect = ConnectionError("connection reset")

    result = await service.extract_page(b"x", "image/jpeg", 2, 2)

    assert not result.succeeded
    assert result.extraction.document_summary == "Page 2 could not be processed - API error: ConnectionError"
    assert result.extraction.extraction_metadata.confidence_score == 0
    assert result.extraction.patient_info.full_name is None


@pytest.mark.asyncio
async def test_api_error_code_is_reported(service, fake_genai_client):
    fake_genai_client.aio.models.generate_content.side_effect = errors.APIError(
        503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}}
    )

    result = await service.extract_page(b"x", "image/jpeg", 1, 1)

    assert not result.succeeded
    assert result.extraction.document_summary == "Page 1 could not be processed - API error: 503"


@pytest.mark.asyncio
async def test_empty_response_becomes_read_error_stub(service, fake_genai_client, model_response):
    fake_genai_client.aio.models.generate_content.return_value = model_response(None)

    result = await service.extract_page(b"x", "image/jpeg", 1, 1)

    assert not result.succeeded
    assert result.extraction.document_summary == "Page 1 could not be processed - Response read error"


@pytest.mark.asyncio
async def test_unparseable_response_becomes_parse_stub(service, fake_genai_client, model_response):
    fake_genai_client.aio.models.generate_content.return_value = model_response("Sorry, the scan is blank.")

    result = await service.extract_page(b"x", "image/jpeg", 4, 5)

    assert not result.succeeded
    assert result.extraction.document_summary == "Page 4 content could not be parsed - JSON parsing failed"


@pytest.mark.asyncio
async def test_generate_text_rejects_empty_output(service, fake_genai_client, model_response):
    fake_genai_client.aio.models.generate_content.return_value = model_response("")

    with pytest.raises(ValueError):
        await service.generate_text("prompt", temperature=0.3, max_output_tokens=100)

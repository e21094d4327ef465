"""
Gemini service for page extraction and text generation
"""
import logging
from typing import Optional

from google import genai
from google.genai import errors, types
from google.genai.types import GenerateContentConfig

from ..config import settings
from ..exceptions import ParseFailure
from ..models.extraction import PageExtraction, PageResult
from .prompts import EXTRACTION_PROMPT_VERSION, build_extraction_prompt
from .response_parser import parse_page_extraction

logger = logging.getLogger(__name__)

class GeminiService:
    def __init__(self, api_key: Optional[str], model: str = settings.GEMINI_MODEL, client=None):
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self):
        """Lazily built so a missing key surfaces as a failed call, not an import error"""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _failed_page(self, page_number: int, summary: str) -> PageResult:
        logger.warning(f"Using fallback structure for page {page_number}: {summary}")
        return PageResult(
            page_number=page_number,
            extraction=PageExtraction.failed_stub(summary),
            succeeded=False,
        )

    async def extract_page(self, image_bytes: bytes, mime_type: str, page_number: int, total_pages: int) -> PageResult:
        """Extract one page image; never raises, failed pages come back as all-null stubs"""
        prompt = build_extraction_prompt(page_number, total_pages)
        logger.debug(f"Extracting page {page_number}/{total_pages} with prompt version {EXTRACTION_PROMPT_VERSION}")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    prompt,
                    types.Part.from_bytes(
                        data=image_bytes,
                        mime_type=mime_type,
                    ),
                ],
                config=GenerateContentConfig(
                    temperature=settings.EXTRACTION_TEMPERATURE,
                    max_output_tokens=settings.EXTRACTION_MAX_TOKENS,
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini API error for page {page_number}: {e.code} {e.message}")
            return self._failed_page(page_number, f"Page {page_number} could not be processed - API error: {e.code}")
        except Exception as e:
            logger.error(f"Gemini request failed for page {page_number}: {str(e)}")
            return self._failed_page(page_number, f"Page {page_number} could not be processed - API error: {type(e).__name__}")

        try:
            response_text = response.text
        except Exception as e:
            logger.error(f"Failed to read Gemini response for page {page_number}: {str(e)}")
            response_text = None
        if not response_text:
            return self._failed_page(page_number, f"Page {page_number} could not be processed - Response read error")

        try:
            extraction = parse_page_extraction(response_text)
        except ParseFailure as e:
            logger.error(f"Could not parse page {page_number}: {str(e)}")
            return self._failed_page(page_number, f"Page {page_number} content could not be parsed - JSON parsing failed")

        return PageResult(page_number=page_number, extraction=extraction, succeeded=True)

    async def generate_text(self, prompt: str, temperature: float, max_output_tokens: int) -> str:
        """Text-only generation; raises on API errors and empty responses"""
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[prompt],
            config=GenerateContentConfig(
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            ),
        )
        if not response.text:
            raise ValueError("Empty response from Gemini")
        return response.text

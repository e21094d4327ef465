"""
Core processing service: pages in, one persisted, scored document out
"""
import io
import asyncio
import logging
from dataclasses import dataclass
from typing import List

from PIL import Image
import pdf2image

from ..config import settings
from ..models.document import ProcessedDocument
from .confidence import score_document, score_page
from .merge_service import merge_pages, project_fields

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class PageImage:
    """One page image ready for the vision model"""
    data: bytes
    mime_type: str
    filename: str

class ProcessingService:
    def __init__(self, gemini_service, recommendation_service, db_service, storage_service,
                 timeout_seconds: float = settings.PROCESSING_TIMEOUT_SECONDS,
                 max_pdf_pages: int = settings.MAX_PDF_PAGES):
        self.gemini_service = gemini_service
        self.recommendation_service = recommendation_service
        self.db_service = db_service
        self.storage_service = storage_service
        self.timeout_seconds = timeout_seconds
        self.max_pdf_pages = max_pdf_pages

    def resize_image(self, image: Image.Image, max_size: int = 1920) -> Image.Image:
        """Resize image while preserving aspect ratio"""
        width, height = image.size
        if max(width, height) <= max_size:
            return image

        aspect_ratio = width / height
        if width > height:
            new_width = max_size
            new_height = int(max_size / aspect_ratio)
        else:
            new_height = max_size
            new_width = int(max_size * aspect_ratio)

        return image.resize((new_width, new_height), Image.LANCZOS)

    def convert_to_jpeg_bytes(self, image: Image.Image) -> bytes:
        """Convert PIL image to JPEG bytes"""
        img_byte_arr = io.BytesIO()
        if image.mode in ("RGBA", "P"):
            image = image.convert("RGB")
        image.save(img_byte_arr, format='JPEG', quality=95)
        return img_byte_arr.getvalue()

    def convert_pdf_to_images(self, content: bytes, filename: str) -> List[PageImage]:
        """Rasterize a PDF into JPEG page images"""
        images = pdf2image.convert_from_bytes(content, dpi=200)

        if len(images) > self.max_pdf_pages:
            logger.warning(f"PDF has {len(images)} pages. Limiting to {self.max_pdf_pages}")
            images = images[:self.max_pdf_pages]

        stem = filename.rsplit(".", 1)[0] if filename else "document"
        pages = [
            PageImage(
                data=self.convert_to_jpeg_bytes(self.resize_image(image)),
                mime_type="image/jpeg",
                filename=f"{stem}-page-{index}.jpg",
            )
            for index, image in enumerate(images, start=1)
        ]
        logger.info(f"Converted PDF to {len(pages)} images")
        return pages

    async def load_pages(self, content: bytes, content_type: str, filename: str) -> List[PageImage]:
        """Turn an uploaded file into ordered page images"""
        if content_type == "application/pdf":
            return await asyncio.to_thread(self.convert_pdf_to_images, content, filename)
        return [PageImage(data=content, mime_type=content_type, filename=filename)]

    async def extract_pages(self, pages: List[PageImage]) -> list:
        """Run the vision model over every page, strictly in page order"""
        total_pages = len(pages)
        results = []
        for page_number, page in enumerate(pages, start=1):
            logger.info(f"Processing page {page_number}/{total_pages}...")
            results.append(
                await self.gemini_service.extract_page(page.data, page.mime_type, page_number, total_pages)
            )
        return results

    async def process_document(self, pages: List[PageImage], original_filename: str) -> ProcessedDocument:
        """Full pipeline under the wall-clock ceiling; exceeding it raises asyncio.TimeoutError"""
        if not pages:
            raise ValueError("No pages to process")
        return await asyncio.wait_for(
            self._run_pipeline(pages, original_filename),
            timeout=self.timeout_seconds,
        )

    async def _run_pipeline(self, pages: List[PageImage], original_filename: str) -> ProcessedDocument:
        # 1. Store page images
        image_urls = []
        for page in pages:
            image_urls.append(await self.storage_service.upload(page.filename, page.data, page.mime_type))

        # 2. Extract and score every page
        results = await self.extract_pages(pages)
        page_scores = []
        for result in results:
            score = score_page(result.extraction, result.succeeded)
            page_scores.append(score)
            logger.info(f"Page {result.page_number} confidence score: {score}%")

        # 3. Merge into one document
        merged = merge_pages([result.extraction for result in results])
        confidence = score_document(page_scores)
        logger.info(f"Overall document confidence score: {confidence}% (pages: {page_scores})")

        # 4. Best-effort recommendations
        recommendations = await self.recommendation_service.generate(merged)

        # 5. Persist
        parsed_fields = [field.model_dump(mode="json") for field in project_fields(merged)]
        document_id = await self.db_service.insert_document(
            user_name=merged.patient.name,
            file_name=original_filename,
            file_size=sum(len(page.data) for page in pages),
            file_url=image_urls[0] if image_urls else None,
            image_urls=image_urls,
            document_type=merged.document.type,
            parsed_fields=parsed_fields,
            structured_data=merged.model_dump(by_alias=True, mode="json"),
            confidence_score=confidence,
            health_recommendations=recommendations.model_dump(by_alias=True, mode="json") if recommendations else None,
        )
        logger.info(f"Document saved with ID: {document_id}, pages processed: {len(pages)}")

        return ProcessedDocument(
            id=document_id,
            pages_processed=len(pages),
            image_urls=image_urls,
            confidence_score=confidence,
            page_scores=page_scores,
            health_recommendations=recommendations,
        )

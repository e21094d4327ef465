"""
Best-effort health recommendations for a merged document
"""
import json
import logging
from typing import Optional

from ..config import settings
from ..models.document import HealthRecommendations, MergedDocument
from .prompts import build_recommendation_prompt
from .response_parser import parse_fenced_block, parse_json_object, parse_repaired_span

logger = logging.getLogger(__name__)

# fenced block first, then the first {...} span
RECOMMENDATION_STRATEGIES = (parse_fenced_block, parse_repaired_span)

class RecommendationService:
    def __init__(self, gemini_service):
        self.gemini_service = gemini_service

    async def generate(self, merged: MergedDocument) -> Optional[HealthRecommendations]:
        """Ask the model for advice on the clinical subset; any failure yields None"""
        try:
            clinical_data = json.dumps(merged.clinical_summary(), indent=2, ensure_ascii=False)
            text = await self.gemini_service.generate_text(
                build_recommendation_prompt(clinical_data),
                temperature=settings.RECOMMENDATION_TEMPERATURE,
                max_output_tokens=settings.RECOMMENDATION_MAX_TOKENS,
            )
            data = parse_json_object(text, strategies=RECOMMENDATION_STRATEGIES)
            recommendations = HealthRecommendations.model_validate(data)
            logger.info("Health recommendations generated successfully")
            return recommendations
        except Exception as e:
            logger.warning(f"Health recommendation generation failed, continuing without: {str(e)}")
            return None

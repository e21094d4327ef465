"""
Confidence scoring for page extractions and whole documents
"""
import math
from typing import Iterable

from ..models.extraction import PageExtraction

DEFAULT_MODEL_CONFIDENCE = 70


def _completeness_fields(extraction: PageExtraction) -> list:
    return [
        extraction.patient_info.full_name,
        extraction.document_info.type,
        extraction.provider_info.hospital_name,
        extraction.provider_info.doctor_name,
        extraction.clinical_data.diagnosis,
    ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_page(extraction: PageExtraction, succeeded: bool) -> int:
    """
    Page confidence in [0, 100].

    Starts from the model's self-reported score (70 when absent), adjusts for
    how many of the five key fields are filled and whether any medications,
    procedures or lab results were found. A failed extraction always scores 0.
    """
    if not succeeded:
        return 0

    reported = extraction.extraction_metadata.confidence_score
    confidence = reported if reported is not None else DEFAULT_MODEL_CONFIDENCE

    present = sum(1 for value in _completeness_fields(extraction) if value)
    if present >= 4:
        confidence += 10
    elif present >= 2:
        confidence += 5
    else:
        confidence -= 20

    clinical = extraction.clinical_data
    if clinical.medications or clinical.procedures or clinical.lab_results:
        confidence += 10

    return max(0, min(100, _round_half_up(confidence)))


def score_document(page_scores: Iterable[int]) -> int:
    """Rounded mean of the page scores, 0 when nothing was scored"""
    scores = list(page_scores)
    if not scores:
        return 0
    return _round_half_up(sum(scores) / len(scores))

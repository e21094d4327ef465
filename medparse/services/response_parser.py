"""
Recover a JSON object from free-text model output

The model does not always honour "return only JSON", so parsing runs an ordered
list of strategies and keeps the first one that yields an object.
"""
import json
import re
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pydantic import ValidationError

from ..exceptions import ParseFailure
from ..models.extraction import PageExtraction

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
OBJECT_SPAN_RE = re.compile(r"\{[\s\S]*\}")
TRAILING_COMMA_OBJECT_RE = re.compile(r",\s*}")
TRAILING_COMMA_ARRAY_RE = re.compile(r",\s*]")
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParseAttempt:
    """Result of one parsing strategy"""
    strategy: str
    data: Optional[dict] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def _load_object(strategy: str, candidate: str) -> ParseAttempt:
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, ValueError) as e:
        return ParseAttempt(strategy, error=str(e))
    if not isinstance(data, dict):
        return ParseAttempt(strategy, error=f"expected a JSON object, got {type(data).__name__}")
    return ParseAttempt(strategy, data=data)


def repair_json_text(text: str) -> str:
    """Drop trailing commas and collapse newlines, tabs and runs of whitespace"""
    text = TRAILING_COMMA_OBJECT_RE.sub("}", text)
    text = TRAILING_COMMA_ARRAY_RE.sub("]", text)
    text = text.replace("\n", " ").replace("\r", "").replace("\t", " ")
    return WHITESPACE_RE.sub(" ", text)


def parse_direct(text: str) -> ParseAttempt:
    return _load_object("direct", text)


def parse_fenced_block(text: str) -> ParseAttempt:
    match = FENCED_BLOCK_RE.search(text)
    if not match:
        return ParseAttempt("fenced_block", error="no code block found")
    return _load_object("fenced_block", match.group(1).strip())


def parse_repaired_span(text: str) -> ParseAttempt:
    match = OBJECT_SPAN_RE.search(text)
    if not match:
        return ParseAttempt("repaired_span", error="no JSON object found")
    return _load_object("repaired_span", repair_json_text(match.group(0)))


PARSE_STRATEGIES: Tuple[Callable[[str], ParseAttempt], ...] = (
    parse_direct,
    parse_fenced_block,
    parse_repaired_span,
)


def parse_json_object(text: str, strategies=PARSE_STRATEGIES) -> dict:
    """Return the first JSON object any strategy recovers, else raise ParseFailure"""
    attempts = []
    for strategy in strategies:
        attempt = strategy(text or "")
        if attempt.ok:
            logger.debug(f"Parsed model response with '{attempt.strategy}' strategy")
            return attempt.data
        attempts.append(attempt)

    preview = (text or "")[:500]
    logger.error(f"All JSON parsing attempts failed. Response preview: {preview!r}")
    raise ParseFailure("All JSON parsing attempts failed", tuple(attempts))


def parse_page_extraction(text: str) -> PageExtraction:
    """Parse model output into a PageExtraction; schema violations are parse failures"""
    data = parse_json_object(text)
    try:
        return PageExtraction.model_validate(data)
    except ValidationError as e:
        raise ParseFailure(f"Response does not match the page extraction schema: {e}") from e

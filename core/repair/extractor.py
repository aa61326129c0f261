#!/usr/bin/env python3
"""
Extraction Orchestrator - turns raw LLM output into a JSON object.

LLM completions are often wrapped in markdown fences, cut off mid-value or
slightly malformed. The extractor walks an ordered fallback chain and fails
loudly with ExtractionFailure only when nothing decodes.
"""
import logging
import re
from typing import Any, Dict, Optional, Tuple

from core.exceptions import ExtractionFailure
from core.repair.scanner import scan
from core.repair.strategies import (
    RepairChain,
    close_unbalanced,
    direct_decode,
    extract_partial,
)

logger = logging.getLogger(__name__)

EXTRACTION_FAILURE_MESSAGE = (
    "Failed to parse JSON from LLM response. Output may be truncated or malformed."
)

# Shapes a completion commonly ends with right after a complete value
TRUNCATION_MARKERS = ('",', '"},', '"]', '}]', ']}', 'true,', 'false,', 'null,')
MAX_MARKER_TRIM = 10
RAW_PREVIEW_LENGTH = 200

_FENCE_JSON = re.compile(r"```json\s*")
_FENCE = re.compile(r"```\s*")
_TRAILING_SEPARATORS = re.compile(r"[,:\s]+$")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers and surrounding whitespace."""
    cleaned = _FENCE_JSON.sub("", text)
    cleaned = _FENCE.sub("", cleaned)
    return cleaned.strip()


def _trim_at_markers(candidate: str) -> Optional[Dict[str, Any]]:
    for ending in TRUNCATION_MARKERS:
        last_pos = candidate.rfind(ending)
        if last_pos <= 0:
            continue
        for trim in range(MAX_MARKER_TRIM):
            end = last_pos + len(ending) - 1 - trim
            if end <= 0:
                break
            truncated = _TRAILING_SEPARATORS.sub("", candidate[:end])
            record = direct_decode(close_unbalanced(truncated))
            if record is not None:
                return record
    return None


def _rollback_to_member_boundary(candidate: str) -> Optional[Dict[str, Any]]:
    """Cut back to the last complete member and close what is still open.

    Cut points are commas outside strings (the member before one is complete)
    and container openings. An object opening only counts when a key or
    nothing follows it, so unrelated text after '{' is not turned into '{}'.

    Only applies to truncated text. Once the top-level object has closed,
    trailing text is left to partial extraction.
    """
    state = scan(candidate)
    if state.last_top_level_close >= 0:
        return None

    cut_points = list(state.separators)
    for idx in state.openings:
        following = candidate[idx + 1:].lstrip()
        if candidate[idx] == "[" or not following or following[0] == '"':
            cut_points.append(idx + 1)

    for cut in sorted(set(cut_points), reverse=True):
        prefix = candidate[:cut].rstrip()
        if not prefix or prefix.endswith(":"):
            continue
        record = direct_decode(close_unbalanced(prefix))
        if record is not None:
            logger.warning(f"Recovered JSON by rolling back to offset {cut} ({len(record)} keys)")
            return record
    return None


class JsonExtractor:
    """Ordered fallback chain from raw LLM text to a JSON object.

    Steps:
    1. Strip code fences and whitespace, try a direct decode
    2. Take the text from the first '{' as the candidate region
    3. Run the repair chain (direct, closure, truncation, aggressive)
    4. Roll back to the last complete member and close
    5. Trim back to known truncation markers and close
    6. Partial extraction
    """

    def __init__(self, repair_chain: Optional[RepairChain] = None):
        self.repair_chain = repair_chain or RepairChain()

    def extract_with_strategy(self, text: str) -> Tuple[Dict[str, Any], str]:
        """Extract a record and report which step produced it.

        Raises:
            ExtractionFailure: If no step yields a decodable object
        """
        cleaned = strip_code_fences(text or "")

        record = direct_decode(cleaned)
        if record is not None:
            return record, "direct"

        start = cleaned.find("{")
        if start >= 0:
            candidate = cleaned[start:]

            outcome = self.repair_chain.run(candidate)
            if outcome.succeeded:
                return outcome.record, outcome.strategy

            record = _rollback_to_member_boundary(candidate)
            if record is not None:
                return record, "rollback"

            record = _trim_at_markers(candidate)
            if record is not None:
                logger.debug("JSON recovered by trimming to a truncation marker")
                return record, "markers"

            record = extract_partial(candidate)
            if record is not None:
                return record, "partial"

        logger.error(f"JSON extraction failed for LLM output of {len(cleaned)} chars")
        raise ExtractionFailure(EXTRACTION_FAILURE_MESSAGE, raw_preview=cleaned[:RAW_PREVIEW_LENGTH])

    def extract(self, text: str) -> Dict[str, Any]:
        record, _ = self.extract_with_strategy(text)
        return record


def extract_json_from_llm(text: str) -> Dict[str, Any]:
    """Extract a JSON object from LLM output (may be fenced, truncated or malformed).

    Raises:
        ExtractionFailure: If no valid JSON object can be recovered
    """
    return JsonExtractor().extract(text)

"""
Free-text score extraction.

Model replies are prose; the score is read from the "N/100" notation the
prompts ask for ("N out of 100" is read the same way). Two precedence policies exist and are not interchangeable:

- MAX: the highest of all "N/100" matches. Used by the comprehensive phases
  so the highest claimed score survives pushback.
- LAST: the last "N/100" match. Used for single free-text scans (the quick
  protocol).

When no "N/100" is present the last bare one- or two-digit integer is used, and
failing that a fixed fallback default (75, or 85 for detailed analyses). The
fallback is deliberate and never raised to callers.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..errors import ParseError

logger = logging.getLogger(__name__)

SCORE_PATTERN = re.compile(r"(\d+)\s*(?:/|out\s+of)\s*100\b", re.IGNORECASE)
# Two digits at most, so the "100" of "72 out of 100" is never a score
BARE_INTEGER_PATTERN = re.compile(r"(?<![\d/.])(\d{1,2})(?![\d/]|\.\d)")

DEFAULT_SCORE = 75
DETAILED_DEFAULT_SCORE = 85
_DETAILED_MIN_CHARS = 2000
_DETAIL_TERMS = ("insight", "logic", "original")


class ScorePolicy(str, Enum):
    MAX = "max"
    LAST = "last"


@dataclass(frozen=True)
class ScoreExtraction:
    score: int
    source: str  # "pattern", "bare" or "default"


def clamp_score(value: int) -> int:
    return max(0, min(100, int(value)))


def find_scores(text: str) -> List[int]:
    """All "N/100" values in order of appearance, clamped to [0, 100]."""
    return [clamp_score(int(m.group(1))) for m in SCORE_PATTERN.finditer(text or "")]


def parse_score_strict(text: str, policy: ScorePolicy = ScorePolicy.LAST) -> int:
    """
    Read a score from "N/100" notation or a bare integer.

    Raises:
        ParseError: if the text carries no usable number.
    """
    scores = find_scores(text)
    if scores:
        return max(scores) if policy is ScorePolicy.MAX else scores[-1]

    bare = [int(m.group(1)) for m in BARE_INTEGER_PATTERN.finditer(text or "")]
    for value in reversed(bare):
        if 0 <= value <= 100:
            return value
    raise ParseError("No numeric score found in response.")


def fallback_score(text: str) -> int:
    """
    Default used when a response carries no score at all.

    Long responses that discuss at least two of insight/logic/originality are
    treated as a detailed analysis.
    """
    lowered = (text or "").lower()
    if len(lowered) > _DETAILED_MIN_CHARS:
        hits = sum(1 for term in _DETAIL_TERMS if term in lowered)
        if hits >= 2:
            return DETAILED_DEFAULT_SCORE
    return DEFAULT_SCORE


def extract(text: str, policy: ScorePolicy = ScorePolicy.LAST, default: Optional[int] = None) -> ScoreExtraction:
    if find_scores(text):
        return ScoreExtraction(parse_score_strict(text, policy), "pattern")
    try:
        return ScoreExtraction(parse_score_strict(text, policy), "bare")
    except ParseError:
        score = clamp_score(default) if default is not None else fallback_score(text)
        logger.warning(f"No score found in response ({len(text or '')} chars); using fallback {score}/100")
        return ScoreExtraction(score, "default")


def extract_score(text: str, policy: ScorePolicy = ScorePolicy.LAST, default: Optional[int] = None) -> int:
    """Integer score in [0, 100] read from text. Never raises."""
    return extract(text, policy, default).score

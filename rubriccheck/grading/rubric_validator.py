"""Heuristic check for rubrics too vague to grade against reliably."""

from dataclasses import dataclass, field
from typing import List

VAGUE_PHRASES = (
    "demonstrates understanding",
    "adequate",
    "sufficient",
    "appropriate",
    "clear enough",
    "meets expectations",
)
MIN_STRUCTURED_LINES = 3
LONG_RUBRIC_CHARS = 200


@dataclass(frozen=True)
class RubricQuality:
    is_vague: bool
    reasons: List[str] = field(default_factory=list)


def check_rubric_quality(text: str) -> RubricQuality:
    """
    Flag vague wording and missing structure.

    Point values are not required: plain requirement lists are graded with equal weights.
    """
    if not text or not text.strip():
        return RubricQuality(is_vague=False)

    reasons = []
    lower_text = text.lower()
    if any(phrase in lower_text for phrase in VAGUE_PHRASES):
        reasons.append("Contains vague language")

    # A long rubric squeezed into one or two lines has no separable criteria
    line_count = len([line for line in text.split("\n") if line.strip()])
    if len(text) > LONG_RUBRIC_CHARS and line_count < MIN_STRUCTURED_LINES:
        reasons.append("Missing clear structure")

    return RubricQuality(is_vague=bool(reasons), reasons=reasons)

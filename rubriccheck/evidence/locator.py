"""Fuzzy location of model-quoted evidence inside the submitted text.

Evidence returned by the model is only approximately verbatim: it may carry a label prefix
("Quote:", "Topic Sentence 2:"), different quote characters, or different whitespace and
punctuation. The locator reduces the evidence to its alphanumeric tokens and matches them in
order, allowing any run of non-alphanumeric characters between consecutive tokens.
"""

from __future__ import annotations

import re
from typing import List, Optional, Pattern

from rubriccheck.grading.models import Status
from .models import MatchSpec, Segment

MIN_EVIDENCE_LENGTH = 5

# Labels the grading prompt's answers put in front of a quote. Anything else before a colon
# ("The narrator says:") is part of the quote.
EVIDENCE_LABELS = ("topic sentence", "evidence", "quote", "context")
LABEL_PREFIX = re.compile(
    r"^\s*(?:%s)(?:[ \t]*\d+)?[ \t]*:\s*" % "|".join(re.escape(label) for label in EVIDENCE_LABELS),
    re.IGNORECASE,
)
QUOTE_CHARS = "\"'`“”‘’«»„"
TOKEN = re.compile(r"[^\W_]+")
SEPARATOR = r"[\W_]+"


def clean_evidence(evidence: Optional[str]) -> str:
    """
    Strip known label prefixes, wrapping quotes and surrounding whitespace.

    Repeats until nothing changes, so ``clean_evidence(clean_evidence(x)) == clean_evidence(x)``.
    """
    cleaned = evidence or ""
    previous = None
    while cleaned != previous:
        previous = cleaned
        cleaned = LABEL_PREFIX.sub("", cleaned, count=1)
        cleaned = cleaned.strip().strip(QUOTE_CHARS).strip()
    return cleaned


def tokenize_evidence(cleaned: str) -> List[str]:
    return TOKEN.findall(cleaned)


def build_pattern(evidence: Optional[str],
                  min_length: int = MIN_EVIDENCE_LENGTH) -> Optional[Pattern[str]]:
    """
    Compile the case-insensitive flexible pattern for ``evidence``.

    Returns None when the evidence is empty, too short to be meaningful, or has no tokens.
    """
    if not evidence or len(evidence.strip()) < min_length:
        return None
    cleaned = clean_evidence(evidence)
    if len(cleaned) < min_length:
        return None
    tokens = tokenize_evidence(cleaned)
    if not tokens:
        return None
    return re.compile(SEPARATOR.join(re.escape(t) for t in tokens), re.IGNORECASE)


def locate(evidence: Optional[str], source: Optional[str],
           min_length: int = MIN_EVIDENCE_LENGTH) -> Optional[MatchSpec]:
    """Find the first occurrence of ``evidence`` in ``source``."""
    if not source:
        return None
    pattern = build_pattern(evidence, min_length)
    if pattern is None:
        return None
    match = pattern.search(source)
    if match is None:
        return None
    return MatchSpec(
        evidence=clean_evidence(evidence),
        pattern=pattern,
        start=match.start(),
        end=match.end(),
        matched_text=match.group(),
    )


def is_locatable(evidence: Optional[str], source: Optional[str],
                 min_length: int = MIN_EVIDENCE_LENGTH) -> bool:
    return locate(evidence, source, min_length) is not None


def split_highlights(source: str, evidence: Optional[str], status: Optional[Status] = None,
                     min_length: int = MIN_EVIDENCE_LENGTH) -> List[Segment]:
    """
    Split ``source`` into plain and highlighted segments for one evidence string.

    Every occurrence is highlighted and tagged with ``status``. Joining the segment texts
    reproduces ``source`` exactly; unlocatable evidence yields a single plain segment.
    """
    pattern = build_pattern(evidence, min_length) if source else None
    if pattern is None:
        return [Segment(text=source)]

    segments: List[Segment] = []
    position = 0
    for match in pattern.finditer(source):
        if match.start() > position:
            segments.append(Segment(text=source[position:match.start()]))
        segments.append(Segment(text=match.group(), highlighted=True, status=status))
        position = match.end()

    if not segments:
        return [Segment(text=source)]
    if position < len(source):
        segments.append(Segment(text=source[position:]))
    return segments

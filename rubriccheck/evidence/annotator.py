"""Render pass that maps one focused criterion's evidence onto the submission."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from rubriccheck.grading.models import CriterionResult
from .locator import MIN_EVIDENCE_LENGTH, is_locatable, locate, split_highlights
from .markers import markers_for_file
from .models import AnnotatedSource, MatchSpec, Segment, SourceDocument


def criterion_is_locatable(criterion: CriterionResult, sources: Sequence[SourceDocument],
                           min_length: int = MIN_EVIDENCE_LENGTH) -> bool:
    """Visual evidence is always locatable; text evidence must match some source."""
    if criterion.visual_coordinates is not None:
        return True
    return any(is_locatable(criterion.evidence, s.text, min_length) for s in sources)


def locatability(criteria: Sequence[CriterionResult], sources: Sequence[SourceDocument],
                 min_length: int = MIN_EVIDENCE_LENGTH) -> List[bool]:
    return [criterion_is_locatable(c, sources, min_length) for c in criteria]


def find_evidence(criterion: CriterionResult, sources: Sequence[SourceDocument],
                  min_length: int = MIN_EVIDENCE_LENGTH) -> Optional[Tuple[SourceDocument, MatchSpec]]:
    """First source (pasted text before files) that contains the criterion's evidence."""
    for source in sources:
        match = locate(criterion.evidence, source.text, min_length)
        if match is not None:
            return source, match
    return None


def annotate(criteria: Sequence[CriterionResult], focused_index: Optional[int],
             sources: Sequence[SourceDocument],
             min_length: int = MIN_EVIDENCE_LENGTH) -> List[AnnotatedSource]:
    """
    Build highlight segments and markers for every source.

    Only the focused criterion's evidence is highlighted, coloured by its effective status,
    so overlapping evidence from different criteria never collides. Markers for all
    criteria are placed on the file they point at.
    """
    focused = None
    if focused_index is not None:
        if not 0 <= focused_index < len(criteria):
            raise IndexError(f"No criterion at index {focused_index}")
        focused = criteria[focused_index]

    annotated = []
    for source in sources:
        if not source.is_searchable:
            segments: List[Segment] = []
        elif focused is None:
            segments = [Segment(text=source.text)]
        else:
            segments = split_highlights(source.text, focused.evidence,
                                        focused.effective_status, min_length)
        markers = markers_for_file(criteria, source.file_index) if source.file_index is not None else []
        annotated.append(AnnotatedSource(source=source, segments=segments, markers=markers))
    return annotated

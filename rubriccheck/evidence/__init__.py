"""Evidence location and highlighting."""

from .annotator import annotate, criterion_is_locatable, find_evidence, locatability
from .locator import clean_evidence, is_locatable, locate, split_highlights
from .markers import markers_for_file, resolve_marker
from .models import AnnotatedSource, MarkerPosition, MatchSpec, Segment, SourceDocument
from .sources import build_sources, decode_file_text

__all__ = [
    "annotate",
    "criterion_is_locatable",
    "find_evidence",
    "locatability",
    "clean_evidence",
    "is_locatable",
    "locate",
    "split_highlights",
    "markers_for_file",
    "resolve_marker",
    "AnnotatedSource",
    "MarkerPosition",
    "MatchSpec",
    "Segment",
    "SourceDocument",
    "build_sources",
    "decode_file_text",
]

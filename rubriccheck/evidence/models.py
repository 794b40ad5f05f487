"""Data models for locating evidence and placing highlights."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from rubriccheck.grading.models import Status


@dataclass(frozen=True)
class MatchSpec:
    """Where a cleaned evidence string was found in a source text."""

    evidence: str
    pattern: Pattern[str]
    start: int
    end: int
    matched_text: str


@dataclass(frozen=True)
class Segment:
    """A run of source text, highlighted when it matches the focused evidence."""

    text: str
    highlighted: bool = False
    status: Optional[Status] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "highlighted": self.highlighted,
            "status": self.status.value if self.status else None,
        }


@dataclass(frozen=True)
class MarkerPosition:
    """
    Marker anchored at the bottom tip of the pointer graphic.

    ``x``/``y`` are percentages of the rendered image, so the position holds at any size.
    """

    criterion_index: int
    file_index: int
    x: float
    y: float
    status: Status

    def to_dict(self) -> Dict[str, object]:
        return {
            "criterion_index": self.criterion_index,
            "file_index": self.file_index,
            "x": self.x,
            "y": self.y,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SourceDocument:
    """Searchable text from the pasted submission or one uploaded file."""

    label: str
    text: Optional[str]
    file_index: Optional[int] = None
    mime_type: str = "text/plain"

    @property
    def is_searchable(self) -> bool:
        return bool(self.text)


@dataclass
class AnnotatedSource:
    """Render-ready view of one source for the focused criterion."""

    source: SourceDocument
    segments: List[Segment] = field(default_factory=list)
    markers: List[MarkerPosition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "label": self.source.label,
            "file_index": self.source.file_index,
            "mime_type": self.source.mime_type,
            "segments": [s.to_dict() for s in self.segments],
            "markers": [m.to_dict() for m in self.markers],
        }

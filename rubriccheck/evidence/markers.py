"""Markers for evidence the model located inside uploaded images or PDF pages."""

from typing import List, Optional, Sequence

from rubriccheck.grading.models import CriterionResult
from .models import MarkerPosition


def resolve_marker(criterion: CriterionResult, target_file_index: int,
                   criterion_index: int = 0) -> Optional[MarkerPosition]:
    """
    Marker for ``criterion`` on the file at ``target_file_index``, if it belongs there.

    Criteria without visual coordinates have no marker, and a marker is only drawn on the
    file its ``file_index`` names.
    """
    coords = criterion.visual_coordinates
    if coords is None:
        return None
    if coords.file_index != target_file_index:
        return None
    return MarkerPosition(
        criterion_index=criterion_index,
        file_index=coords.file_index,
        x=coords.x,
        y=coords.y,
        status=criterion.effective_status,
    )


def markers_for_file(criteria: Sequence[CriterionResult], file_index: int) -> List[MarkerPosition]:
    """All markers that land on one file, in criterion order."""
    markers = []
    for idx, criterion in enumerate(criteria):
        marker = resolve_marker(criterion, file_index, criterion_index=idx)
        if marker is not None:
            markers.append(marker)
    return markers

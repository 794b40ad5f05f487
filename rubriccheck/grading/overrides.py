"""Manual status overrides layered on top of the model's verdicts."""

from typing import Optional, Union

from .aggregation import Tally, aggregate
from .models import AnalysisResult, Status


def apply_override(result: AnalysisResult, index: int,
                   new_status: Optional[Union[Status, str]]) -> AnalysisResult:
    """
    Return a copy of ``result`` with ``criteria[index].user_status`` set to ``new_status``.

    ``None`` clears the override so the original verdict applies again. The original
    ``status`` and every other criterion are untouched, and ``result`` itself is never
    modified, so earlier snapshots stay valid for undo or comparison.
    """
    if not 0 <= index < len(result.criteria):
        raise IndexError(f"No criterion at index {index}")
    if new_status is not None:
        new_status = Status(new_status)

    current = result.criteria[index]
    if current.user_status == new_status:
        return result

    criteria = list(result.criteria)
    criteria[index] = current.model_copy(update={"user_status": new_status})
    return result.model_copy(update={"criteria": criteria})


def clear_overrides(result: AnalysisResult) -> AnalysisResult:
    """Drop every manual override."""
    if all(c.user_status is None for c in result.criteria):
        return result
    criteria = [c.model_copy(update={"user_status": None}) for c in result.criteria]
    return result.model_copy(update={"criteria": criteria})


def live_metrics(result: AnalysisResult) -> Tally:
    """Counts and score reflecting overrides, for display after every change."""
    return aggregate(result.criteria, fallback_score=result.summary.score)

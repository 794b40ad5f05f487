"""Score aggregation over per-criterion statuses."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence

from .models import CriterionResult, Status

# Weights in half-points so the arithmetic stays exact: met=1.0, weak=0.5, missing=0.0
HALF_POINTS = {Status.MET: 2, Status.WEAK: 1, Status.MISSING: 0}


@dataclass(frozen=True)
class Tally:
    met: int
    weak: int
    missing: int
    score: int

    @property
    def total(self) -> int:
        return self.met + self.weak + self.missing


def weighted_score(met: int, weak: int, missing: int) -> int:
    """
    Percentage score with round-half-up.

    score = round((met + 0.5 * weak) / total * 100), computed with integers so that
    e.g. 2 met, 1 weak, 1 missing gives exactly 62.5 -> 63.
    """
    total = met + weak + missing
    if total <= 0:
        raise ValueError("Cannot score an empty criteria list")
    numerator = (met * HALF_POINTS[Status.MET] + weak * HALF_POINTS[Status.WEAK]) * 100
    denominator = 2 * total
    return (2 * numerator + denominator) // (2 * denominator)


def aggregate(criteria: Sequence[CriterionResult], fallback_score: int = 0,
              use_overrides: bool = True) -> Tally:
    """
    Count criteria by effective status and compute the weighted score.

    Pure: the input is not modified and repeated calls return equal tallies. An empty
    list keeps ``fallback_score`` (the last known summary score) instead of dividing by zero.
    """
    counts = {Status.MET: 0, Status.WEAK: 0, Status.MISSING: 0}
    for c in criteria:
        status = c.effective_status if use_overrides else c.status
        counts[status] += 1

    met, weak, missing = counts[Status.MET], counts[Status.WEAK], counts[Status.MISSING]
    if not criteria:
        return Tally(met=0, weak=0, missing=0, score=fallback_score)
    return Tally(met=met, weak=weak, missing=missing, score=weighted_score(met, weak, missing))


def animate_score(target: int, start: int = 0, frames: int = 50) -> Iterator[int]:
    """
    Yield displayed score values easing out from ``start`` toward ``target``.

    Uses an exponential ease-out; the last value is always exactly ``target``.
    """
    if frames < 1:
        raise ValueError("frames must be positive")
    for i in range(1, frames):
        progress = i / frames
        eased = 1 - math.pow(2, -10 * progress)
        yield math.floor(start + (target - start) * eased)
    yield target

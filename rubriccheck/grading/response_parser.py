"""Parse the grading model's reply into an AnalysisResult.

The model answers in one of two JSON encodings:

* shape A, a mapping of criterion name to ``{score, why, evidence, exact_fix}``, either at the
  top level or under a ``criteria`` key, optionally next to ``ai_score``;
* shape B, ``{summary, criteria}`` where ``criteria`` is already a list of criterion records.

Shape A is tried first, then shape B. If neither validates the reply is rejected with
InvalidModelOutput rather than replaced by defaults.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from rubriccheck.libs.errors import InvalidModelOutput
from .aggregation import aggregate
from .models import (
    AIAnalysis,
    AnalysisResult,
    CriterionResult,
    Status,
    Summary,
    TopFix,
    VisualCoordinates,
)

LOG = logging.getLogger(__name__)

CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
META_KEYS = {"ai_score", "ai_analysis", "summary"}
MAX_TOP_FIXES = 3


class _RawEntry(BaseModel):
    """Value side of a shape A mapping."""
    model_config = ConfigDict(extra="ignore")

    score: Optional[Any] = None
    status: Optional[Any] = None
    why: Optional[str] = None
    evidence: Optional[str] = None
    exact_fix: Optional[str] = None
    visual_coordinates: Optional[Any] = None


class _RawRecord(_RawEntry):
    """Element of a shape B criteria list."""
    criterion: str


class _MappingShape(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ai_score: Optional[Any] = None
    ai_analysis: Optional[Any] = None
    criteria: Dict[str, _RawEntry]


class _ListShape(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: Optional[Dict[str, Any]] = None
    criteria: List[_RawRecord]


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers the model sometimes wraps JSON in."""
    return CODE_FENCE.sub("", text).strip()


def load_json(text: str) -> Any:
    """Decode the model reply as JSON, tolerating fences and surrounding prose."""
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Look for a JSON object embedded in prose
    json_match = re.search(r'{.*}', cleaned, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group())
        except json.JSONDecodeError:
            pass
    raise InvalidModelOutput("Model reply is not valid JSON", raw_text=text)


def normalize_status(value: Any) -> Status:
    """Case-fold a verdict into the three-way enum; anything unrecognized counts as missing."""
    if isinstance(value, Status):
        return value
    if isinstance(value, str):
        folded = value.strip().lower()
        for status in Status:
            if folded == status.value:
                return status
    LOG.warning("Unrecognized criterion status %r, treating as missing", value)
    return Status.MISSING


def normalize_ai_score(value: Any) -> int:
    if value is None:
        return 0
    try:
        score = float(value)
    except (TypeError, ValueError):
        LOG.warning("Ignoring non-numeric ai_score %r", value)
        return 0
    return int(min(100, max(0, round(score))))


def derive_ai_analysis(ai_score: int) -> AIAnalysis:
    if ai_score > 70:
        return AIAnalysis(risk_level="high", verdict_summary="High likelihood of AI involvement.")
    if ai_score > 40:
        return AIAnalysis(risk_level="moderate", verdict_summary="Moderate AI patterns detected.")
    return AIAnalysis(risk_level="low", verdict_summary="Low AI likelihood.")


def _ai_analysis(raw: Any, ai_score: int) -> AIAnalysis:
    if isinstance(raw, dict):
        try:
            return AIAnalysis.model_validate(raw)
        except ValidationError as exc:
            LOG.warning("Ignoring malformed ai_analysis block: %s", exc)
    return derive_ai_analysis(ai_score)


def _coordinates(raw: Any, name: str) -> Optional[VisualCoordinates]:
    if raw is None:
        return None
    try:
        return VisualCoordinates.model_validate(raw)
    except ValidationError as exc:
        LOG.warning("Dropping malformed visual_coordinates for %r: %s", name, exc)
        return None


def _criterion(name: str, entry: _RawEntry, status_value: Any) -> CriterionResult:
    return CriterionResult(
        criterion=name,
        status=normalize_status(status_value),
        why=entry.why or "",
        evidence=entry.evidence or "",
        exact_fix=entry.exact_fix or "",
        visual_coordinates=_coordinates(entry.visual_coordinates, name),
    )


def build_result(criteria: List[CriterionResult], ai_score: int = 0,
                 ai_analysis: Optional[AIAnalysis] = None) -> AnalysisResult:
    """
    Assemble an AnalysisResult, computing the summary from the criteria themselves.

    Any score the model echoed is ignored so the summary always agrees with the list.
    """
    tally = aggregate(criteria, use_overrides=False)
    top_fixes = [
        TopFix(fix=c.criterion, reason=c.exact_fix or c.why)
        for c in criteria
        if c.status != Status.MET
    ][:MAX_TOP_FIXES]
    summary = Summary(
        score=tally.score,
        ai_score=ai_score,
        ai_analysis=ai_analysis or derive_ai_analysis(ai_score),
        met=tally.met,
        weak=tally.weak,
        missing=tally.missing,
        top_fixes=top_fixes,
    )
    return AnalysisResult(summary=summary, criteria=criteria)


def _parse_mapping_shape(data: Any) -> AnalysisResult:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    if "criteria" not in data:
        data = {
            "ai_score": data.get("ai_score"),
            "ai_analysis": data.get("ai_analysis"),
            "criteria": {k: v for k, v in data.items() if k not in META_KEYS},
        }
    shape = _MappingShape.model_validate(data)

    criteria = []
    seen = set()
    for key, entry in shape.criteria.items():
        name = key.replace("_", " ").strip()
        if name in seen:
            raise ValueError(f"duplicate criterion {name!r}")
        seen.add(name)
        criteria.append(_criterion(
            name, entry, entry.score if entry.score is not None else entry.status
        ))
    ai_score = normalize_ai_score(shape.ai_score)
    return build_result(criteria, ai_score, _ai_analysis(shape.ai_analysis, ai_score))


def _parse_list_shape(data: Any) -> AnalysisResult:
    shape = _ListShape.model_validate(data)

    criteria = []
    seen = set()
    for record in shape.criteria:
        name = record.criterion.strip()
        if name in seen:
            raise ValueError(f"duplicate criterion {name!r}")
        seen.add(name)
        criteria.append(_criterion(
            name, record, record.status if record.status is not None else record.score
        ))

    summary = shape.summary or {}
    ai_score = normalize_ai_score(summary.get("ai_score"))
    return build_result(criteria, ai_score, _ai_analysis(summary.get("ai_analysis"), ai_score))


def parse_analysis(text: str) -> AnalysisResult:
    """Turn raw model text into a normalized AnalysisResult or raise InvalidModelOutput."""
    data = load_json(text)

    errors = []
    for parser in (_parse_mapping_shape, _parse_list_shape):
        try:
            result = parser(data)
        except (ValidationError, ValueError) as exc:
            errors.append(f"{parser.__name__}: {exc}")
            continue
        if not result.criteria:
            raise InvalidModelOutput("Model reply contains no criteria", raw_text=text)
        return result

    LOG.error("Model reply matched no known shape: %s", "; ".join(errors))
    raise InvalidModelOutput("Model reply does not match a known grading shape", raw_text=text)


def parse_rewrites(text: str) -> List[str]:
    """Decode a JSON array of rewrite suggestions."""
    data = load_json(text)
    if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
        raise InvalidModelOutput("Rewrite reply is not a JSON array of strings", raw_text=text)
    return data

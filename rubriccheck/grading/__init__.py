"""Rubric grading: models, orchestration, aggregation and overrides."""

from .aggregation import Tally, aggregate, animate_score
from .fingerprint import FingerprintCache, fingerprint
from .grader import RubricGrader
from .models import (
    AnalysisResult,
    ChatMessage,
    CriterionResult,
    GradingRequest,
    Status,
    Summary,
    UploadedFile,
    VisualCoordinates,
)
from .overrides import apply_override, clear_overrides, live_metrics
from .response_parser import parse_analysis
from .rubric_validator import RubricQuality, check_rubric_quality

__all__ = [
    'Tally',
    'aggregate',
    'animate_score',
    'FingerprintCache',
    'fingerprint',
    'RubricGrader',
    'AnalysisResult',
    'ChatMessage',
    'CriterionResult',
    'GradingRequest',
    'Status',
    'Summary',
    'UploadedFile',
    'VisualCoordinates',
    'apply_override',
    'clear_overrides',
    'live_metrics',
    'parse_analysis',
    'RubricQuality',
    'check_rubric_quality',
]

"""Pydantic models for rubric grading results."""

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Status(str, Enum):
    """Three-way verdict for one rubric criterion."""
    MET = "met"
    WEAK = "weak"
    MISSING = "missing"


class UploadedFile(BaseModel):
    """A user-supplied file, immutable once added."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(description="Original file name")
    mime_type: str = Field(alias="mimeType", description="MIME type reported at upload")
    data: str = Field(description="Base64-encoded file contents")


class VisualCoordinates(BaseModel):
    """Normalized (0-100) position of evidence inside an uploaded visual file."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(description="Horizontal position, percent of rendered width")
    y: float = Field(description="Vertical position, percent of rendered height")
    file_index: int = Field(default=0, ge=0, description="Index into the submission files")

    @field_validator("x", "y")
    @classmethod
    def _clamp_percent(cls, value: float) -> float:
        return min(100.0, max(0.0, value))

    @field_validator("file_index", mode="before")
    @classmethod
    def _default_file_index(cls, value):
        return 0 if value is None else value


class CriterionResult(BaseModel):
    """Evaluation of a single rubric criterion."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    criterion: str = Field(description="Human-readable criterion name")
    status: Status = Field(description="The model's original verdict")
    user_status: Optional[Status] = Field(
        default=None,
        alias="userStatus",
        description="Manual override; None means the original verdict applies"
    )
    why: str = Field(default="", description="Rationale for the verdict")
    evidence: str = Field(default="", description="Excerpt from the submission backing the verdict")
    exact_fix: str = Field(default="", description="How to fix the issue when not met")
    visual_coordinates: Optional[VisualCoordinates] = Field(
        default=None,
        description="Marker position for evidence found in an uploaded visual file"
    )

    @property
    def effective_status(self) -> Status:
        return self.user_status or self.status


class TopFix(BaseModel):
    model_config = ConfigDict(frozen=True)

    fix: str = Field(description="Name of the criterion to work on")
    reason: str = Field(description="Suggested fix, or the rationale when no fix was given")


class AIIndicator(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: int = Field(ge=0, le=100)
    description: str = ""


class AIAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_level: Literal["low", "moderate", "high"]
    verdict_summary: str
    indicators: List[AIIndicator] = Field(default_factory=list)


class Summary(BaseModel):
    """Aggregate view of a grading run, computed when the result is created."""
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100, description="Weighted percentage score")
    ai_score: int = Field(default=0, ge=0, le=100, description="Model's AI-authorship estimate")
    ai_analysis: AIAnalysis
    met: int = Field(ge=0)
    weak: int = Field(ge=0)
    missing: int = Field(ge=0)
    top_fixes: List[TopFix] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Complete grading output for one submission."""
    model_config = ConfigDict(frozen=True)

    summary: Summary
    criteria: List[CriterionResult] = Field(description="Criteria in rubric order")

    def to_dict(self) -> Dict:
        """Convert to a JSON-friendly dictionary using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class GradingRequest(BaseModel):
    """Every input that affects a grading call."""
    model_config = ConfigDict(frozen=True)

    rubric_text: str = ""
    rubric_files: List[UploadedFile] = Field(default_factory=list)
    submission_text: str = ""
    submission_files: List[UploadedFile] = Field(default_factory=list)
    explanation: str = ""
    strict: bool = False
    work_type: str = "General"


class ChatMessage(BaseModel):
    """One turn of the help chat shown next to the results."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    text: str

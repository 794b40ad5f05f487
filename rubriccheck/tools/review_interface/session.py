"""Session state for the review interface.

All changes go through ``reduce(state, action)``, a pure function, and the
``SessionController`` serializes dispatches so there is a single writer.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from rubriccheck.evidence import AnnotatedSource, annotate, build_sources, locatability
from rubriccheck.evidence.locator import MIN_EVIDENCE_LENGTH
from rubriccheck.grading.aggregation import Tally, animate_score
from rubriccheck.grading.grader import RubricGrader
from rubriccheck.grading.models import AnalysisResult, ChatMessage, GradingRequest, Status
from rubriccheck.grading.overrides import apply_override, clear_overrides, live_metrics
from rubriccheck.grading.rubric_validator import check_rubric_quality
from rubriccheck.libs.errors import QuotaExceeded, RubricCheckError
from .drafts import DraftStore
from .samples import SAMPLE_RUBRIC, SAMPLE_SUBMISSION

LOG = logging.getLogger(__name__)

QUOTA_ERROR = "QUOTA_EXCEEDED"
GENERIC_ERROR = "Something went wrong. Check your connection."
REWRITE_FALLBACK = "Sorry, I couldn't think of anything right now."
CHAT_FALLBACK = "Sorry, I had trouble answering that. Please try again."
DRAFT_FIELDS = frozenset(GradingRequest.model_fields)


class ViewMode(str, Enum):
    LIST = "list"
    FEEDBACK = "feedback"


@dataclass(frozen=True)
class SessionState:
    draft: GradingRequest = field(default_factory=GradingRequest)
    is_rubric_vague: bool = False
    is_loading: bool = False
    error: Optional[str] = None
    result: Optional[AnalysisResult] = None
    # Inputs the current result was graded from; evidence is located against these
    analyzed: Optional[GradingRequest] = None
    focused_index: Optional[int] = None
    view_mode: ViewMode = ViewMode.LIST
    request_id: int = 0
    quota_until: Optional[float] = None

    @property
    def can_check(self) -> bool:
        draft = self.draft
        has_rubric = bool(draft.rubric_text.strip() or draft.rubric_files)
        has_submission = bool(draft.submission_text.strip() or draft.submission_files)
        return has_rubric and has_submission


@dataclass(frozen=True)
class EditDraft:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class ResetSession:
    pass


@dataclass(frozen=True)
class LoadExample:
    pass


@dataclass(frozen=True)
class RestoreDraft:
    draft: GradingRequest


@dataclass(frozen=True)
class SetViewMode:
    mode: ViewMode


@dataclass(frozen=True)
class FocusCriterion:
    index: Optional[int]


@dataclass(frozen=True)
class OverrideStatus:
    index: int
    status: Optional[Status]


@dataclass(frozen=True)
class ClearOverrides:
    pass


@dataclass(frozen=True)
class AnalysisStarted:
    request_id: int


@dataclass(frozen=True)
class AnalysisSucceeded:
    request_id: int
    request: GradingRequest
    result: AnalysisResult


@dataclass(frozen=True)
class AnalysisFailed:
    request_id: int
    error: str
    quota_until: Optional[float] = None


Action = Union[EditDraft, ResetSession, LoadExample, RestoreDraft, SetViewMode, FocusCriterion,
               OverrideStatus, ClearOverrides, AnalysisStarted, AnalysisSucceeded, AnalysisFailed]
DRAFT_ACTIONS = (EditDraft, LoadExample, RestoreDraft)


def _with_draft(state: SessionState, draft: GradingRequest) -> SessionState:
    return replace(state, draft=draft, error=None,
                   is_rubric_vague=check_rubric_quality(draft.rubric_text).is_vague)


def _edit(draft: GradingRequest, changes: Mapping[str, Any]) -> GradingRequest:
    unknown = set(changes) - DRAFT_FIELDS
    if unknown:
        raise ValueError(f"Unknown draft fields: {sorted(unknown)}")
    return GradingRequest.model_validate({**draft.model_dump(), **changes})


def reduce(state: SessionState, action: Action) -> SessionState:
    """Apply one action, returning the new state. ``state`` is never modified."""
    if isinstance(action, EditDraft):
        return _with_draft(state, _edit(state.draft, action.changes))

    if isinstance(action, ResetSession):
        # Bumping the request id drops any response still in flight
        return SessionState(request_id=state.request_id + 1, quota_until=state.quota_until)

    if isinstance(action, LoadExample):
        draft = state.draft.model_copy(update={
            "rubric_text": SAMPLE_RUBRIC,
            "submission_text": SAMPLE_SUBMISSION,
        })
        return _with_draft(state, draft)

    if isinstance(action, RestoreDraft):
        return _with_draft(state, action.draft)

    if isinstance(action, SetViewMode):
        return replace(state, view_mode=ViewMode(action.mode))

    if isinstance(action, FocusCriterion):
        if action.index is None or action.index == state.focused_index:
            return replace(state, focused_index=None)
        if state.result is None or not 0 <= action.index < len(state.result.criteria):
            raise IndexError(f"No criterion at index {action.index}")
        return replace(state, focused_index=action.index)

    if isinstance(action, OverrideStatus):
        if state.result is None:
            raise ValueError("There is no result to override")
        return replace(state, result=apply_override(state.result, action.index, action.status))

    if isinstance(action, ClearOverrides):
        if state.result is None:
            raise ValueError("There is no result to reset")
        return replace(state, result=clear_overrides(state.result))

    if isinstance(action, AnalysisStarted):
        return replace(state, request_id=action.request_id, is_loading=True, error=None,
                       result=None, analyzed=None, focused_index=None)

    if isinstance(action, AnalysisSucceeded):
        if action.request_id != state.request_id:
            return state
        return replace(state, is_loading=False, result=action.result, analyzed=action.request)

    if isinstance(action, AnalysisFailed):
        if action.request_id != state.request_id:
            return state
        quota_until = action.quota_until if action.quota_until is not None else state.quota_until
        return replace(state, is_loading=False, error=action.error, quota_until=quota_until)

    raise TypeError(f"Unknown action: {action!r}")


class SessionController:
    """Owns the one session state and the services it calls into."""

    def __init__(self, grader: RubricGrader, drafts: Optional[DraftStore] = None,
                 cooldown_seconds: float = 60,
                 min_evidence_length: int = MIN_EVIDENCE_LENGTH,
                 clock: Callable[[], float] = time.time):
        self.grader = grader
        self.drafts = drafts
        self.cooldown_seconds = cooldown_seconds
        self.min_evidence_length = min_evidence_length
        self._clock = clock
        self._lock = threading.RLock()
        self.state = SessionState()

    def dispatch(self, action: Action) -> SessionState:
        with self._lock:
            self.state = reduce(self.state, action)
            state = self.state
        if self.drafts is not None and isinstance(action, DRAFT_ACTIONS):
            self.drafts.save(state.draft)
        return state

    def restore_draft(self) -> Optional[SessionState]:
        """Load the saved draft into the session; None when there is nothing to restore."""
        if self.drafts is None:
            return None
        draft = self.drafts.load()
        if draft is None:
            return None
        return self.dispatch(RestoreDraft(draft))

    def has_stored_draft(self) -> bool:
        return self.drafts is not None and self.drafts.has_draft()

    def quota_seconds_remaining(self) -> int:
        """Whole seconds left in the quota cooldown; 0 means checking is allowed again."""
        quota_until = self.state.quota_until
        if quota_until is None:
            return 0
        return max(0, math.ceil(quota_until - self._clock()))

    async def run_analysis(self) -> SessionState:
        """
        Grade the current draft.

        A newer call supersedes an older one: whichever response belongs to the latest
        request id is the only one applied.

        Raises:
            ValueError: Nothing to check yet, or the quota cooldown is still running
        """
        with self._lock:
            if not self.state.can_check:
                raise ValueError("Add a rubric and your work before checking")
            if self.quota_seconds_remaining() > 0:
                raise ValueError("Quota cooldown still running")
            request_id = self.state.request_id + 1
            request = self.state.draft
            self.dispatch(AnalysisStarted(request_id))

        try:
            result = await self.grader.analyze_async(request)
        except QuotaExceeded as e:
            LOG.warning("Quota exceeded for request %d", request_id)
            cooldown = e.retry_after if e.retry_after is not None else self.cooldown_seconds
            return self.dispatch(AnalysisFailed(request_id, QUOTA_ERROR,
                                                quota_until=self._clock() + cooldown))
        except RubricCheckError as e:
            LOG.error("Analysis %d failed: %s", request_id, e)
            return self.dispatch(AnalysisFailed(request_id, GENERIC_ERROR))
        except Exception:
            LOG.exception("Analysis %d crashed", request_id)
            self.dispatch(AnalysisFailed(request_id, GENERIC_ERROR))
            raise

        return self.dispatch(AnalysisSucceeded(request_id, request, result))

    def metrics(self) -> Optional[Tally]:
        result = self.state.result
        return live_metrics(result) if result is not None else None

    def score_animation(self, frames: int = 50, start: int = 0) -> List[int]:
        """Count-up values ending at the live score, one per display frame."""
        tally = self.metrics()
        if tally is None:
            raise ValueError("There is no result yet")
        return list(animate_score(tally.score, start=start, frames=frames))

    def _analyzed_or_fail(self) -> tuple:
        state = self.state
        if state.result is None or state.analyzed is None:
            raise ValueError("There is no result yet")
        return state.result, state.analyzed

    def highlights(self, index: Optional[int]) -> List[AnnotatedSource]:
        result, analyzed = self._analyzed_or_fail()
        sources = build_sources(analyzed.submission_text, analyzed.submission_files)
        return annotate(result.criteria, index, sources, self.min_evidence_length)

    async def suggest_rewrites(self, index: int) -> List[str]:
        """Rewrite ideas for one criterion; failures come back as a single apology line."""
        result, analyzed = self._analyzed_or_fail()
        if not 0 <= index < len(result.criteria):
            raise IndexError(f"No criterion at index {index}")
        try:
            return await self.grader.suggest_rewrites_async(
                result.criteria[index], analyzed.submission_text, analyzed.rubric_text)
        except RubricCheckError as e:
            LOG.warning("Rewrite suggestions failed: %s", e)
            return [REWRITE_FALLBACK]

    async def chat(self, history: List[ChatMessage]) -> str:
        state = self.state
        request = state.analyzed or state.draft
        try:
            return await self.grader.chat_async(history, request, state.result)
        except RubricCheckError as e:
            LOG.warning("Chat failed: %s", e)
            return CHAT_FALLBACK

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the session for the web client."""
        state = self.state
        result = state.result
        payload: Dict[str, Any] = {
            "draft": state.draft.model_dump(mode="json", by_alias=True),
            "is_rubric_vague": state.is_rubric_vague,
            "is_loading": state.is_loading,
            "can_check": state.can_check,
            "error": state.error,
            "result": result.to_dict() if result is not None else None,
            "focused_index": state.focused_index,
            "view_mode": state.view_mode.value,
            "quota_seconds_remaining": self.quota_seconds_remaining(),
            "has_stored_draft": self.has_stored_draft(),
            "metrics": None,
            "locatable": [],
        }
        tally = self.metrics()
        if tally is not None:
            payload["metrics"] = {"met": tally.met, "weak": tally.weak,
                                  "missing": tally.missing, "score": tally.score}
        if result is not None and state.analyzed is not None:
            sources = build_sources(state.analyzed.submission_text, state.analyzed.submission_files)
            payload["locatable"] = locatability(result.criteria, sources, self.min_evidence_length)
        return payload

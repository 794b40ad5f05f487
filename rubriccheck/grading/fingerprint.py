"""Content fingerprints and the result cache keyed by them."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from rubriccheck.libs.errors import StorageWriteFailure
from rubriccheck.libs.storage import KeyValueStore
from .models import AnalysisResult, CriterionResult, GradingRequest, UploadedFile

LOG = logging.getLogger(__name__)

ANALYSIS_PREFIX = "analysis_"
REWRITE_PREFIX = "rewrite_"


def _files_payload(files: Sequence[UploadedFile]) -> List[List[str]]:
    return [[f.name, f.mime_type, f.data] for f in files]


def _digest(payload: Any) -> str:
    encoded = json.dumps(payload, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def canonical_payload(request: GradingRequest) -> List[List[Any]]:
    """Serialize grading inputs as an ordered list of (field, value) pairs."""
    return [
        ["rubric_text", request.rubric_text],
        ["rubric_files", _files_payload(request.rubric_files)],
        ["submission_text", request.submission_text],
        ["submission_files", _files_payload(request.submission_files)],
        ["explanation", request.explanation],
        ["strict", request.strict],
        ["work_type", request.work_type],
    ]


def fingerprint(request: GradingRequest) -> str:
    """Stable SHA-256 id for a grading request."""
    return _digest(canonical_payload(request))


def rewrite_fingerprint(criterion: CriterionResult, submission_text: str, rubric_text: str) -> str:
    """Stable id for a rewrite-suggestion request."""
    return _digest([
        ["criterion", criterion.criterion],
        ["evidence", criterion.evidence],
        ["submission_text", submission_text],
        ["rubric_text", rubric_text],
    ])


class FingerprintCache:
    """
    Memoizes grading results and rewrite suggestions by content fingerprint.

    Entries never expire. Writes are best effort: a store failure is logged and
    never propagates to the grading call.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def get(self, stable_id: str) -> Optional[AnalysisResult]:
        key = ANALYSIS_PREFIX + stable_id
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return AnalysisResult.model_validate_json(raw)
        except ValidationError as exc:
            LOG.warning("Discarding unreadable cache entry %s: %s", key, exc)
            self.store.delete(key)
            return None

    def put(self, stable_id: str, result: AnalysisResult) -> bool:
        return self._write(ANALYSIS_PREFIX + stable_id, result.model_dump_json(by_alias=True))

    def get_rewrites(self, stable_id: str) -> Optional[List[str]]:
        raw = self.store.get(REWRITE_PREFIX + stable_id)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            LOG.warning("Discarding unreadable rewrite cache entry %s: %s", stable_id, exc)
            return None
        if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
            return None
        return data

    def put_rewrites(self, stable_id: str, suggestions: List[str]) -> bool:
        return self._write(REWRITE_PREFIX + stable_id, json.dumps(suggestions, ensure_ascii=True))

    def _write(self, key: str, value: str) -> bool:
        try:
            self.store.set(key, value)
            return True
        except StorageWriteFailure as exc:
            LOG.warning("Cache write for %s failed: %s", key, exc)
            return False

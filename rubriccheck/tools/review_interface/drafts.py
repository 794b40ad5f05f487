"""Saved work-in-progress inputs, restored on the next visit."""

import logging
from typing import Optional

from pydantic import ValidationError

from rubriccheck.grading.models import GradingRequest
from rubriccheck.libs.errors import StorageWriteFailure
from rubriccheck.libs.storage import KeyValueStore

LOG = logging.getLogger(__name__)

DRAFT_KEY = "rubric_check_draft_v3"


def has_content(draft: GradingRequest) -> bool:
    return bool(
        draft.rubric_text.strip()
        or draft.submission_text.strip()
        or draft.rubric_files
        or draft.submission_files
    )


class DraftStore:
    """Keeps one draft under a fixed, versioned key."""

    def __init__(self, store: KeyValueStore, key: str = DRAFT_KEY):
        self.store = store
        self.key = key

    def save(self, draft: GradingRequest) -> bool:
        """
        Persist ``draft`` unless it is empty.

        When the full draft does not fit, the uploaded files are dropped and the text
        fields are saved alone. Failures never propagate.

        Returns:
            True if a draft was written
        """
        if not has_content(draft):
            return False

        try:
            self.store.set(self.key, draft.model_dump_json())
            return True
        except StorageWriteFailure as e:
            LOG.info("Draft too large to save with files (%s); retrying without them", e)

        reduced = draft.model_copy(update={"rubric_files": [], "submission_files": []})
        try:
            self.store.set(self.key, reduced.model_dump_json())
            return True
        except StorageWriteFailure as e:
            LOG.warning("Failed to save draft: %s", e)
            return False

    def load(self) -> Optional[GradingRequest]:
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return GradingRequest.model_validate_json(raw)
        except ValidationError as e:
            LOG.warning("Ignoring unreadable draft: %s", e)
            return None

    def has_draft(self) -> bool:
        draft = self.load()
        return draft is not None and has_content(draft)

    def clear(self) -> None:
        self.store.delete(self.key)

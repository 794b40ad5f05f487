"""Tests for draft persistence."""

import logging

import pytest

from rubriccheck.grading.models import GradingRequest, UploadedFile
from rubriccheck.libs.storage import JsonFileStore, MemoryStore
from rubriccheck.tools.review_interface.drafts import DRAFT_KEY, DraftStore, has_content


def big_file(size):
    return UploadedFile(name="scan.png", mime_type="image/png", data="A" * size)


@pytest.fixture
def draft():
    return GradingRequest(
        rubric_text="1. Thesis",
        submission_text="My essay",
        explanation="draft two",
        strict=True,
        work_type="Essay",
    )


def test_round_trip(tmp_path, draft):
    DraftStore(JsonFileStore(tmp_path)).save(draft)

    restored = DraftStore(JsonFileStore(tmp_path)).load()
    assert restored == draft
    assert (tmp_path / f"{DRAFT_KEY}.json").exists()


def test_empty_draft_not_saved():
    store = MemoryStore()
    drafts = DraftStore(store)

    assert drafts.save(GradingRequest(explanation="only a note", strict=True)) is False
    assert store.get(DRAFT_KEY) is None
    assert not drafts.has_draft()


def test_files_alone_count_as_content():
    assert has_content(GradingRequest(submission_files=[big_file(4)]))
    assert not has_content(GradingRequest(rubric_text="   ", submission_text="\n"))


def test_oversized_draft_saved_without_files(draft):
    drafts = DraftStore(MemoryStore(max_value_bytes=2000))
    with_files = draft.model_copy(update={"submission_files": [big_file(5000)],
                                          "rubric_files": [big_file(10)]})

    assert drafts.save(with_files) is True

    restored = drafts.load()
    assert restored.submission_files == []
    assert restored.rubric_files == []
    assert restored.submission_text == "My essay"
    assert restored.strict is True


def test_second_failure_swallowed(caplog):
    drafts = DraftStore(MemoryStore(max_value_bytes=100))
    huge = GradingRequest(rubric_text="x" * 500, submission_files=[big_file(500)])

    with caplog.at_level(logging.WARNING):
        assert drafts.save(huge) is False
    assert "Failed to save draft" in caplog.text
    assert drafts.load() is None


def test_corrupt_draft_ignored():
    store = MemoryStore()
    store.set(DRAFT_KEY, '{"rubric_text": 42')
    drafts = DraftStore(store)

    assert drafts.load() is None
    assert not drafts.has_draft()


def test_clear(draft):
    drafts = DraftStore(MemoryStore())
    drafts.save(draft)
    assert drafts.has_draft()

    drafts.clear()
    assert drafts.load() is None

"""Tests for prompt construction."""

import base64
import json

from rubriccheck.grading.models import ChatMessage, CriterionResult, GradingRequest, Status, UploadedFile
from rubriccheck.grading.prompts import (
    REWRITE_SYSTEM_PROMPT,
    SYSTEM_INSTRUCTION,
    build_chat_messages,
    build_grading_messages,
    build_rewrite_messages,
)
from rubriccheck.grading.response_parser import build_result


def text_upload(name, text):
    return UploadedFile(name=name, mime_type="text/plain",
                        data=base64.b64encode(text.encode()).decode())


class TestGradingMessages:

    def test_system_then_user(self):
        messages = build_grading_messages(GradingRequest(rubric_text="R", submission_text="S"))

        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == SYSTEM_INSTRUCTION

    def test_inputs_embedded(self):
        request = GradingRequest(
            rubric_text="1. Thesis (20 pts)",
            submission_text="Gatsby is a tragic figure.",
            explanation="I ran out of time on the conclusion",
            strict=True,
            work_type="Essay",
        )
        prompt = build_grading_messages(request)[1].content

        assert "1. Thesis (20 pts)" in prompt
        assert "Gatsby is a tragic figure." in prompt
        assert "I ran out of time on the conclusion" in prompt
        assert "STRICT MODE: true" in prompt
        assert "grading a Essay" in prompt
        assert '"ai_score"' in prompt

    def test_blank_explanation(self):
        prompt = build_grading_messages(GradingRequest(rubric_text="R", submission_text="S"))[1].content
        assert "STUDENT'S NOTE ABOUT THE WORK:\nNone" in prompt
        assert "STRICT MODE: false" in prompt

    def test_files_described(self):
        request = GradingRequest(
            rubric_files=[text_upload("rubric.txt", "Use three sources")],
            submission_files=[
                text_upload("essay.txt", "My essay body"),
                UploadedFile(name="slide.png", mime_type="image/png", data="iVBORw0KGgo="),
            ],
        )
        prompt = build_grading_messages(request)[1].content

        assert "(see rubric files)" in prompt
        assert "RUBRIC FILE 0 (rubric.txt, text/plain):\nUse three sources" in prompt
        assert "SUBMISSION FILE 0 (essay.txt, text/plain):\nMy essay body" in prompt
        assert "SUBMISSION FILE 1 (slide.png, image/png): visual content" in prompt


def test_rewrite_messages():
    criterion = CriterionResult(criterion="Thesis", status=Status.WEAK,
                                why="Too broad", evidence="Gatsby is interesting")
    messages = build_rewrite_messages(criterion, "the work", "")

    assert messages[0].content == REWRITE_SYSTEM_PROMPT
    prompt = messages[1].content
    assert "Rubric:\nNone" in prompt
    assert "Thesis" in prompt and "Too broad" in prompt and "Gatsby is interesting" in prompt
    assert "JSON array of 3 strings" in prompt


class TestChatMessages:

    def test_roles_mapped(self):
        history = [
            ChatMessage(role="user", text="Why is my thesis weak?"),
            ChatMessage(role="model", text="It is too broad."),
            ChatMessage(role="user", text="How do I narrow it?"),
        ]
        messages = build_chat_messages(history, GradingRequest(rubric_text="R"), None)

        assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1].content == "How do I narrow it?"
        assert "WORK:\nNone" in messages[0].content
        assert "SUMMARY:\nNone" in messages[0].content

    def test_summary_included(self):
        result = build_result([CriterionResult(criterion="Thesis", status=Status.WEAK)])
        system = build_chat_messages(
            [ChatMessage(role="user", text="hi")], GradingRequest(submission_text="S"), result
        )[0].content

        summary_json = system.split("SUMMARY:\n", 1)[1].split("\n", 1)[0]
        assert json.loads(summary_json)["score"] == 50
        assert "RUBRIC:\nNone" in system

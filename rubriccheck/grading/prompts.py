"""Prompt construction for grading, rewrite suggestions and the help chat."""

import json
from typing import List, Optional, Sequence

from rubriccheck.evidence.sources import decode_file_text
from rubriccheck.libs.llm import LLMMessage
from .models import AnalysisResult, ChatMessage, CriterionResult, GradingRequest, UploadedFile

SYSTEM_INSTRUCTION = """You are a friendly writing and project assistant. You check any kind of work \
(essays, presentations, projects) against the rubric or requirements the user gives you.

VOICE:
- Talk like a helpful tutor, not a report. Use direct, active language: "Try adding...", \
"You're missing...", "The rubric asks for X, but you have Y."
- Mix short directions with longer explanations.
- Do not use the words 'delve', 'testament', 'tapestry', 'multifaceted', 'pivotal', \
'comprehensive' or 'underscore'.

EVIDENCE:
1. The 'evidence' field MUST be copied exactly from the student's work. If you change a single \
character the application cannot highlight it.
2. Do not add labels such as "Quote:" and do not wrap the evidence in quotation marks.
3. For uploaded images or PDF pages, point at the spot with 'visual_coordinates' given as \
percentages (0-100) of the width and height, plus the index of the file.
4. Use plain, easy words.

AI DETECTION:
Estimate 'ai_score' (0-100) from lexical hallmarks (the words listed above), very even sentence \
lengths and formulaic structure.

ASSESSMENT:
- "Met" means the requirement is fully satisfied, "Weak" means it needs work, "Missing" means it \
is absent.
- 'exact_fix' is one simple, concrete instruction for fixing the issue.
- Back every verdict with the verbatim excerpt in 'evidence'."""

REWRITE_SYSTEM_PROMPT = "Write like a human. No AI tone."

RESPONSE_SHAPE = """{
  "ai_score": <integer 0-100>,
  "criteria": {
    "<criterion name>": {
      "score": "Met | Weak | Missing",
      "why": "<short explanation>",
      "evidence": "<exact excerpt from the work>",
      "exact_fix": "<specific fix>",
      "visual_coordinates": {"x": <0-100>, "y": <0-100>, "file_index": <int>}
    }
  }
}"""


def describe_files(files: Sequence[UploadedFile], label: str) -> str:
    """Render uploaded files as prompt text, inlining whatever text can be extracted."""
    if not files:
        return ""
    blocks = []
    for idx, uploaded in enumerate(files):
        header = f"{label} FILE {idx} ({uploaded.name}, {uploaded.mime_type})"
        text = decode_file_text(uploaded)
        if text:
            blocks.append(f"{header}:\n{text}")
        else:
            blocks.append(f"{header}: visual content, reference it by file_index {idx}")
    return "\n\n".join(blocks)


def build_grading_messages(request: GradingRequest) -> List[LLMMessage]:
    """System + user messages for a grading call."""
    rubric_files = describe_files(request.rubric_files, "RUBRIC")
    submission_files = describe_files(request.submission_files, "SUBMISSION")
    explanation = request.explanation.strip() or "None"

    prompt = f"""You are grading a {request.work_type}.
STRICT MODE: {str(request.strict).lower()}
{"Be harsh: do not give credit for anything that is only partially done." if request.strict else ""}

RUBRIC:
{request.rubric_text or "(see rubric files)"}
{rubric_files}

STUDENT'S NOTE ABOUT THE WORK:
{explanation}

SUBMISSION:
{request.submission_text or "(see submission files)"}
{submission_files}

Return ONLY valid JSON, no commentary, in this shape:

{RESPONSE_SHAPE}

Include every rubric criterion, in rubric order. Wherever the submission is text, each 'evidence' \
value must be an exact substring of it. Omit 'visual_coordinates' when the evidence is text."""

    return [
        LLMMessage(role="system", content=SYSTEM_INSTRUCTION),
        LLMMessage(role="user", content=prompt),
    ]


def build_rewrite_messages(criterion: CriterionResult, submission_text: str,
                           rubric_text: str) -> List[LLMMessage]:
    prompt = f"""Rubric:
{rubric_text or "None"}

Work:
{submission_text}

Fix this criterion:
{criterion.criterion}

What is wrong:
{criterion.why}

Evidence:
{criterion.evidence}

Give 3 natural rewrites.
Return a JSON array of 3 strings only."""

    return [
        LLMMessage(role="system", content=REWRITE_SYSTEM_PROMPT),
        LLMMessage(role="user", content=prompt),
    ]


def build_chat_messages(history: Sequence[ChatMessage], request: GradingRequest,
                        result: Optional[AnalysisResult]) -> List[LLMMessage]:
    summary = json.dumps(result.summary.model_dump(mode="json")) if result else "None"
    system_context = f"""You are helping with a graded assignment.

RUBRIC:
{request.rubric_text or "None"}

WORK:
{request.submission_text or "None"}

SUMMARY:
{summary}

Stay concise and helpful."""

    messages = [LLMMessage(role="system", content=system_context)]
    for turn in history:
        role = "assistant" if turn.role == "model" else "user"
        messages.append(LLMMessage(role=role, content=turn.text))
    return messages

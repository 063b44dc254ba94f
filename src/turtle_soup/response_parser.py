"""
Parsing helpers for raw oracle replies.

The oracle is asked for JSON but answers in free text, so extraction is a
best-effort greedy match from the first "{" to the last "}". Replies with
braces in the surrounding prose, or with more than one object, fail to parse;
callers surface that as a recoverable error rather than guessing.

Three shapes are validated on top of the generic parse:
- generation: {"problem": str, "answer": str}
- verdict:    {"answer": str, "comment"?: str}, classified yes/no/undeterminable (blank answers included)
- judgement:  {"isCorrect": bool, "feedback"?: str}
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Literal, Optional

from .errors import MalformedResponseError
from .prompting import PromptCatalog

JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")

AnswerKind = Literal["yes", "no", "undeterminable"]


@dataclass(frozen=True)
class Puzzle:
    problem: str
    solution: str


@dataclass(frozen=True)
class Verdict:
    kind: AnswerKind
    displayed_answer: str
    raw_answer: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class Judgement:
    is_correct: bool
    feedback: Optional[str] = None


def extract_json(raw_text: str) -> dict:
    """Return the JSON object embedded in raw_text or raise MalformedResponseError."""
    m = JSON_SPAN_RE.search(raw_text or "")
    if not m:
        raise MalformedResponseError("Invalid response format from AI")
    try:
        parsed = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON in AI response: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Invalid response format from AI")
    return parsed


def _require_str(data: dict, key: str) -> str:
    val = data.get(key)
    if not isinstance(val, str) or not val.strip():
        raise MalformedResponseError(f"AI response is missing string field '{key}'")
    return val


def _optional_str(data: dict, key: str) -> Optional[str]:
    val = data.get(key)
    return val if isinstance(val, str) and val.strip() else None


def parse_generation(raw_text: str) -> Puzzle:
    data = extract_json(raw_text)
    return Puzzle(problem=_require_str(data, "problem"), solution=_require_str(data, "answer"))


def _contains(token: str, folded: str, whole_word: bool) -> bool:
    token = token.casefold()
    if whole_word:
        return re.search(rf"\b{re.escape(token)}\b", folded) is not None
    return token in folded


def classify_answer(answer: str, catalog: PromptCatalog) -> AnswerKind:
    """Containment check, affirmative first: "はい、そうです" is yes, anything unmatched is undeterminable.

    Catalogs with whole_word_tokens only match tokens as words, so "Not relevant" is not a "no".
    """
    folded = answer.casefold()
    if _contains(catalog.yes_token, folded, catalog.whole_word_tokens):
        return "yes"
    if _contains(catalog.no_token, folded, catalog.whole_word_tokens):
        return "no"
    return "undeterminable"


def parse_verdict(raw_text: str, catalog: PromptCatalog) -> Verdict:
    data = extract_json(raw_text)
    answer = data.get("answer")
    if not isinstance(answer, str):
        raise MalformedResponseError("AI response is missing string field 'answer'")
    # A blank answer still counts as a question; it classifies as undeterminable.
    kind = classify_answer(answer, catalog)
    displayed = {
        "yes": catalog.yes_token,
        "no": catalog.no_token,
        "undeterminable": catalog.undeterminable_token,
    }[kind]
    return Verdict(kind=kind, displayed_answer=displayed, raw_answer=answer, comment=_optional_str(data, "comment"))


def parse_judgement(raw_text: str) -> Judgement:
    data = extract_json(raw_text)
    is_correct = data.get("isCorrect")
    if not isinstance(is_correct, bool):
        raise MalformedResponseError("AI response is missing boolean field 'isCorrect'")
    return Judgement(is_correct=is_correct, feedback=_optional_str(data, "feedback"))

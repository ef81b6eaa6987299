"""
Recovery of JSON values from free-form model output.

Model responses may wrap the JSON in prose or markdown fences, or stop
mid-object when the token limit is hit. Repair runs as a fixed sequence of
stages, each attempted only when the previous one failed:

1. direct             - parse the trimmed text as-is
2. fence_strip        - drop a leading ``` / ```json fence and a trailing ```
3. brace_slice        - keep the first "{" through the last "}"
4. bracket_completion - append missing "]" then missing "}"
5. tail_trim          - cut back to the last complete string or closing
                        delimiter and close the open containers in order

A stage only succeeds when the candidate parses completely into an object or
array. Nothing is ever guessed field-by-field.

Known limitation: bracket_completion appends every missing "]" before every
missing "}". That fits the usual truncation shape (an array of strings cut
mid-way inside an object) but is not general bracket matching; nested shapes
like ``{"a": [{"b": 1`` are rejected rather than guessed at.
"""
import json
import re
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel

from hrmatch.utils.exceptions import MalformedOutputError

STAGES = ("direct", "fence_strip", "brace_slice", "bracket_completion", "tail_trim")

_OPEN_FENCE = re.compile(r"^\s*```[A-Za-z0-9_+-]*[ \t]*")
_CLOSE_FENCE = re.compile(r"\s*```\s*$")
_CLOSERS = {"{": "}", "[": "]"}
_MISSING = object()


class RecoveryResult(BaseModel):
    value: Any = None
    stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.stage is not None


def _try_load(candidate: str) -> Any:
    try:
        value = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return _MISSING
    if isinstance(value, (dict, list)):
        return value
    return _MISSING


def _scan(text: str) -> Tuple[List[str], List[int], bool]:
    """Walk text outside string literals.

    Returns the stack of unclosed openers, the end offsets of complete values
    (closed strings that are not object keys, and closing delimiters), and
    whether the text ends inside a string.
    """
    stack: List[str] = []
    value_ends: List[int] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                value_ends.append(i + 1)
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            value_ends.append(i + 1)
        elif ch == ":" and value_ends:
            # the string before a colon was a key, not a value
            value_ends.pop()
    return stack, value_ends, in_string


def strip_code_fences(text: str) -> str:
    """Drop a fence opening the text and a fence closing it; inner backticks are content."""
    text = _OPEN_FENCE.sub("", text, count=1)
    return _CLOSE_FENCE.sub("", text, count=1).strip()


def slice_braces(text: str) -> Optional[str]:
    """First "{" through the last "}", or through the end when the object never closes."""
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end > start:
        return text[start:end + 1]
    return text[start:]


def complete_brackets(text: str) -> str:
    opens = {"{": 0, "[": 0}
    closes = {"}": 0, "]": 0}
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in opens:
            opens[ch] += 1
        elif ch in closes:
            closes[ch] += 1

    missing_brackets = max(0, opens["["] - closes["]"])
    missing_braces = max(0, opens["{"] - closes["}"])
    return text + "]" * missing_brackets + "}" * missing_braces


def trim_to_last_complete(text: str) -> Optional[str]:
    _, value_ends, _ = _scan(text)
    if not value_ends:
        return None
    trimmed = text[:value_ends[-1]]
    stack, _, in_string = _scan(trimmed)
    if in_string:
        return None
    return trimmed + "".join(_CLOSERS[opener] for opener in reversed(stack))


def parse_structured_output(text: str) -> RecoveryResult:
    """Run the repair stages without raising; see the module docstring."""
    if text is None or not text.strip():
        return RecoveryResult(error="empty output")

    candidate = text.strip()
    value = _try_load(candidate)
    if value is not _MISSING:
        return RecoveryResult(value=value, stage="direct")

    cleaned = strip_code_fences(candidate)
    if cleaned != candidate:
        value = _try_load(cleaned)
        if value is not _MISSING:
            return RecoveryResult(value=value, stage="fence_strip")

    sliced = slice_braces(cleaned)
    if sliced is None:
        return RecoveryResult(error="no JSON object found in output")
    if sliced != cleaned:
        value = _try_load(sliced)
        if value is not _MISSING:
            return RecoveryResult(value=value, stage="brace_slice")

    completed = complete_brackets(sliced)
    if completed != sliced:
        value = _try_load(completed)
        if value is not _MISSING:
            return RecoveryResult(value=value, stage="bracket_completion")

    trimmed = trim_to_last_complete(sliced)
    if trimmed is not None and trimmed != completed:
        value = _try_load(trimmed)
        if value is not _MISSING:
            return RecoveryResult(value=value, stage="tail_trim")

    return RecoveryResult(error="output could not be repaired into valid JSON")


def recover_structured_output(text: str) -> Any:
    """Return the JSON object/array in text or raise MalformedOutputError."""
    result = parse_structured_output(text)
    if not result.ok:
        raise MalformedOutputError(
            f"Unable to recover structured output: {result.error}",
            raw_text=text,
        )
    return result.value

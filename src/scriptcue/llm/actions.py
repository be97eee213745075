"""
actions.py

Action-line classification for one chunk.

The external classifier receives the chunk rendered with absolute line numbers
and answers with a JSON array of {"text", "lineNumber"} objects, possibly
wrapped in a ``` code fence. This module strips the fence, parses the answer
and validates every entry. Nothing is coerced or dropped: a malformed entry or
a line number outside the chunk rejects the whole response.

The legacy {"action", "line"} entry shape is still accepted and normalized.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, List, Set, Tuple

from scriptcue.errors import (
    ClassificationFormatError,
    ClassificationRangeError,
    EmptyInputError,
)
from scriptcue.llm.prompts import ACTION_LINE_INSTRUCTIONS, number_lines
from scriptcue.models import ActionLine

# (numbered_lines, instructions) -> raw response text
ActionClassifier = Callable[[str, str], str]

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(raw: str) -> str:
    m = _FENCE_RE.match(raw)
    return m.group("body").strip() if m else raw.strip()


def _entry_fields(entry: Any, index: int) -> tuple:
    if not isinstance(entry, dict):
        raise ClassificationFormatError(f"entry {index} is not an object: {entry!r}")
    if "text" in entry or "lineNumber" in entry:
        text, line = entry.get("text"), entry.get("lineNumber")
    else:
        # legacy shape
        text, line = entry.get("action"), entry.get("line")

    if not isinstance(text, str):
        raise ClassificationFormatError(f"entry {index} has no string text: {entry!r}")
    if isinstance(line, bool) or not isinstance(line, int) or line < 0:
        raise ClassificationFormatError(
            f"entry {index} has no non-negative integer line number: {entry!r}"
        )
    return text, line


def numbered_span(numbered_lines: str) -> Tuple[int, int]:
    """(first absolute line number, line count) of a number_lines() rendering."""
    lines = numbered_lines.split("\n")
    head = lines[0].split(":", 1)[0]
    if not head.isdigit():
        raise ValueError(f"not a numbered chunk: {lines[0]!r}")
    return int(head), len(lines)


def parse_action_lines(raw: str, chunk_start_line: int, line_count: int) -> List[ActionLine]:
    """
    Parse and validate a classifier response for a chunk.

    Raises:
        ClassificationFormatError: not a JSON array, malformed entry, or a
            line number listed twice.
        ClassificationRangeError: a line number outside
            [chunk_start_line, chunk_start_line + line_count - 1].
    """
    body = strip_code_fences(raw)
    try:
        obj = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ClassificationFormatError(f"action classifier returned invalid JSON: {exc}") from exc
    if not isinstance(obj, list):
        raise ClassificationFormatError(f"action classifier returned {type(obj).__name__}, expected a list")

    last_line = chunk_start_line + line_count - 1
    seen: Set[int] = set()
    out: List[ActionLine] = []
    for i, entry in enumerate(obj):
        text, line = _entry_fields(entry, i)
        if not chunk_start_line <= line <= last_line:
            raise ClassificationRangeError(
                f"line {line} is outside chunk lines {chunk_start_line}..{last_line}"
            )
        if line in seen:
            raise ClassificationFormatError(f"line {line} listed more than once")
        seen.add(line)
        out.append(ActionLine(text=text.strip(), line_number=line))

    out.sort(key=lambda a: a.line_number)
    return out


def classify_actions(chunk_text: str, chunk_start_line: int, classifier: ActionClassifier) -> List[ActionLine]:
    """
    Identify the action / stage-direction lines of a chunk.

    Args:
        chunk_text: Chunk text, lines separated by "\\n".
        chunk_start_line: Absolute number of the chunk's first line.
        classifier: Text-classification collaborator.

    Returns:
        Validated ActionLine objects sorted by line number.
    """
    if chunk_text == "":
        raise EmptyInputError("cannot classify an empty chunk")

    numbered = number_lines(chunk_text, chunk_start_line)
    raw = classifier(numbered, ACTION_LINE_INSTRUCTIONS)
    if not isinstance(raw, str):
        raise ClassificationFormatError(f"action classifier returned {type(raw).__name__}, expected text")
    return parse_action_lines(raw, chunk_start_line, chunk_text.count("\n") + 1)

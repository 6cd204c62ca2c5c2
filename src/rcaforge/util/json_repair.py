"""Best-effort extraction and repair of JSON objects embedded in model replies."""

from __future__ import annotations

import ast
import json
import re
from typing import Any, Iterator


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class JsonRepairError(ValueError):
    """Raised when no usable JSON object can be recovered."""


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _balanced_end(text: str, start_index: int) -> int | None:
    """Return the index of the brace closing the object opened at ``start_index``."""
    depth = 0
    in_string = False
    escape = False
    quote = ""
    for idx in range(start_index, len(text)):
        char = text[idx]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == quote:
                in_string = False
            continue
        if char in "\"'":
            in_string = True
            quote = char
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return idx
    return None


def iter_object_blocks(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` substring, in order of appearance."""
    position = 0
    while True:
        start_index = text.find("{", position)
        if start_index < 0:
            return
        end_index = _balanced_end(text, start_index)
        if end_index is None:
            position = start_index + 1
            continue
        yield text[start_index : end_index + 1]
        position = end_index + 1


def _remove_trailing_commas(text: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", text)


def _replace_single_quotes(text: str) -> str:
    return re.sub(r"(?<!\\)'([^'\\]*(?:\\.[^'\\]*)*)'", r'"\1"', text)


def repair_object(block: str) -> Any:
    """Parse a single candidate block with progressively looser repairs.

    Nesting deep enough to exhaust the parser counts as unparseable.
    """
    try:
        return json.loads(block)
    except (json.JSONDecodeError, RecursionError):
        pass
    cleaned = _remove_trailing_commas(block)
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, RecursionError):
        pass
    try:
        return ast.literal_eval(cleaned)
    except (ValueError, SyntaxError, TypeError, RecursionError, MemoryError):
        pass
    cleaned = _remove_trailing_commas(_replace_single_quotes(cleaned))
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise JsonRepairError(f"Failed to repair JSON: {exc}") from exc


def extract_first_object(text: str) -> dict[str, Any]:
    """Return the first well-formed JSON object found in ``text``.

    Code fences are unwrapped first. Candidates that cannot be parsed even
    after repair are skipped, so prose containing stray braces before the
    real payload does not hide it.
    """
    candidates = [_strip_fences(text)]
    if candidates[0] != text.strip():
        candidates.append(text)
    for candidate_text in candidates:
        for block in iter_object_blocks(candidate_text):
            try:
                payload = repair_object(block)
            except JsonRepairError:
                continue
            if isinstance(payload, dict):
                return payload
    raise JsonRepairError("No JSON object found")

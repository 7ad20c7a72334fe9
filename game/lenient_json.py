"""Tolerant JSON extraction from model output.

Models wrap JSON in prose and markdown fences often enough that every
generation stage goes through `parse_lenient_json` instead of `json.loads`.
"""

import json
import re
import logging
from typing import Any, Optional

from game.errors import LenientJsonError

logger = logging.getLogger(__name__)

_BRACKETS = {"object": ("{", "}"), "array": ("[", "]")}


def strip_markdown_json(message) -> str:
    """Strip markdown code blocks from JSON output."""
    # Extract content if it's an AIMessage object
    if hasattr(message, "content"):
        text = message.content
    elif isinstance(message, str):
        text = message
    else:
        text = str(message)

    text = re.sub(r"^```(?:json)?\s*\n?", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n?```\s*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"```", "", text)
    return text.strip()


def _balanced_span(text: str, start: int, open_ch: str, close_ch: str) -> Optional[str]:
    """Return text[start:end] where end closes the bracket opened at start.

    Brackets inside JSON strings are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
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
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def parse_lenient_json(message, expect: str = "object") -> Any:
    """Parse the outermost JSON object (or array) embedded in `message`.

    Tries, in order: the whole stripped text, each balanced bracket span of
    the expected kind starting from the left, and finally the slice between
    the first opening and last closing bracket.

    Raises:
        LenientJsonError: if nothing of the expected kind parses.
    """
    if expect not in _BRACKETS:
        raise ValueError(f"expect must be 'object' or 'array', got {expect!r}")
    open_ch, close_ch = _BRACKETS[expect]
    expected_type = dict if expect == "object" else list
    text = strip_markdown_json(message)

    candidates = [text]
    pos = text.find(open_ch)
    while pos != -1:
        span = _balanced_span(text, pos, open_ch, close_ch)
        if span is not None:
            candidates.append(span)
            break
        pos = text.find(open_ch, pos + 1)
    first, last = text.find(open_ch), text.rfind(close_ch)
    if first != -1 and last > first:
        candidates.append(text[first : last + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(value, expected_type):
            return value

    logger.debug("No parseable JSON %s in model output: %.200s", expect, text)
    raise LenientJsonError(f"no JSON {expect} found in model output", text)

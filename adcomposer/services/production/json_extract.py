"""Pull a single JSON object out of noisy model output.

Models wrap JSON in Markdown fences and append commentary after it. A regex
cannot count braces correctly because string values may contain braces, so
:func:`extract_first_json_object` walks the text with a small state machine.
"""
from __future__ import annotations

import re
from typing import Optional

_OPEN_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CLOSE_FENCE = re.compile(r"\s*```\s*$")

# scanner states
_DEFAULT = 0
_IN_STRING = 1
_IN_ESCAPE = 2


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and its closing fence."""
    content = text.strip()
    if content.startswith("```"):
        content = _OPEN_FENCE.sub("", content, count=1)
        content = _CLOSE_FENCE.sub("", content, count=1)
    return content.strip()


def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` substring of ``text``.

    Braces inside string literals (including escaped quotes) are ignored.
    Returns ``None`` when no opening brace exists or the object never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    state = _DEFAULT
    for i in range(start, len(text)):
        ch = text[i]
        if state == _IN_ESCAPE:
            state = _IN_STRING
        elif state == _IN_STRING:
            if ch == "\\":
                state = _IN_ESCAPE
            elif ch == '"':
                state = _DEFAULT
        elif ch == '"':
            state = _IN_STRING
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None

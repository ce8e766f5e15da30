"""Text processing helpers."""

from __future__ import annotations

import re

_INLINE_WS_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n\s*(\n\s*)+")


def normalize(text: str) -> str:
    """Collapse runs of inline whitespace and blank lines, keep paragraph breaks."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _INLINE_WS_RE.sub(" ", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()

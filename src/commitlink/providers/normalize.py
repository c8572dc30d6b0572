"""Backend-independent cleanup of generated text."""

from __future__ import annotations

import re

# The language tag only counts when the fence line ends right after it
_LEADING_FENCE = re.compile(r"^\s*```(?:[\w+-]*[ \t]*\n)?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```+\s*$")
_TRAILING_BACKTICKS = re.compile(r"[ \t]*`+\s*$")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def strip_fences(text: str) -> str:
    """Remove a leading ```lang fence and a trailing fence."""
    text = _LEADING_FENCE.sub("", text, count=1)
    return _TRAILING_FENCE.sub("", text, count=1)


def strip_stray_backticks(text: str) -> str:
    """Drop a trailing backtick run unless it closes an inline code span."""
    match = _TRAILING_BACKTICKS.search(text)
    if match is None or text[: match.start()].count("`") % 2:
        return text
    return text[: match.start()]


def clean_generated_text(text: str) -> str:
    """Normalise backend output into a plain commit-message body.

    Applied identically to every backend's output: fences and stray
    trailing backticks stripped, surrounding whitespace trimmed, runs of
    blank lines collapsed to one.
    """
    text = text.replace("\r\n", "\n")
    text = strip_stray_backticks(strip_fences(text.strip()))
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()

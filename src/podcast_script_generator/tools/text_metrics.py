"""Word counting and duration/word-count conversions."""

from __future__ import annotations

import math
import re

from ..models import DurationCheck

DEFAULT_WPM = 160

_BRACKET_RE = re.compile(r"\[[^\[\]]*\]")
_SEPARATOR_LINE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|={3,}|_{3,})\s*$")
_LABEL_RE = re.compile(
    r"^(?:\s*(?:\*\*)?\s*(?:HOST|GUEST)\s*(?:\*\*)?\s*:\s*(?:\*\*)?)+",
    re.IGNORECASE,
)
_WORD_RE = re.compile(r"[^\W_]+(?:['’][^\W_]+)*")


def normalize_text(text: str) -> str:
    """Reduce *text* to the spoken words on a single whitespace-collapsed line.

    Stage directions in square brackets are removed across line breaks, then
    separator-only lines are dropped and leading speaker labels stripped.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    previous = None
    while previous != text:
        previous = text
        text = _BRACKET_RE.sub(" ", text)

    kept: list[str] = []
    for line in text.split("\n"):
        if _SEPARATOR_LINE_RE.match(line):
            continue
        line = _LABEL_RE.sub("", line).strip()
        if line:
            kept.append(line)
    return re.sub(r"\s+", " ", " ".join(kept)).strip()


def word_count(text: str) -> int:
    """Count word-like tokens in the normalized form of *text*."""
    if not text:
        return 0
    return len(_WORD_RE.findall(normalize_text(text)))


def target_words(duration_minutes: float, wpm: int = DEFAULT_WPM) -> int:
    """Words needed to fill *duration_minutes* of speech (halves round up)."""
    return int(math.floor(duration_minutes * wpm + 0.5))


def estimate_minutes(words: int, wpm: int = DEFAULT_WPM) -> float:
    return words / wpm if wpm else 0.0


def duration_delta(actual: int, target: int, wpm: int = DEFAULT_WPM) -> DurationCheck:
    """Compare a measured count against its target.

    Compliant when the signed difference is within half a minute of speech.
    """
    delta = actual - target
    tolerance = wpm / 2
    return DurationCheck(
        actual=actual,
        target=target,
        delta=delta,
        tolerance=tolerance,
        compliant=abs(delta) <= tolerance,
    )

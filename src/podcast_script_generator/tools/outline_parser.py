"""Parse a ``---``-delimited outline document into ordered sections."""

from __future__ import annotations

import logging
import re

from ..models import ParsedOutline, Section

logger = logging.getLogger(__name__)


class OutlineParseError(ValueError):
    """Raised when an outline yields no sections at all."""


_SEPARATOR_RE = re.compile(r"^[ \t]*---[ \t]*$", re.MULTILINE)
_TITLE_RE = re.compile(r"^\s*(?:#+\s*)?(?:\*\*)?(\d+(?:\.\d+)*)\.\s+(.+?)\s*(?:\*\*)?\s*$", re.MULTILINE)
_DURATION_RE = re.compile(
    r"\*{0,2}Duration\s*:\s*\*{0,2}\s*(\d+(?:\.\d+)?)\s*([A-Za-z]+)?",
    re.IGNORECASE,
)
_OVERVIEW_RE = re.compile(r"\*{0,2}Overview\s*:\s*\*{0,2}\s*([^\r\n]+)", re.IGNORECASE)

_SECOND_UNITS = {"s", "sec", "secs", "second", "seconds"}

# Block headers that end an opaque reference block.
_BLOCK_HEADERS = ("KEY FACTS", "UNIQUE FOCUS", "CARRYOVER", "Duration", "Overview")


def _parse_duration(segment: str) -> float:
    m = _DURATION_RE.search(segment)
    if not m:
        return 0.0
    value = float(m.group(1))
    unit = (m.group(2) or "").lower()
    if unit in _SECOND_UNITS:
        return value / 60.0
    return value


def parse_section(segment: str, index: int) -> Section:
    """Build a ``Section`` from one outline block. *index* is 1-based."""
    title_match = _TITLE_RE.search(segment)
    if title_match:
        number = title_match.group(1)
        title = title_match.group(2).strip()
    else:
        number = str(index)
        title = f"Section {index}"

    overview_match = _OVERVIEW_RE.search(segment)
    overview = overview_match.group(1).strip() if overview_match else "No overview provided"

    return Section(
        id=f"section-{index}",
        number=number,
        title=title,
        duration_minutes=_parse_duration(segment),
        overview=overview,
        raw_content=segment.strip(),
    )


def parse_outline(text: str) -> ParsedOutline:
    """Split *text* on ``---`` lines and parse every non-empty block.

    Raises:
        OutlineParseError: if no section could be parsed.
    """
    segments = [s for s in _SEPARATOR_RE.split(text.replace("\r\n", "\n")) if s.strip()]
    sections = [parse_section(seg, i) for i, seg in enumerate(segments, 1)]
    if not sections:
        raise OutlineParseError("Outline contains no sections")

    total = sum(s.duration_minutes for s in sections)
    logger.debug("Parsed %d sections totalling %.1f minutes", len(sections), total)
    return ParsedOutline(sections=sections, total_duration_minutes=total)


# ---------------------------------------------------------------------------
# Opaque reference blocks
# ---------------------------------------------------------------------------

def _extract_block(raw: str, label: str) -> str:
    """Return the text after ``<label>:`` up to the next known block header."""
    others = "|".join(re.escape(h) for h in _BLOCK_HEADERS if h != label)
    pattern = re.compile(
        rf"\*{{0,2}}{re.escape(label)}\s*:\s*\*{{0,2}}(.*?)(?=^\s*\*{{0,2}}(?:{others})\s*:|\Z)",
        re.IGNORECASE | re.DOTALL | re.MULTILINE,
    )
    m = pattern.search(raw)
    return m.group(1).strip() if m else ""


def extract_key_facts(raw: str) -> str:
    return _extract_block(raw, "KEY FACTS")


def extract_unique_focus(raw: str) -> str:
    return _extract_block(raw, "UNIQUE FOCUS")


def extract_carryover(raw: str) -> str:
    return _extract_block(raw, "CARRYOVER")

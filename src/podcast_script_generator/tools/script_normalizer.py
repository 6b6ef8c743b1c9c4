"""Dialogue script normalization.

Generated dialogue is expected in blocks of the form::

    ---
    HOST:
    Welcome back to the show.

Model output drifts from that shape (code fences, ``HOST :`` spacing,
character names used as labels, ``[laughs]`` stage directions, stray
``markdown`` lines). ``normalize_script`` reads the text line by line through
a small state machine and re-emits the canonical form, so applying it twice
gives the same result as applying it once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

HOST = "HOST"
GUEST = "GUEST"

_FENCE_RE = re.compile(r"```[ \t]*[A-Za-z-]*")
_BRACKET_RE = re.compile(r"\[[^\[\]]*\]")
_SEPARATOR_RE = re.compile(r"^-{3,}$")
_ARTIFACT_RE = re.compile(r"^(?:markdown|md)$", re.IGNORECASE)


class _State(Enum):
    BEFORE_BLOCK = "before_block"
    IN_LABEL = "in_label"
    IN_DIALOGUE = "in_dialogue"


@dataclass
class Turn:
    """One speaker block. ``speaker`` is None for unlabeled text."""
    speaker: str | None
    fragments: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return re.sub(r"\s+", " ", " ".join(self.fragments)).strip()

    def render(self) -> str:
        if self.speaker:
            return f"---\n{self.speaker}:\n{self.text}"
        return f"---\n{self.text}"


def _label_pattern(host_name: str | None, guest_name: str | None) -> re.Pattern:
    names = [HOST, GUEST]
    names += [re.escape(n.strip()) for n in (host_name, guest_name) if n and n.strip()]
    alternatives = "|".join(names)
    return re.compile(
        rf"^(?:\*\*)?\s*({alternatives})\s*(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.*)$",
        re.IGNORECASE,
    )


def _speaker_for(label: str, host_name: str | None, guest_name: str | None) -> str:
    upper = label.strip().upper()
    if upper == HOST or (host_name and upper == host_name.strip().upper()):
        return HOST
    if upper == GUEST or (guest_name and upper == guest_name.strip().upper()):
        return GUEST
    return HOST


def _clean(text: str) -> str:
    """Remove fences and bracketed stage directions from the whole text."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _FENCE_RE.sub("", text)
    previous = None
    while previous != text:
        previous = text
        text = _BRACKET_RE.sub("", text)
    return text


def parse_turns(
    text: str,
    host_name: str | None = None,
    guest_name: str | None = None,
) -> list[Turn]:
    """Split *text* into speaker turns, dropping empty blocks."""
    label_re = _label_pattern(host_name, guest_name)
    turns: list[Turn] = []
    current: Turn | None = None
    state = _State.BEFORE_BLOCK

    for raw_line in _clean(text).split("\n"):
        line = raw_line.strip()
        if not line or _ARTIFACT_RE.match(line):
            continue

        if _SEPARATOR_RE.match(line):
            if current is not None and current.text:
                turns.append(current)
            current = None
            state = _State.IN_LABEL
            continue

        m = label_re.match(line)
        if m:
            if current is not None and current.text:
                turns.append(current)
            speaker = _speaker_for(m.group(1), host_name, guest_name)
            rest = m.group(2).strip()
            # "HOST: GUEST: ..." keeps the last label
            inner = label_re.match(rest)
            while inner:
                speaker = _speaker_for(inner.group(1), host_name, guest_name)
                rest = inner.group(2).strip()
                inner = label_re.match(rest)
            current = Turn(speaker=speaker)
            if rest and not _SEPARATOR_RE.match(rest) and not _ARTIFACT_RE.match(rest):
                current.fragments.append(rest)
            state = _State.IN_DIALOGUE
            continue

        if state is _State.IN_DIALOGUE and current is not None:
            current.fragments.append(line)
        else:
            if current is None:
                current = Turn(speaker=None)
            current.fragments.append(line)
            state = _State.IN_DIALOGUE

    if current is not None and current.text:
        turns.append(current)
    return turns


def normalize_script(
    text: str,
    host_name: str | None = None,
    guest_name: str | None = None,
) -> str:
    """Return *text* in canonical ``---`` / ``HOST:`` / dialogue form."""
    return "\n\n".join(t.render() for t in parse_turns(text, host_name, guest_name))


def strip_fences(text: str) -> str:
    """Remove code fences and format-name lines, leaving the rest untouched."""
    text = _FENCE_RE.sub("", text.replace("\r\n", "\n"))
    lines = [line for line in text.split("\n") if not _ARTIFACT_RE.match(line.strip())]
    return "\n".join(lines).strip()


def extract_last_exchanges(text: str, exchange_count: int = 2) -> str:
    """Return the last *exchange_count* HOST/GUEST pairs of *text*."""
    if not text or exchange_count <= 0:
        return ""
    turns = [t for t in parse_turns(text) if t.speaker]
    pairs = min(exchange_count, len(turns) // 2)
    if pairs == 0:
        return ""
    return "\n\n".join(t.render() for t in turns[-pairs * 2:])


def first_speaker(text: str) -> str | None:
    for turn in parse_turns(text):
        if turn.speaker:
            return turn.speaker
    return None


def last_speaker(text: str) -> str | None:
    for turn in reversed(parse_turns(text)):
        if turn.speaker:
            return turn.speaker
    return None


def find_speaker_handoffs(section_texts: list[str]) -> list[int]:
    """Return indices *i* where section *i* ends with the speaker section *i+1* opens with."""
    boundaries: list[int] = []
    for i in range(len(section_texts) - 1):
        ending = last_speaker(section_texts[i])
        opening = first_speaker(section_texts[i + 1])
        if ending and ending == opening:
            boundaries.append(i)
    return boundaries

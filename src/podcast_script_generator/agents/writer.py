"""Writer: outline generation, dialogue section generation and conversation summaries."""

from __future__ import annotations

import logging
import re

from ..completion import TransportError
from ..models import ConversationSummary, GenerationContext, PartType, Section
from ..prompts import SUMMARY_SYSTEM, outline_system, outline_user, script_system, section_user, summary_user
from ..tools.script_normalizer import normalize_script, strip_fences
from .base import CompletionAgent

logger = logging.getLogger(__name__)

_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.*?)(?=\n\s*\n|\n?\s*TOPICS COVERED:|\Z)", re.DOTALL | re.IGNORECASE)
_TOPICS_RE = re.compile(r"TOPICS COVERED:\s*(.*)", re.DOTALL | re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def parse_summary(text: str) -> ConversationSummary:
    """Split a ``SUMMARY: ... TOPICS COVERED: ...`` reply into its parts."""
    summary_match = _SUMMARY_RE.search(text)
    topics_match = _TOPICS_RE.search(text)

    topics: list[str] = []
    if topics_match:
        for line in topics_match.group(1).splitlines():
            if not line.strip():
                continue
            topic = _BULLET_RE.sub("", line).strip()
            if topic:
                topics.append(topic)

    summary = summary_match.group(1).strip() if summary_match else ""
    if not summary and not topics:
        summary = text.strip()
    return ConversationSummary(summary=summary, topics=topics)


def part_type_for(index: int, total: int) -> PartType:
    """First section is the intro, last the outro; a lone section is an intro."""
    if index == 0:
        return PartType.INTRO
    if index == total - 1:
        return PartType.OUTRO
    return PartType.SECTION


class ScriptWriter(CompletionAgent):
    """Generation calls. Generation failures propagate; summary failures do not."""

    def generate_outline(self, ctx: GenerationContext) -> str:
        """Draft an outline from the source document.

        Raises:
            TransportError: if the service call fails.
        """
        reply = self.send("outline", outline_system(ctx), outline_user(ctx), self.config.temperatures.generate)
        return strip_fences(reply)

    def generate_section(
        self,
        section: Section,
        part_type: PartType,
        ctx: GenerationContext,
        *,
        previous_dialogue: str = "",
        summaries: str = "",
        topics: str = "",
        history: str = "",
    ) -> str:
        """Draft the dialogue for one outline section.

        Raises:
            TransportError: if the service call fails or returns no dialogue.
        """
        user = section_user(
            section,
            part_type,
            ctx,
            previous_dialogue=previous_dialogue,
            summaries=summaries,
            topics=topics,
            history=history,
        )
        reply = self.send("writer", script_system(ctx), user, self.config.temperatures.generate)
        text = normalize_script(reply, self.config.host.name, self.config.guest.name)
        if not text:
            raise TransportError(f"No dialogue received for section {section.number}")
        return text

    def summarize(self, section_text: str, *, section_id: str = "") -> ConversationSummary | None:
        """Summarize a finished section; ``None`` if the service fails."""
        try:
            reply = self.send("summarizer", SUMMARY_SYSTEM, summary_user(section_text), self.config.temperatures.summarize)
        except TransportError as e:
            logger.warning("Summary of %s failed: %s", section_id or "section", e)
            return None
        return parse_summary(reply)

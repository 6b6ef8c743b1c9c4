"""Improvement adapter: request a targeted rewrite and normalize the reply."""

from __future__ import annotations

import logging

from ..completion import TransportError
from ..models import GenerationContext, ImprovementResult, Issue, Section
from ..prompts import (
    DOCUMENT_IMPROVE_SYSTEM,
    SECTION_IMPROVE_SYSTEM,
    document_improve_user,
    format_feedback,
    outline_improve_system,
    outline_improve_user,
    section_improve_user,
)
from ..tools.script_normalizer import normalize_script, strip_fences
from .base import CompletionAgent

logger = logging.getLogger(__name__)


class ScriptImprover(CompletionAgent):
    """Ask the completion service for a revision; never raises on service failure."""

    def _normalize(self, text: str) -> str:
        return normalize_script(text, self.config.host.name, self.config.guest.name)

    def _request(
        self,
        role: str,
        system: str,
        user: str,
        temperature: float,
        *,
        scope: str,
        attempt: int,
    ) -> str | None:
        try:
            content = self.send(role, system, user, temperature)
        except TransportError as e:
            logger.warning("Improvement of %s failed on attempt %d: %s", scope, attempt, e)
            return None
        if not content.strip():
            logger.warning("Empty improvement for %s on attempt %d", scope, attempt)
            return None
        return content

    def _dialogue_result(self, original: str, reply: str | None, scope: str, attempt: int) -> ImprovementResult:
        if reply is None:
            return ImprovementResult(text=original, changed=False, failed=True)
        improved = self._normalize(reply)
        if not improved:
            logger.warning("Improvement of %s on attempt %d contained no dialogue", scope, attempt)
            return ImprovementResult(text=original, changed=False, failed=True)
        changed = improved != self._normalize(original)
        if not changed:
            logger.info("Improvement of %s on attempt %d made no changes", scope, attempt)
        return ImprovementResult(text=improved, changed=changed)

    def improve_section(
        self,
        text: str,
        issues: list[Issue],
        ctx: GenerationContext,
        *,
        section: Section | None = None,
        feedback: str = "",
        history: str = "",
        attempt: int = 1,
    ) -> ImprovementResult:
        """Revise one dialogue section against structured issues (or free-text feedback)."""
        scope = section.id if section else "section"
        reply = self._request(
            "improver",
            SECTION_IMPROVE_SYSTEM + f"\nGenerate the improved section in {ctx.language} language.",
            section_improve_user(text, format_feedback(issues, feedback), section, ctx, history),
            self.config.temperatures.improve,
            scope=scope,
            attempt=attempt,
        )
        return self._dialogue_result(text, reply, scope, attempt)

    def improve_document(
        self,
        text: str,
        issues: list[Issue],
        ctx: GenerationContext,
        *,
        feedback: str = "",
        history: str = "",
        attempt: int = 1,
    ) -> ImprovementResult:
        """Revise the whole script for cross-section issues."""
        reply = self._request(
            "document_improver",
            DOCUMENT_IMPROVE_SYSTEM + f"\nGenerate the improved script in {ctx.language} language.",
            document_improve_user(text, format_feedback(issues, feedback), ctx, history),
            self.config.temperatures.improve,
            scope="document",
            attempt=attempt,
        )
        return self._dialogue_result(text, reply, "document", attempt)

    def improve_outline(
        self,
        text: str,
        issues: list[Issue],
        ctx: GenerationContext,
        *,
        feedback: str = "",
        history: str = "",
        attempt: int = 1,
    ) -> ImprovementResult:
        """Revise an outline. Only fences are stripped; outlines are not dialogue."""
        reply = self._request(
            "outline_improver",
            outline_improve_system(ctx),
            outline_improve_user(text, format_feedback(issues, feedback), ctx, history),
            self.config.temperatures.outline_improve,
            scope="outline",
            attempt=attempt,
        )
        if reply is None:
            return ImprovementResult(text=text, changed=False, failed=True)
        improved = strip_fences(reply)
        changed = improved != strip_fences(text)
        return ImprovementResult(text=improved, changed=changed)

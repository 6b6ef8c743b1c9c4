"""Verification adapter: ask the completion service to review text, then
reconcile its verdict with locally measured word counts.

Every path returns a ``VerificationResult`` of the same shape; the
``verdict`` field records which path produced it.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator

from ..completion import CompletionClient, TransportError
from ..models import (
    GenerationContext,
    Issue,
    ModelConfig,
    ProjectConfig,
    Section,
    Severity,
    VerdictSource,
    VerificationResult,
)
from ..prompts import (
    DOCUMENT_VERIFY_SYSTEM,
    OUTLINE_VERIFY_SYSTEM,
    SECTION_VERIFY_SYSTEM,
    document_verify_user,
    outline_verify_user,
    section_verify_user,
)
from ..tools.outline_parser import OutlineParseError, parse_outline
from ..tools.text_metrics import duration_delta, target_words, word_count
from .base import CompletionAgent

logger = logging.getLogger(__name__)

DURATION = "DURATION"

# ---------------------------------------------------------------------------
# Structured output parsing
# ---------------------------------------------------------------------------

_POSITIVE_RE = re.compile(r"\b(valid|coherent|good)\b", re.IGNORECASE)
_NEGATED_RE = re.compile(r"\b(?:not|isn't|is not|never|no longer)\s+(?:valid|coherent|good)\b", re.IGNORECASE)


def _strip_fences(raw: str) -> str:
    """Remove markdown fences."""
    return re.sub(r"```(?:json)?|```", "", raw).strip()


def iter_json_blocks(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` block in *text*, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
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
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:i + 1]
                    break
        start = text.find("{", start + 1)


def extract_json_block(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in *text*."""
    return next(iter_json_blocks(text), None)


def _attempt_repair(raw: str) -> str | None:
    """Lightweight repair for common LLM JSON mistakes."""
    txt = raw.strip()
    if not txt:
        return None
    if "{" in txt and "}" in txt:
        txt = txt[txt.find("{"):txt.rfind("}") + 1]
    txt = txt.replace("“", '"').replace("”", '"').replace("‘", "'").replace("’", "'")
    txt = re.sub(r",\s*([}\]])", r"\1", txt)
    txt = re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", txt)
    return txt


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "valid", "1")
    return bool(value)


def _result_from_payload(payload: dict[str, Any]) -> VerificationResult:
    issues: list[Issue] = []
    for item in payload.get("issues") or []:
        if isinstance(item, str):
            item = {"description": item}
        if not isinstance(item, dict):
            continue
        try:
            issues.append(Issue.model_validate(item))
        except Exception as e:
            logger.warning("Skipping malformed issue %r: %s", item, e)

    # A missing verdict counts as not valid.
    is_valid = _as_bool(payload.get("isValid", payload.get("is_valid", False)))
    feedback = str(payload.get("feedback") or payload.get("summary") or "").strip()
    if not feedback and issues:
        feedback = "; ".join(i.description for i in issues if i.description)
    return VerificationResult(
        is_valid=is_valid,
        feedback=feedback,
        issues=issues,
        raw_structured=payload,
        verdict=VerdictSource.STRUCTURED,
    )


def _heuristic_result(text: str) -> VerificationResult:
    """Guess a verdict from prose when no JSON could be parsed."""
    positive = bool(_POSITIVE_RE.search(text)) and not _NEGATED_RE.search(text)
    return VerificationResult(
        is_valid=positive,
        feedback=text.strip()[:2000],
        issues=[],
        raw_structured=None,
        verdict=VerdictSource.HEURISTIC,
    )


def parse_verification(raw: str) -> VerificationResult:
    """3-stage parse of reviewer output into a ``VerificationResult``."""
    stripped = _strip_fences(raw)

    # Stage 1: direct JSON parse of each balanced block, first dict wins
    for block in iter_json_blocks(stripped):
        try:
            payload = json.loads(block)
        except json.JSONDecodeError as e:
            logger.debug("Direct verification parse failed: %s", e)
            continue
        if isinstance(payload, dict):
            return _result_from_payload(payload)

    # Stage 2: repair + parse of each block, then of the first-brace-to-last-brace span
    if "{" in stripped:
        for candidate in [*iter_json_blocks(stripped), stripped]:
            repaired = _attempt_repair(candidate)
            if not repaired:
                continue
            try:
                payload = json.loads(repaired)
            except json.JSONDecodeError as e:
                logger.debug("Repaired verification parse failed: %s", e)
                continue
            if isinstance(payload, dict):
                return _result_from_payload(payload)

    # Stage 3: keyword heuristic
    return _heuristic_result(stripped)


# ---------------------------------------------------------------------------
# Duration enforcement
# ---------------------------------------------------------------------------

def duration_issue(actual: int, target: int) -> Issue:
    """Build the authoritative DURATION issue for a measured shortfall or overrun."""
    delta = actual - target
    if delta < 0:
        description = f"Section is short by {-delta} words ({actual} of ~{target} target words)."
        fix = (
            f"Expand the dialogue by about {-delta} words with grounded depth, examples and "
            "analogies in GUEST answers plus short HOST follow-ups. Do not pad with filler."
        )
        actions = (
            "Deepen the GUEST's existing explanations with concrete detail from the document",
            "Add short HOST follow-up questions where a topic is only touched on",
        )
    else:
        description = f"Section is long by {delta} words ({actual} of ~{target} target words)."
        fix = (
            f"Trim about {delta} words by condensing or removing less essential exchanges "
            "while keeping every key fact."
        )
        actions = (
            "Condense repeated or tangential exchanges",
            "Shorten long GUEST turns without dropping key facts",
        )
    return Issue(
        category=DURATION,
        severity=Severity.CRITICAL,
        description=description,
        evidence=f"Measured {actual} words",
        fix=fix,
        actions=actions,
    )


def ensure_duration_issue(
    result: VerificationResult,
    actual: int,
    target: int,
    wpm: int = 160,
) -> VerificationResult:
    """Reconcile *result* with the locally measured word count.

    Out of tolerance: exactly one DURATION issue and ``is_valid`` False.
    Within tolerance: any DURATION issue the service reported is dropped.
    """
    check = duration_delta(actual, target, wpm)
    others = [i for i in result.issues if i.category != DURATION]
    reported = [i for i in result.issues if i.category == DURATION]

    if check.compliant:
        if not reported:
            return result.model_copy(update={"word_count": actual, "target_words": target})
        # Only duration complaints, and the measurement disagrees with them.
        is_valid = result.is_valid or not others
        return result.model_copy(update={
            "issues": others,
            "is_valid": is_valid,
            "word_count": actual,
            "target_words": target,
        })

    issue = reported[0] if reported else duration_issue(actual, target)
    note = issue.description
    feedback = f"{note} {result.feedback}".strip() if note not in result.feedback else result.feedback
    return result.model_copy(update={
        "issues": [issue] + others,
        "is_valid": False,
        "feedback": feedback,
        "word_count": actual,
        "target_words": target,
    })


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class ScriptVerifier(CompletionAgent):
    """Request reviews from the completion service at section, document and outline scope."""

    def __init__(
        self,
        client: CompletionClient,
        config: ProjectConfig,
        models: ModelConfig | None = None,
    ) -> None:
        super().__init__(client, config, models)
        self.wpm = config.words_per_minute

    def _request(
        self,
        role: str,
        system: str,
        user: str,
        temperature: float,
        *,
        scope: str,
        attempt: int,
    ) -> VerificationResult | None:
        """Send one review request; ``None`` means the service could not be reached."""
        try:
            content = self.send(role, system, user, temperature)
        except TransportError as e:
            logger.warning("Verification of %s failed on attempt %d: %s", scope, attempt, e)
            return None

        result = parse_verification(content)
        if result.verdict == VerdictSource.HEURISTIC:
            logger.warning(
                "Unstructured verification for %s on attempt %d, guessed valid=%s",
                scope, attempt, result.is_valid,
            )
        return result

    def verify_section(
        self,
        text: str,
        section: Section,
        ctx: GenerationContext,
        *,
        previous_section: str = "",
        attempt: int = 1,
    ) -> VerificationResult:
        """Review one dialogue section and enforce its duration target."""
        target = target_words(section.duration_minutes, self.wpm)
        actual = word_count(text)

        result = self._request(
            "verifier",
            SECTION_VERIFY_SYSTEM,
            section_verify_user(text, section, ctx, previous_section),
            self.config.temperatures.verify,
            scope=section.id,
            attempt=attempt,
        )
        if result is None:
            result = VerificationResult(
                is_valid=actual >= target,
                feedback="Verification service unavailable; judged on word count only.",
                verdict=VerdictSource.LOCAL_METRICS,
            )
        return ensure_duration_issue(result, actual, target, self.wpm)

    def verify_document(
        self,
        text: str,
        ctx: GenerationContext,
        *,
        handoff_notes: str = "",
        attempt: int = 1,
    ) -> VerificationResult:
        """Review the assembled script for cross-section problems only."""
        result = self._request(
            "document_verifier",
            DOCUMENT_VERIFY_SYSTEM,
            document_verify_user(text, ctx, handoff_notes),
            self.config.temperatures.verify,
            scope="document",
            attempt=attempt,
        )
        if result is None:
            # No duration target at this scope, so nothing local to judge against.
            return VerificationResult(
                is_valid=True,
                feedback="Cross-section verification skipped; service unavailable.",
                verdict=VerdictSource.LOCAL_METRICS,
                word_count=word_count(text),
            )
        return result.model_copy(update={
            "issues": [i for i in result.issues if i.category != DURATION],
            "word_count": word_count(text),
        })

    def verify_outline(self, text: str, ctx: GenerationContext, *, attempt: int = 1) -> VerificationResult:
        """Review an outline; an outline with no parseable sections is never valid."""
        try:
            measured = parse_outline(text).total_duration_minutes
        except OutlineParseError:
            return VerificationResult(
                is_valid=False,
                feedback="Outline has no parseable sections.",
                issues=[Issue(
                    category="FORMAT",
                    severity=Severity.CRITICAL,
                    description="No sections could be parsed from the outline.",
                    fix="Separate sections with '---' lines and start each with '<number>. <title>'.",
                )],
                verdict=VerdictSource.LOCAL_METRICS,
            )

        result = self._request(
            "outline_verifier",
            OUTLINE_VERIFY_SYSTEM,
            outline_verify_user(text, ctx, measured),
            self.config.temperatures.outline_verify,
            scope="outline",
            attempt=attempt,
        )
        if result is None:
            return VerificationResult(
                is_valid=True,
                feedback="Outline verification skipped; service unavailable.",
                verdict=VerdictSource.LOCAL_METRICS,
            )

        deviation = measured - ctx.total_duration_minutes
        if ctx.total_duration_minutes and abs(deviation) >= 0.5:
            direction = "over" if deviation > 0 else "under"
            note = (
                f"Section durations add up to {measured:g} minutes, {abs(deviation):g} minutes "
                f"{direction} the {ctx.total_duration_minutes:g}-minute target."
            )
            result = result.model_copy(update={"feedback": f"{result.feedback}\n{note}".strip()})
        return result

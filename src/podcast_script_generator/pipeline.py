"""Pipeline: outline generation, then section-by-section dialogue generation.

Phase 1: OUTLINE          Draft an outline from the source document, refine it, parse it
Phase 2: SECTIONS         Generate each section in order, refine it, summarize it
Phase 3: DOCUMENT_REVIEW  One cross-section refinement pass over the assembled script
Phase 4: FINALIZATION     Write script and manifest
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .agents.improver import ScriptImprover
from .agents.verifier import ScriptVerifier
from .agents.writer import ScriptWriter, part_type_for
from .completion import AutogenCompletionClient, CompletionClient
from .logging_config import PipelineCallbacks, RichCallbacks
from .models import (
    ConversationSummary,
    GenerationContext,
    ImprovementResult,
    LoopStatus,
    ModelConfig,
    OutlineResult,
    ParsedOutline,
    PipelinePhase,
    PipelineResult,
    ProjectConfig,
    RefinementOutcome,
    RunManifest,
    RunStatus,
    ScriptResult,
    Section,
    SectionResult,
    VerificationResult,
)
from .progress import CompositeProgress
from .refinement import GenerationCancelled, RefinementLoop
from .tools.checkpoint import OUTLINE_FILE, SCRIPT_FILE, CheckpointStore
from .tools.issue_history import IssueHistory
from .tools.outline_parser import OutlineParseError, parse_outline
from .tools.script_normalizer import extract_last_exchanges, find_speaker_handoffs
from .tools.text_metrics import estimate_minutes, target_words, word_count

__all__ = ["GenerationCancelled", "GenerationSession", "Pipeline"]

logger = logging.getLogger(__name__)


def _stage_fraction(stage: str, attempt: int, max_attempts: int) -> float:
    """Share of a stage's progress band used after *attempt* of that stage."""
    if stage == "improve":
        return attempt / max(max_attempts - 1, 1)
    return attempt / max_attempts


def _topic_key(topic: str) -> str:
    return " ".join(topic.split()).casefold()


# ---------------------------------------------------------------------------
# Per-run state
# ---------------------------------------------------------------------------

class GenerationSession:
    """Everything one ``generate_document`` call accumulates; discarded afterwards."""

    def __init__(self, sections: list[Section], progress: CompositeProgress, tail_exchanges: int = 2) -> None:
        self.sections = sections
        self.total_sections = len(sections)
        self.section_index = 0
        self.progress = progress
        self.tail_exchanges = tail_exchanges

        self.section_texts: list[str] = []
        self.section_results: list[SectionResult] = []
        self.cumulative_summaries: list[str] = []
        self.cumulative_topics: list[str] = []
        self._topic_keys: set[str] = set()
        self.last_dialogue_tail = ""
        self.issue_history = IssueHistory()

    def add_topics(self, topics: list[str]) -> list[str]:
        """Union *topics* into the topic set (case/whitespace-insensitive); return the new ones."""
        added: list[str] = []
        for topic in topics:
            key = _topic_key(topic)
            if not key or key in self._topic_keys:
                continue
            self._topic_keys.add(key)
            clean = " ".join(topic.split())
            self.cumulative_topics.append(clean)
            added.append(clean)
        return added

    def summaries_text(self) -> str:
        return "\n\n".join(
            f"Section {i}: {s}" for i, s in enumerate(self.cumulative_summaries, 1)
        )

    def topics_text(self) -> str:
        return "\n".join(f"- {t}" for t in self.cumulative_topics)

    def history_digest(self) -> str:
        """Digest of residual issues from earlier sections, if any were left."""
        if not any(a.issues_snapshot for a in self.issue_history.attempts):
            return ""
        return self.issue_history.generate_history_summary()

    def record_section(
        self,
        section: Section,
        outcome: RefinementOutcome,
        summary: ConversationSummary | None,
        wpm: int,
    ) -> SectionResult:
        self.section_texts.append(outcome.text)
        self.last_dialogue_tail = extract_last_exchanges(outcome.text, self.tail_exchanges)
        if summary is not None:
            if summary.summary:
                self.cumulative_summaries.append(summary.summary)
            self.add_topics(summary.topics)
        self.issue_history.add_attempt(outcome.residual_issues, outcome.text, section.id, ["residual"])

        result = SectionResult(
            section=section,
            text=outcome.text,
            word_count=word_count(outcome.text),
            target_words=target_words(section.duration_minutes, wpm),
            status=outcome.status,
            verify_calls=outcome.verify_calls,
            residual_issues=outcome.residual_issues,
            summary=summary,
        )
        self.section_results.append(result)
        return result


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class Pipeline:
    """Drives outline and script generation through bounded refinement loops.

    ``cancel()`` may be called from another thread (the CLI wires it to
    SIGINT); the run stops at the next checkpoint and any result produced
    after the request is discarded.
    """

    def __init__(
        self,
        config: ProjectConfig,
        client: CompletionClient | None = None,
        callbacks: PipelineCallbacks | None = None,
        config_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.config_dir = config_dir or Path(".")
        self.client = client or AutogenCompletionClient(config)
        self.callbacks = callbacks or RichCallbacks()

        self.writer = ScriptWriter(self.client, config)
        self.verifier = ScriptVerifier(self.client, config)
        self.improver = ScriptImprover(self.client, config)

        self.output_dir = self.config_dir / config.output_dir
        self.checkpoints = CheckpointStore(self.output_dir)

        self._cancel = threading.Event()

        # State
        self.outline_result: OutlineResult | None = None
        self.script_result: ScriptResult | None = None
        self.manifest: RunManifest | None = None
        self.warnings: list[str] = []

    # -----------------------------------------------------------------------
    # Cancellation
    # -----------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        logger.info("Cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _checkpoint(self, where: str) -> None:
        if self._cancel.is_set():
            raise GenerationCancelled(where)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def build_context(self, document_text: str = "", outline_text: str = "") -> GenerationContext:
        return GenerationContext(
            document_text=document_text,
            outline_text=outline_text,
            total_duration_minutes=self.config.target_duration_minutes,
            podcast_focus=self.config.podcast_focus,
            language=self.config.language,
            words_per_minute=self.config.words_per_minute,
            host=self.config.host,
            guest=self.config.guest,
        )

    def _agents(self, models: ModelConfig | None) -> tuple[ScriptWriter, ScriptVerifier, ScriptImprover]:
        if models is None:
            return self.writer, self.verifier, self.improver
        return (
            ScriptWriter(self.client, self.config, models),
            ScriptVerifier(self.client, self.config, models),
            ScriptImprover(self.client, self.config, models),
        )

    def _read_input(self, relative: str | None, label: str) -> str:
        if not relative:
            raise FileNotFoundError(f"No {label} file configured")
        path = self.config_dir / relative
        if not path.exists():
            raise FileNotFoundError(f"{label.capitalize()} file not found: {path}")
        return path.read_text(encoding="utf-8")

    def _optional_document(self) -> str:
        """Source document as extra context for a run that already has an outline."""
        try:
            return self._read_input(self.config.document_file, "document")
        except FileNotFoundError as e:
            self._warn(f"{e}; continuing without document context")
            return ""

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        self.callbacks.on_warning(message)

    def _report_verification(self, scope: str):
        def _report(attempt: int, result: VerificationResult) -> None:
            self.callbacks.on_verification(scope, attempt, result)
        return _report

    def _report_improvement(self, scope: str):
        def _report(attempt: int, result: ImprovementResult) -> None:
            self.callbacks.on_improvement(scope, attempt, result)
        return _report

    # -----------------------------------------------------------------------
    # Phase 1: Outline
    # -----------------------------------------------------------------------

    def run_outline(self, document_text: str, model_config: ModelConfig | None = None) -> OutlineResult:
        """Generate, refine, parse and save an outline.

        Raises:
            OutlineParseError: if the final outline has no sections.
            TransportError: if the outline could not be generated at all.
            GenerationCancelled: if ``cancel()`` was called.
        """
        self._checkpoint("outline")
        self.callbacks.on_phase_start("OUTLINE", "Generating podcast outline")
        writer, verifier, improver = self._agents(model_config)
        ctx = self.build_context(document_text)

        draft = writer.generate_outline(ctx)
        self._checkpoint("outline")

        loop = RefinementLoop(
            verify=lambda text, attempt: verifier.verify_outline(text, ctx, attempt=attempt),
            improve=lambda text, result, history, attempt: improver.improve_outline(
                text, result.issues, ctx, feedback=result.feedback, history=history, attempt=attempt
            ),
            max_attempts=self.config.outline_max_attempts,
            scope="outline",
            min_improvement_rate=self.config.min_improvement_rate,
            is_cancelled=self._cancel.is_set,
            on_verification=self._report_verification("outline"),
            on_improvement=self._report_improvement("outline"),
        )
        outcome = loop.run(draft)

        outline = parse_outline(outcome.text)
        deviation = outline.total_duration_minutes - self.config.target_duration_minutes
        if abs(deviation) >= 0.5:
            self._warn(
                f"Outline sections add up to {outline.total_duration_minutes:g} minutes "
                f"({deviation:+g} vs target)"
            )
        self.checkpoints.save_outline(outcome.text)

        self.outline_result = OutlineResult(
            text=outcome.text,
            outline=outline,
            status=outcome.status,
            verify_calls=outcome.verify_calls,
        )
        self.callbacks.on_phase_end("OUTLINE", True)
        return self.outline_result

    def run_outline_only(self) -> OutlineResult:
        """Generate and save an outline from the configured document file."""
        document_text = self._read_input(self.config.document_file, "document")
        return self.run_outline(document_text)

    # -----------------------------------------------------------------------
    # Phase 2 + 3: Sections and cross-section review
    # -----------------------------------------------------------------------

    def generate_document(
        self,
        sections: list[Section],
        context: GenerationContext,
        model_config: ModelConfig | None = None,
    ) -> str:
        """Generate the full dialogue script for *sections* and return its text.

        Progress goes to ``callbacks.on_progress`` as non-decreasing integers
        ending at 100. The detailed result is kept on ``self.script_result``.

        Raises:
            OutlineParseError: if *sections* is empty.
            GenerationCancelled: if ``cancel()`` was called.
        """
        if not sections:
            raise OutlineParseError("No sections to generate")

        writer, verifier, improver = self._agents(model_config)
        progress = CompositeProgress(len(sections), self.config.progress, emit=self.callbacks.on_progress)
        session = GenerationSession(sections, progress, self.config.dialogue_tail_exchanges)

        planned = sum(s.duration_minutes for s in sections)
        if context.total_duration_minutes and abs(planned - context.total_duration_minutes) >= 0.5:
            logger.info(
                "Sections plan %.1f minutes against a %.1f-minute target",
                planned, context.total_duration_minutes,
            )

        try:
            self.callbacks.on_phase_start("SECTIONS", f"Generating {len(sections)} sections")
            for index, section in enumerate(sections):
                self._generate_section(index, section, context, session, writer, verifier, improver)
            self.callbacks.on_phase_end("SECTIONS", True)

            outcome = self._review_document(session, context, verifier, improver)
        except GenerationCancelled:
            # The request is consumed; the next call starts fresh.
            self._cancel.clear()
            raise

        self.script_result = ScriptResult(
            text=outcome.text,
            sections=session.section_results,
            document_status=outcome.status,
            document_issues=outcome.residual_issues,
            word_count=word_count(outcome.text),
        )
        progress.complete()
        return outcome.text

    def _generate_section(
        self,
        index: int,
        section: Section,
        context: GenerationContext,
        session: GenerationSession,
        writer: ScriptWriter,
        verifier: ScriptVerifier,
        improver: ScriptImprover,
    ) -> SectionResult:
        self._checkpoint(section.id)
        session.section_index = index
        self.callbacks.on_section_start(section.id, section.title)

        draft = writer.generate_section(
            section,
            part_type_for(index, session.total_sections),
            context,
            previous_dialogue=session.last_dialogue_tail,
            summaries=session.summaries_text(),
            topics=session.topics_text(),
            history=session.history_digest(),
        )
        self._checkpoint(section.id)
        session.progress.section_stage(index, "generate", 1.0)

        previous_section = session.section_texts[-1] if session.section_texts else ""

        def _verify(text: str, attempt: int) -> VerificationResult:
            return verifier.verify_section(
                text, section, context, previous_section=previous_section, attempt=attempt
            )

        def _improve(text: str, result: VerificationResult, history: str, attempt: int) -> ImprovementResult:
            return improver.improve_section(
                text, result.issues, context,
                section=section, feedback=result.feedback, history=history, attempt=attempt,
            )

        def _on_stage(stage: str, attempt: int, max_attempts: int) -> None:
            session.progress.section_stage(index, stage, _stage_fraction(stage, attempt, max_attempts))

        loop = RefinementLoop(
            verify=_verify,
            improve=_improve,
            max_attempts=self.config.max_attempts,
            scope=section.id,
            min_improvement_rate=self.config.min_improvement_rate,
            is_cancelled=self._cancel.is_set,
            on_stage=_on_stage,
            on_verification=self._report_verification(section.id),
            on_improvement=self._report_improvement(section.id),
        )
        outcome = loop.run(draft)
        if outcome.status != LoopStatus.VALID:
            self._warn(
                f"{section.id} finished {outcome.status.value} with "
                f"{len(outcome.residual_issues)} residual issue(s)"
            )

        summary = writer.summarize(outcome.text, section_id=section.id)
        self._checkpoint(section.id)

        result = session.record_section(section, outcome, summary, self.config.words_per_minute)
        self.checkpoints.save_partial_script(session.section_texts)
        session.progress.section_done(index)
        self.callbacks.on_section_end(section.id)
        return result

    def _review_document(
        self,
        session: GenerationSession,
        context: GenerationContext,
        verifier: ScriptVerifier,
        improver: ScriptImprover,
    ) -> RefinementOutcome:
        """Single cross-section refinement pass over the assembled script."""
        self._checkpoint("document")
        self.callbacks.on_phase_start("DOCUMENT_REVIEW", "Cross-section review")

        assembled = "\n\n".join(session.section_texts)
        handoffs = find_speaker_handoffs(session.section_texts)
        notes = "\n".join(
            f"- Section {session.sections[i].number} ends and section "
            f"{session.sections[i + 1].number} begins with the same speaker"
            for i in handoffs
        )
        if handoffs:
            logger.info("Detected %d same-speaker handoff(s) between sections", len(handoffs))

        def _verify(text: str, attempt: int) -> VerificationResult:
            # Section boundaries are only known for the assembled draft.
            return verifier.verify_document(
                text, context, handoff_notes=notes if attempt == 1 else "", attempt=attempt
            )

        def _improve(text: str, result: VerificationResult, history: str, attempt: int) -> ImprovementResult:
            return improver.improve_document(
                text, result.issues, context, feedback=result.feedback, history=history, attempt=attempt
            )

        def _on_stage(stage: str, attempt: int, max_attempts: int) -> None:
            session.progress.document_stage(stage, _stage_fraction(stage, attempt, max_attempts))

        loop = RefinementLoop(
            verify=_verify,
            improve=_improve,
            max_attempts=self.config.document_max_attempts,
            scope="document",
            min_improvement_rate=self.config.min_improvement_rate,
            is_cancelled=self._cancel.is_set,
            on_stage=_on_stage,
            on_verification=self._report_verification("document"),
            on_improvement=self._report_improvement("document"),
        )
        outcome = loop.run(assembled)
        self.callbacks.on_phase_end("DOCUMENT_REVIEW", outcome.status == LoopStatus.VALID)
        return outcome

    # -----------------------------------------------------------------------
    # Phase 4: Finalization
    # -----------------------------------------------------------------------

    def _finalize(self, outline: ParsedOutline, script: ScriptResult) -> RunManifest:
        self.callbacks.on_phase_start("FINALIZATION", "Writing script and manifest")
        self.checkpoints.save_script(script.text)

        residual = sum(len(s.residual_issues) for s in script.sections) + len(script.document_issues)
        manifest = RunManifest(
            project_name=self.config.project_name,
            outline_file=str(self.output_dir / OUTLINE_FILE),
            script_file=str(self.output_dir / SCRIPT_FILE),
            target_duration_minutes=self.config.target_duration_minutes,
            outline_duration_minutes=outline.total_duration_minutes,
            total_words=script.word_count,
            estimated_minutes=round(estimate_minutes(script.word_count, self.config.words_per_minute), 2),
            sections=[
                {
                    "id": s.section.id,
                    "number": s.section.number,
                    "title": s.section.title,
                    "target_words": s.target_words,
                    "word_count": s.word_count,
                    "status": s.status.value,
                    "verify_calls": s.verify_calls,
                    "residual_issues": len(s.residual_issues),
                }
                for s in script.sections
            ],
            residual_issue_count=residual,
        )
        self.checkpoints.save_manifest(manifest)
        self.manifest = manifest
        self.callbacks.on_phase_end("FINALIZATION", True)
        return manifest

    # -----------------------------------------------------------------------
    # Full run
    # -----------------------------------------------------------------------

    def run(self, document_text: str | None = None, outline_text: str | None = None) -> PipelineResult:
        """Run outline (unless one is given or configured) and script generation."""
        errors: list[str] = []
        phases: list[PipelinePhase] = []
        status = RunStatus.FAILED
        self.warnings = []
        self.outline_result = None
        self.script_result = None
        self.manifest = None

        try:
            if outline_text is None and self.config.outline_file:
                outline_text = self._read_input(self.config.outline_file, "outline")

            if outline_text is None:
                if document_text is None and self.config.document_file:
                    document_text = self._read_input(self.config.document_file, "document")
                if not document_text:
                    raise FileNotFoundError("Either a document or an outline is required")
                outline_result = self.run_outline(document_text)
            else:
                if document_text is None and self.config.document_file:
                    document_text = self._optional_document()
                outline_result = OutlineResult(
                    text=outline_text,
                    outline=parse_outline(outline_text),
                    status=LoopStatus.VALID,
                    verify_calls=0,
                )
                self.checkpoints.save_outline(outline_text)
                self.outline_result = outline_result
            phases.append(PipelinePhase.OUTLINE)

            context = self.build_context(document_text or "", outline_result.text)
            self.generate_document(outline_result.outline.sections, context)
            phases.extend([PipelinePhase.SECTIONS, PipelinePhase.DOCUMENT_REVIEW])

            if self.script_result is None:
                raise RuntimeError("Script generation produced no result")
            self._finalize(outline_result.outline, self.script_result)
            phases.append(PipelinePhase.FINALIZATION)
            status = RunStatus.COMPLETED

        except GenerationCancelled as e:
            logger.warning("Pipeline cancelled at %s", e)
            self._cancel.clear()
            status = RunStatus.CANCELLED
        except Exception as e:
            logger.exception("Pipeline failed")
            self.callbacks.on_error(str(e))
            errors.append(str(e))

        return PipelineResult(
            status=status,
            outline=self.outline_result,
            script=self.script_result,
            manifest=self.manifest,
            errors=errors,
            warnings=list(self.warnings),
            phases_completed=phases,
        )

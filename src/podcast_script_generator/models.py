"""Pydantic models for the podcast script generator pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class VerdictSource(str, Enum):
    """How much a verification verdict can be trusted."""
    STRUCTURED = "structured"        # parsed JSON issues from the service
    HEURISTIC = "heuristic"          # keyword guess over unparseable output
    LOCAL_METRICS = "local_metrics"  # service unreachable, word count only


class PartType(str, Enum):
    INTRO = "intro"
    SECTION = "section"
    OUTRO = "outro"


class LoopStatus(str, Enum):
    VALID = "valid"
    EXHAUSTED = "exhausted"
    NO_PROGRESS = "no_progress"
    STALLED = "stalled"


class PipelinePhase(str, Enum):
    OUTLINE = "outline"
    SECTIONS = "sections"
    DOCUMENT_REVIEW = "document_review"
    FINALIZATION = "finalization"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Azure & Model Configuration
# ---------------------------------------------------------------------------

class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class ModelEndpointOverride(BaseModel):
    """Per-model endpoint settings that take precedence over ``azure``."""
    endpoint: str = ""
    api_key: str | None = None
    api_version: str | None = None
    api_type: str | None = None


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-4o", description="Default model")
    outline: str | None = Field(default=None)
    writer: str | None = Field(default=None)
    verifier: str | None = Field(default=None)
    improver: str | None = Field(default=None)
    summarizer: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class TemperatureConfig(BaseModel):
    """Sampling temperature per call kind."""
    generate: float = 0.7
    verify: float = 0.3
    improve: float = 0.5
    summarize: float = 0.5
    outline_verify: float = 0.3
    outline_improve: float = 0.4


class CharacterProfile(BaseModel):
    """A podcast speaker. ``name`` may leak into generated text as a label."""
    name: str
    personality: str = ""
    speaking_style: str = ""
    backstory: str = ""


class ProgressWeights(BaseModel):
    """Weights of the composite progress model (percent of the whole run)."""
    sections: float = 80.0
    document_verify: float = 10.0
    document_improve: float = 10.0
    generate: float = Field(default=0.4, description="Share of one section spent generating")
    verify: float = Field(default=0.3, description="Share of one section spent verifying")
    improve: float = Field(default=0.3, description="Share of one section spent improving")


class ProjectConfig(BaseModel):
    """Top-level project configuration (loaded from YAML or Hydra)."""
    project_name: str = "podcast"
    document_file: str | None = Field(default=None, description="Source document to build the outline from")
    outline_file: str | None = Field(default=None, description="Existing outline; skips outline generation")
    output_dir: str = "output/"
    target_duration_minutes: float = 30.0
    podcast_focus: str = ""
    language: str = "english"
    words_per_minute: int = 160
    max_attempts: int = Field(default=3, ge=1)
    document_max_attempts: int = Field(default=3, ge=1)
    outline_max_attempts: int = Field(default=3, ge=1)
    dialogue_tail_exchanges: int = Field(default=2, ge=0)
    min_improvement_rate: float | None = Field(
        default=None, description="Stop a loop early when the improvement rate drops below this"
    )
    host: CharacterProfile = Field(default_factory=lambda: CharacterProfile(name="Host"))
    guest: CharacterProfile = Field(default_factory=lambda: CharacterProfile(name="Guest"))
    temperatures: TemperatureConfig = Field(default_factory=TemperatureConfig)
    progress: ProgressWeights = Field(default_factory=ProgressWeights)
    azure: AzureConfig = Field(default_factory=AzureConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    timeout: int = 120
    seed: int = 42


class GenerationContext(BaseModel):
    """Run-wide material every prompt may draw on."""
    document_text: str = ""
    outline_text: str = ""
    total_duration_minutes: float = 0.0
    podcast_focus: str = ""
    language: str = "english"
    words_per_minute: int = 160
    host: CharacterProfile = Field(default_factory=lambda: CharacterProfile(name="Host"))
    guest: CharacterProfile = Field(default_factory=lambda: CharacterProfile(name="Guest"))


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------

class Section(BaseModel):
    """One numbered, timed unit of the outline."""
    model_config = ConfigDict(frozen=True)

    id: str
    number: str
    title: str
    duration_minutes: float = 0.0
    overview: str = "No overview provided"
    raw_content: str = ""


class ParsedOutline(BaseModel):
    sections: list[Section]
    total_duration_minutes: float = 0.0


class DurationCheck(BaseModel):
    """Measured word count against a duration target."""
    actual: int
    target: int
    delta: int
    tolerance: float
    compliant: bool


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class Issue(BaseModel):
    """A single quality finding. Immutable so history never aliases live state."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str = Field(default="GENERAL", validation_alias=AliasChoices("category", "type"))
    severity: Severity = Field(default=Severity.MINOR, validation_alias=AliasChoices("severity", "priority"))
    description: str = ""
    evidence: str = Field(default="", validation_alias=AliasChoices("evidence", "location"))
    fix: str = Field(default="", validation_alias=AliasChoices("fix", "recommendation"))
    actions: tuple[str, ...] = ()
    notes: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _upper_category(cls, v: Any) -> str:
        return str(v or "GENERAL").strip().upper()

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, v: Any) -> Severity:
        try:
            return Severity(str(v).strip().lower())
        except ValueError:
            return Severity.MINOR

    @field_validator("evidence", "fix", "notes", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("actions", mode="before")
    @classmethod
    def _coerce_actions(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,) if v.strip() else ()
        return tuple(str(a) for a in v)


class VerificationResult(BaseModel):
    """Uniform verdict returned on every verification path."""
    is_valid: bool
    feedback: str = ""
    issues: list[Issue] = Field(default_factory=list)
    raw_structured: dict[str, Any] | None = None
    verdict: VerdictSource = VerdictSource.STRUCTURED
    word_count: int | None = None
    target_words: int | None = None


class ImprovementResult(BaseModel):
    text: str
    changed: bool
    failed: bool = False


# ---------------------------------------------------------------------------
# Issue history
# ---------------------------------------------------------------------------

class AttemptRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    issues_snapshot: tuple[Issue, ...]
    produced_text: str
    section_id: str | None = None
    tiers_addressed: tuple[str, ...] = ()
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt_number: int


class IssueSignatureEntry(BaseModel):
    count: int = 1
    last_seen_attempt: int
    sample: Issue
    seen_this_iteration: bool = True


# ---------------------------------------------------------------------------
# Refinement & pipeline results
# ---------------------------------------------------------------------------

class RefinementOutcome(BaseModel):
    text: str
    status: LoopStatus
    verify_calls: int
    final_verification: VerificationResult
    residual_issues: list[Issue] = Field(default_factory=list)


class ConversationSummary(BaseModel):
    summary: str = ""
    topics: list[str] = Field(default_factory=list)


class SectionResult(BaseModel):
    section: Section
    text: str
    word_count: int
    target_words: int
    status: LoopStatus
    verify_calls: int
    residual_issues: list[Issue] = Field(default_factory=list)
    summary: ConversationSummary | None = None


class ScriptResult(BaseModel):
    text: str
    sections: list[SectionResult] = Field(default_factory=list)
    document_status: LoopStatus | None = None
    document_issues: list[Issue] = Field(default_factory=list)
    word_count: int = 0


class OutlineResult(BaseModel):
    text: str
    outline: ParsedOutline
    status: LoopStatus
    verify_calls: int


class RunManifest(BaseModel):
    """Provenance record written next to the generated script."""
    project_name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    outline_file: str | None = None
    script_file: str | None = None
    target_duration_minutes: float = 0.0
    outline_duration_minutes: float = 0.0
    total_words: int = 0
    estimated_minutes: float = 0.0
    sections: list[dict[str, Any]] = Field(default_factory=list)
    residual_issue_count: int = 0


class PipelineResult(BaseModel):
    status: RunStatus
    outline: OutlineResult | None = None
    script: ScriptResult | None = None
    manifest: RunManifest | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    phases_completed: list[PipelinePhase] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED


# ---------------------------------------------------------------------------
# Completion service wire types
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role: str
    content: str


class ChatSpec(BaseModel):
    """One completion request: which model, what messages, how to sample."""
    role: str = Field(description="Pipeline role used to resolve the model endpoint")
    model: str | None = None
    messages: list[ChatMessage]
    temperature: float = 0.7
    max_tokens: int | None = None


class CompletionResponse(BaseModel):
    content: str
    usage: dict[str, Any] = Field(default_factory=dict)

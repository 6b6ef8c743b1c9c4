"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-4o"
    outline: str | None = None
    writer: str | None = None
    verifier: str | None = None
    improver: str | None = None
    summarizer: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class TemperatureConf:
    generate: float = 0.7
    verify: float = 0.3
    improve: float = 0.5
    summarize: float = 0.5
    outline_verify: float = 0.3
    outline_improve: float = 0.4


@dataclass
class CharacterConf:
    name: str = "Host"
    personality: str = ""
    speaking_style: str = ""
    backstory: str = ""


@dataclass
class ProgressConf:
    sections: float = 80.0
    document_verify: float = 10.0
    document_improve: float = 10.0
    generate: float = 0.4
    verify: float = 0.3
    improve: float = 0.3


@dataclass
class PsgConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    verbose: bool = False
    quiet: bool = False

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "podcast"
    document_file: str | None = None
    outline_file: str | None = None
    output_dir: str = "output/"

    target_duration_minutes: float = 30.0
    podcast_focus: str = ""
    language: str = "english"
    words_per_minute: int = 160

    max_attempts: int = 3
    document_max_attempts: int = 3
    outline_max_attempts: int = 3
    dialogue_tail_exchanges: int = 2
    min_improvement_rate: float | None = None

    host: CharacterConf = field(default_factory=CharacterConf)
    guest: CharacterConf = field(default_factory=lambda: CharacterConf(name="Guest"))
    temperatures: TemperatureConf = field(default_factory=TemperatureConf)
    progress: ProgressConf = field(default_factory=ProgressConf)

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)

    timeout: int = 120
    seed: int = 42


# Keys present in PsgConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({"mode", "verbose", "quiet"})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="psg_schema", node=PsgConf)

"""Podcast project settings: YAML loading and per-role AG2 endpoint selection."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import AzureConfig, ModelEndpointOverride, ProjectConfig

load_dotenv()

# ---------------------------------------------------------------------------
# YAML loading with ${ENV_VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_RE = re.compile(r"\$\{([^}]+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Substitute ``${NAME}`` placeholders throughout a parsed YAML tree."""
    if isinstance(value, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), "")
        return _ENV_RE.sub(_replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def apply_azure_fallbacks(config: ProjectConfig) -> ProjectConfig:
    """Take missing service credentials from ``AZURE_OPENAI_*`` variables."""
    if not config.azure.api_key:
        config.azure.api_key = os.getenv("AZURE_OPENAI_API_KEY", "")
    if not config.azure.api_version:
        config.azure.api_version = os.getenv("AZURE_OPENAI_API_VERSION", "")
    if not config.azure.endpoint:
        config.azure.endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    config.azure.endpoint = config.azure.endpoint.rstrip("/")
    return config


def load_config(config_path: str | Path) -> ProjectConfig:
    """Read a podcast project file (target duration, speakers, models, loop limits)."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    config = ProjectConfig.model_validate(_resolve_env_vars(raw))
    return apply_azure_fallbacks(config)


# ---------------------------------------------------------------------------
# LLM config builder
# ---------------------------------------------------------------------------

def _is_azure_openai_endpoint(endpoint: str) -> bool:
    """Deployment-routed endpoints need ``azure_deployment`` in the entry."""
    lower = endpoint.lower()
    return "openai.azure.com" in lower or "cognitiveservices.azure.com" in lower


def _build_single_entry(
    model: str,
    azure: AzureConfig,
    override: ModelEndpointOverride | None = None,
) -> dict[str, Any]:
    """One ``config_list`` entry. A per-model override replaces the shared
    endpoint; with an explicit ``api_type`` the endpoint becomes ``base_url``.
    """
    api_key = azure.api_key
    api_version = azure.api_version
    endpoint = azure.endpoint
    forced_api_type: str | None = None

    if override:
        endpoint = override.endpoint.rstrip("/")
        if override.api_key:
            api_key = override.api_key
        if override.api_version:
            api_version = override.api_version
        forced_api_type = override.api_type

    entry: dict[str, Any] = {
        "model": model,
        "api_key": api_key,
    }

    if forced_api_type:
        entry["api_type"] = forced_api_type
        entry["base_url"] = endpoint
    elif endpoint and _is_azure_openai_endpoint(endpoint):
        entry.update({
            "api_type": "azure",
            "azure_endpoint": endpoint,
            "api_version": api_version,
            "azure_deployment": model,
        })
    elif endpoint:
        entry["base_url"] = endpoint
    return entry


def resolve_role_model(role: str, config: ProjectConfig) -> str:
    """Return the model name configured for a pipeline *role*.

    Role mapping:
    - ``outline`` / ``outline_writer`` → models.outline (or default)
    - ``outline_verifier`` / ``outline_improver`` → models.verifier / models.improver
    - ``writer`` / ``section_writer`` → models.writer (or default)
    - ``verifier`` / ``document_verifier`` → models.verifier (or default)
    - ``improver`` / ``document_improver`` → models.improver (or default)
    - ``summarizer`` → models.summarizer (or writer, or default)
    """
    models = config.models
    role_map: dict[str, str | None] = {
        "outline": models.outline,
        "outline_writer": models.outline,
        "outline_verifier": models.verifier,
        "outline_improver": models.improver,
        "writer": models.writer,
        "section_writer": models.writer,
        "verifier": models.verifier,
        "document_verifier": models.verifier,
        "improver": models.improver,
        "document_improver": models.improver,
        "summarizer": models.summarizer or models.writer,
    }
    return role_map.get(role.lower()) or models.default


def build_model_llm_config(model: str, config: ProjectConfig) -> dict[str, Any]:
    """Return an AG2 ``llm_config`` for an explicit *model* name."""
    override = config.models.overrides.get(model)
    entry = _build_single_entry(model, config.azure, override=override)
    return {
        "config_list": [entry],
        "timeout": config.timeout,
        "seed": config.seed,
    }


def build_role_llm_config(role: str, config: ProjectConfig) -> dict[str, Any]:
    """``llm_config`` for the model a request role (writer, verifier, ...) is mapped to."""
    return build_model_llm_config(resolve_role_model(role, config), config)

"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from podcast_script_generator.completion import TransportError
from podcast_script_generator.models import ChatSpec, CompletionResponse, ProjectConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_OUTLINE = FIXTURES_DIR / "sample_outline.md"
SAMPLE_CONFIG = FIXTURES_DIR / "sample_config.yaml"

VALID_JSON = '{"isValid": true, "issues": [], "feedback": "Looks good."}'


def make_dialogue(n_words: int, first: str = "HOST", turn_words: int = 20, word: str = "talk") -> str:
    """Canonical dialogue with exactly *n_words* spoken words, alternating speakers."""
    turns: list[str] = []
    speaker = first
    remaining = n_words
    while remaining > 0:
        k = min(turn_words, remaining)
        turns.append(f"---\n{speaker}:\n" + " ".join([word] * k))
        remaining -= k
        speaker = "GUEST" if speaker == "HOST" else "HOST"
    return "\n\n".join(turns)


def invalid_json(*descriptions: str, category: str = "FLOW", severity: str = "major") -> str:
    issues = ",".join(
        f'{{"category": "{category}", "severity": "{severity}", "description": "{d}"}}'
        for d in descriptions
    )
    return f'{{"isValid": false, "issues": [{issues}], "feedback": "Needs work."}}'


class FakeCompletionClient:
    """Scripted stand-in for the completion service.

    ``responses`` maps a request role to a reply. A reply may be a string,
    a list of strings consumed in order (the last one repeats), a callable
    taking the ``ChatSpec``, or an exception instance to raise.
    Unscripted roles raise ``TransportError``.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[ChatSpec] = []

    def send_chat(self, spec: ChatSpec) -> CompletionResponse:
        self.calls.append(spec)
        script = self.responses.get(spec.role)
        if script is None:
            raise TransportError(f"no scripted reply for {spec.role}")

        if callable(script):
            reply = script(spec)
        elif isinstance(script, list):
            reply = script.pop(0) if len(script) > 1 else script[0]
        else:
            reply = script

        if isinstance(reply, Exception):
            raise reply
        return CompletionResponse(content=reply)

    def roles(self) -> list[str]:
        return [c.role for c in self.calls]

    def user_messages(self, role: str) -> list[str]:
        return [
            m.content
            for c in self.calls if c.role == role
            for m in c.messages if m.role == "user"
        ]


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_outline_text() -> str:
    return SAMPLE_OUTLINE.read_text(encoding="utf-8")


@pytest.fixture
def sample_config_path() -> Path:
    return SAMPLE_CONFIG


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    out = tmp_path / "output"
    out.mkdir()
    return out


@pytest.fixture
def project_config() -> ProjectConfig:
    return ProjectConfig(
        project_name="test-show",
        target_duration_minutes=10,
        azure={"api_key": "k", "api_version": "v", "endpoint": "https://test.openai.azure.com"},
    )


@pytest.fixture
def fake_client_factory() -> Callable[..., FakeCompletionClient]:
    return FakeCompletionClient


@pytest.fixture
def dialogue() -> Callable[..., str]:
    return make_dialogue

"""Shared plumbing for agents that talk to the completion service."""

from __future__ import annotations

from ..completion import CompletionClient
from ..config import resolve_role_model
from ..models import ChatMessage, ChatSpec, ModelConfig, ProjectConfig


class CompletionAgent:
    """Builds ``ChatSpec`` requests for one pipeline role and sends them.

    ``models`` overrides the configured per-role models for the life of this
    agent (used when a caller supplies a model config for a single run).
    """

    def __init__(
        self,
        client: CompletionClient,
        config: ProjectConfig,
        models: ModelConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.models = models

    def _model_for(self, role: str) -> str | None:
        if self.models is None:
            return None
        return resolve_role_model(role, self.config.model_copy(update={"models": self.models}))

    def build_spec(self, role: str, system: str, user: str, temperature: float) -> ChatSpec:
        return ChatSpec(
            role=role,
            model=self._model_for(role),
            messages=[ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)],
            temperature=temperature,
        )

    def send(self, role: str, system: str, user: str, temperature: float) -> str:
        """Send one request and return the reply text. ``TransportError`` propagates."""
        return self.client.send_chat(self.build_spec(role, system, user, temperature)).content

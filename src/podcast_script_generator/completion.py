"""Completion service boundary.

The pipeline only ever talks to a ``CompletionClient``. The production
implementation runs a single-turn AG2 chat per request; tests substitute a
scripted fake.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import autogen

from .config import build_model_llm_config, build_role_llm_config
from .models import ChatSpec, CompletionResponse, ProjectConfig

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """The completion service could not produce a response."""


class CompletionClient(Protocol):
    def send_chat(self, spec: ChatSpec) -> CompletionResponse: ...


def _extract_text(response: Any) -> str:
    """Extract the reply text from an AG2 chat response."""
    if hasattr(response, "chat_history") and response.chat_history:
        for message in reversed(response.chat_history):
            if isinstance(message, dict):
                if message.get("name") != "Orchestrator" and message.get("content"):
                    return str(message["content"]).strip()
            elif message:
                return str(message).strip()
    if hasattr(response, "summary") and response.summary:
        return str(response.summary).strip()
    return ""


def _extract_usage(response: Any) -> dict[str, Any]:
    cost = getattr(response, "cost", None)
    return dict(cost) if isinstance(cost, dict) else {}


class AutogenCompletionClient:
    """Send each ``ChatSpec`` as a one-turn chat between an orchestrator and an assistant."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    def _llm_config(self, spec: ChatSpec) -> dict[str, Any]:
        if spec.model:
            llm_config = build_model_llm_config(spec.model, self.config)
        else:
            llm_config = build_role_llm_config(spec.role, self.config)
        for entry in llm_config["config_list"]:
            entry["temperature"] = spec.temperature
            if spec.max_tokens:
                entry["max_tokens"] = spec.max_tokens
        return llm_config

    def send_chat(self, spec: ChatSpec) -> CompletionResponse:
        system = "\n\n".join(m.content for m in spec.messages if m.role == "system")
        message = "\n\n".join(m.content for m in spec.messages if m.role != "system")

        try:
            agent = autogen.AssistantAgent(
                name=f"{spec.role.title().replace('_', '')}Agent",
                llm_config=self._llm_config(spec),
                system_message=system or "You are a helpful assistant.",
            )
            orchestrator = autogen.UserProxyAgent(
                name="Orchestrator",
                human_input_mode="NEVER",
                code_execution_config=False,
            )
            response = orchestrator.initiate_chat(
                agent,
                message=message,
                max_turns=1,
                silent=True,
            )
        except Exception as e:
            raise TransportError(f"{spec.role} request failed: {e}") from e

        content = _extract_text(response)
        if not content:
            raise TransportError(f"{spec.role} request returned an empty response")

        usage = _extract_usage(response)
        if usage:
            logger.debug("%s usage: %s", spec.role, usage)
        return CompletionResponse(content=content, usage=usage)

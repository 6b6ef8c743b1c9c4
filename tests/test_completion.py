"""Tests for completion.py: the AG2-backed completion client."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from podcast_script_generator.completion import AutogenCompletionClient, TransportError, _extract_text
from podcast_script_generator.models import ChatMessage, ChatSpec, ProjectConfig

AZURE = {"api_key": "k", "api_version": "v", "endpoint": "https://test.openai.azure.com"}


def _spec(**kwargs) -> ChatSpec:
    base = {
        "role": "verifier",
        "messages": [ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hello")],
        "temperature": 0.3,
    }
    base.update(kwargs)
    return ChatSpec(**base)


class TestExtractText:
    def test_last_non_orchestrator_message(self):
        response = SimpleNamespace(chat_history=[
            {"name": "Orchestrator", "content": "question"},
            {"name": "VerifierAgent", "content": "  answer  "},
        ])
        assert _extract_text(response) == "answer"

    def test_summary_fallback(self):
        assert _extract_text(SimpleNamespace(chat_history=[], summary="done")) == "done"

    def test_nothing(self):
        assert _extract_text(SimpleNamespace()) == ""


class TestAutogenCompletionClient:
    @patch("podcast_script_generator.completion.autogen")
    def test_single_turn_chat(self, mock_autogen):
        orchestrator = MagicMock()
        orchestrator.initiate_chat.return_value = SimpleNamespace(
            chat_history=[{"name": "VerifierAgent", "content": '{"isValid": true}'}],
            cost={"total_cost": 0.01},
        )
        mock_autogen.UserProxyAgent.return_value = orchestrator

        config = ProjectConfig(azure=AZURE, models={"default": "gpt-4o", "verifier": "gpt-4o-mini"})
        response = AutogenCompletionClient(config).send_chat(_spec())

        assert response.content == '{"isValid": true}'
        assert response.usage == {"total_cost": 0.01}
        kwargs = mock_autogen.AssistantAgent.call_args.kwargs
        assert kwargs["system_message"] == "sys"
        entry = kwargs["llm_config"]["config_list"][0]
        assert entry["model"] == "gpt-4o-mini"
        assert entry["temperature"] == 0.3
        assert orchestrator.initiate_chat.call_args.kwargs["max_turns"] == 1
        assert orchestrator.initiate_chat.call_args.kwargs["message"] == "hello"

    @patch("podcast_script_generator.completion.autogen")
    def test_explicit_model_wins(self, mock_autogen):
        mock_autogen.UserProxyAgent.return_value.initiate_chat.return_value = SimpleNamespace(
            chat_history=[{"name": "A", "content": "ok"}]
        )
        config = ProjectConfig(azure=AZURE)
        AutogenCompletionClient(config).send_chat(_spec(model="special", max_tokens=500))
        entry = mock_autogen.AssistantAgent.call_args.kwargs["llm_config"]["config_list"][0]
        assert entry["model"] == "special"
        assert entry["max_tokens"] == 500

    @patch("podcast_script_generator.completion.autogen")
    def test_errors_become_transport_errors(self, mock_autogen):
        mock_autogen.UserProxyAgent.return_value.initiate_chat.side_effect = RuntimeError("timeout")
        with pytest.raises(TransportError, match="timeout"):
            AutogenCompletionClient(ProjectConfig(azure=AZURE)).send_chat(_spec())

    @patch("podcast_script_generator.completion.autogen")
    def test_empty_reply_is_transport_error(self, mock_autogen):
        mock_autogen.UserProxyAgent.return_value.initiate_chat.return_value = SimpleNamespace(
            chat_history=[{"name": "Orchestrator", "content": "hello"}]
        )
        with pytest.raises(TransportError):
            AutogenCompletionClient(ProjectConfig(azure=AZURE)).send_chat(_spec())

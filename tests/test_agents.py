"""Tests for the writer and improver agents."""

from __future__ import annotations

import pytest

from podcast_script_generator.agents.improver import ScriptImprover
from podcast_script_generator.agents.writer import ScriptWriter, parse_summary, part_type_for
from podcast_script_generator.completion import TransportError
from podcast_script_generator.models import (
    CharacterProfile,
    GenerationContext,
    Issue,
    ModelConfig,
    PartType,
    ProjectConfig,
    Section,
)

from conftest import FakeCompletionClient, make_dialogue

SECTION = Section(id="section-2", number="2", title="Survival", duration_minutes=5, raw_content="2. Survival")
CTX = GenerationContext(total_duration_minutes=10, document_text="Tide pools.")


def _config() -> ProjectConfig:
    return ProjectConfig(
        host=CharacterProfile(name="Maya"),
        guest=CharacterProfile(name="Dr. Ortiz"),
        models={"default": "gpt-4o", "writer": "writer-model", "verifier": "verifier-model"},
    )


class TestPartType:
    def test_positions(self):
        assert part_type_for(0, 3) == PartType.INTRO
        assert part_type_for(1, 3) == PartType.SECTION
        assert part_type_for(2, 3) == PartType.OUTRO

    def test_single_section_is_intro(self):
        assert part_type_for(0, 1) == PartType.INTRO


class TestParseSummary:
    def test_summary_and_topics(self):
        text = "SUMMARY: They discussed barnacles.\n\nTOPICS COVERED:\n- Barnacles\n* Low tide\n1. Heat"
        summary = parse_summary(text)
        assert summary.summary == "They discussed barnacles."
        assert summary.topics == ["Barnacles", "Low tide", "Heat"]

    def test_unformatted_reply_becomes_summary(self):
        summary = parse_summary("A short chat about waves.")
        assert summary.summary == "A short chat about waves."
        assert summary.topics == []


class TestScriptWriter:
    def test_generate_section_normalizes(self):
        client = FakeCompletionClient({"writer": "```\nMaya: Hello [laughs]\nDr. Ortiz: Hi there\n```"})
        writer = ScriptWriter(client, _config())
        text = writer.generate_section(SECTION, PartType.SECTION, CTX, previous_dialogue="---\nHOST:\nEarlier")
        assert text == "---\nHOST:\nHello\n\n---\nGUEST:\nHi there"
        prompt = client.user_messages("writer")[0]
        assert "Earlier" in prompt
        assert "~800 words" in prompt

    def test_generate_section_empty_reply_raises(self):
        writer = ScriptWriter(FakeCompletionClient({"writer": "```\n```"}), _config())
        with pytest.raises(TransportError):
            writer.generate_section(SECTION, PartType.INTRO, CTX)

    def test_generate_section_transport_error_propagates(self):
        writer = ScriptWriter(FakeCompletionClient({}), _config())
        with pytest.raises(TransportError):
            writer.generate_section(SECTION, PartType.INTRO, CTX)

    def test_summarize_failure_returns_none(self):
        writer = ScriptWriter(FakeCompletionClient({}), _config())
        assert writer.summarize("---\nHOST:\nHi", section_id="section-1") is None

    def test_generate_outline_strips_fences(self):
        client = FakeCompletionClient({"outline": "```markdown\n1. Intro\nDuration: 2 minutes\n```"})
        writer = ScriptWriter(client, _config())
        assert writer.generate_outline(CTX) == "1. Intro\nDuration: 2 minutes"

    def test_model_override_only_when_given(self):
        client = FakeCompletionClient({"writer": make_dialogue(20)})
        ScriptWriter(client, _config()).generate_section(SECTION, PartType.SECTION, CTX)
        ScriptWriter(client, _config(), ModelConfig(default="other", writer="run-model")).generate_section(
            SECTION, PartType.SECTION, CTX
        )
        assert client.calls[0].model is None
        assert client.calls[1].model == "run-model"


class TestScriptImprover:
    def test_changed(self):
        original = make_dialogue(40)
        client = FakeCompletionClient({"improver": make_dialogue(60)})
        result = ScriptImprover(client, _config()).improve_section(
            original, [Issue(description="Too short")], CTX, section=SECTION
        )
        assert result.changed is True
        assert result.failed is False
        assert result.text == make_dialogue(60)
        assert "Too short" in client.user_messages("improver")[0]

    def test_identical_after_normalization_is_unchanged(self):
        original = make_dialogue(40)
        messy = original.replace("HOST:", "**HOST:**") + "\n```"
        client = FakeCompletionClient({"improver": messy})
        result = ScriptImprover(client, _config()).improve_section(original, [], CTX)
        assert result.changed is False
        assert result.failed is False

    def test_transport_error_keeps_original(self):
        original = make_dialogue(40)
        result = ScriptImprover(FakeCompletionClient({}), _config()).improve_document(original, [], CTX)
        assert result.failed is True
        assert result.changed is False
        assert result.text == original

    def test_reply_without_dialogue_is_failure(self):
        original = make_dialogue(40)
        client = FakeCompletionClient({"document_improver": "[no changes]"})
        result = ScriptImprover(client, _config()).improve_document(original, [], CTX)
        assert result.failed is True
        assert result.text == original

    def test_outline_only_strips_fences(self):
        client = FakeCompletionClient({"outline_improver": "```\n1. Better Intro\nDuration: 2 minutes\n```"})
        result = ScriptImprover(client, _config()).improve_outline("1. Intro\nDuration: 2 minutes", [], CTX)
        assert result.changed is True
        assert result.text == "1. Better Intro\nDuration: 2 minutes"

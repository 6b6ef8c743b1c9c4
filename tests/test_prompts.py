"""Tests for prompts.py: context blocks reach the generation prompts."""

from __future__ import annotations

import json

from podcast_script_generator.models import GenerationContext, Issue, PartType
from podcast_script_generator.prompts import format_feedback, script_system, section_user
from podcast_script_generator.tools.outline_parser import parse_outline

CTX = GenerationContext(total_duration_minutes=10, document_text="Tide pool notes.", language="spanish")


def test_section_prompt_includes_reference_blocks(sample_outline_text):
    first, second, _ = parse_outline(sample_outline_text).sections
    prompt = section_user(first, PartType.INTRO, CTX)
    assert "## Key facts to convey" in prompt
    assert "flooded and drained" in prompt
    assert "## What only this section covers" in prompt
    assert "Carry over" not in prompt
    assert "temperature swings" in section_user(second, PartType.SECTION, CTX)


def test_optional_blocks_omitted_when_empty(sample_outline_text):
    third = parse_outline(sample_outline_text).sections[2]
    prompt = section_user(third, PartType.OUTRO, CTX)
    assert "Previous dialogue" not in prompt
    assert "Topics already covered" not in prompt
    assert "~320 words" in prompt


def test_script_system_language_and_document():
    system = script_system(CTX)
    assert "Tide pool notes." in system
    assert system.endswith("Generate the dialogue in spanish language.")


def test_format_feedback():
    assert format_feedback([], "Be clearer.") == "Be clearer."
    assert format_feedback([]) == "No specific issues reported."
    payload = json.loads(format_feedback([Issue(category="FLOW", description="Abrupt")], "fb"))
    assert payload["feedback"] == "fb"
    assert payload["issues"][0]["description"] == "Abrupt"
    assert payload["issues"][0]["severity"] == "minor"

"""Tests for tools/outline_parser.py."""

from __future__ import annotations

import pytest

from podcast_script_generator.tools.outline_parser import (
    OutlineParseError,
    extract_carryover,
    extract_key_facts,
    extract_unique_focus,
    parse_outline,
    parse_section,
)


class TestParseOutline:
    def test_sample_outline(self, sample_outline_text):
        outline = parse_outline(sample_outline_text)
        assert [s.id for s in outline.sections] == ["section-1", "section-2", "section-3"]
        assert [s.title for s in outline.sections] == [
            "Why Tide Pools Matter", "Survival Strategies", "Closing Thoughts",
        ]
        assert [s.duration_minutes for s in outline.sections] == [3, 5, 2]
        assert outline.total_duration_minutes == 10

    def test_overview_parsed(self, sample_outline_text):
        first = parse_outline(sample_outline_text).sections[0]
        assert first.overview.startswith("The host opens the show")

    def test_raw_content_kept(self, sample_outline_text):
        first = parse_outline(sample_outline_text).sections[0]
        assert "KEY FACTS:" in first.raw_content

    def test_empty_outline_raises(self):
        with pytest.raises(OutlineParseError):
            parse_outline("\n---\n   \n---\n")

    def test_separator_with_surrounding_spaces(self):
        outline = parse_outline("1. A\nDuration: 1 minute\n  ---  \n2. B\nDuration: 2 minutes")
        assert len(outline.sections) == 2

    def test_order_preserved(self):
        text = "\n---\n".join(f"{i}. Part {i}\nDuration: 1 minute" for i in range(1, 6))
        numbers = [s.number for s in parse_outline(text).sections]
        assert numbers == ["1", "2", "3", "4", "5"]


class TestParseSection:
    def test_hierarchical_number_and_markdown_title(self):
        section = parse_section("## **2.1. Deeper Dive**\nDuration: 4 minutes", 3)
        assert section.number == "2.1"
        assert section.title == "Deeper Dive"
        assert section.id == "section-3"

    def test_missing_title_uses_fallback(self):
        section = parse_section("Just some notes\nDuration: 2 minutes", 4)
        assert section.title == "Section 4"
        assert section.number == "4"

    def test_missing_duration_is_zero(self):
        assert parse_section("1. Intro", 1).duration_minutes == 0

    def test_missing_overview(self):
        assert parse_section("1. Intro", 1).overview == "No overview provided"

    def test_duration_in_seconds(self):
        assert parse_section("1. Intro\nDuration: 90 seconds", 1).duration_minutes == 1.5

    def test_fractional_minutes(self):
        assert parse_section("1. Intro\n**Duration:** 2.5 min", 1).duration_minutes == 2.5

    def test_section_is_frozen(self):
        section = parse_section("1. Intro", 1)
        with pytest.raises(Exception):
            section.title = "Changed"


class TestReferenceBlocks:
    def test_blocks(self, sample_outline_text):
        sections = parse_outline(sample_outline_text).sections
        facts = extract_key_facts(sections[0].raw_content)
        assert "flooded and drained" in facts
        assert "UNIQUE FOCUS" not in facts
        assert "how does anything survive" in extract_unique_focus(sections[0].raw_content)
        assert "temperature swings" in extract_carryover(sections[1].raw_content)

    def test_missing_block_is_empty(self):
        assert extract_carryover("1. Intro\nDuration: 1 minute") == ""

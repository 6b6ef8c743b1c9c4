"""Tests for tools/script_normalizer.py."""

from __future__ import annotations

from podcast_script_generator.tools.script_normalizer import (
    GUEST,
    HOST,
    extract_last_exchanges,
    find_speaker_handoffs,
    first_speaker,
    last_speaker,
    normalize_script,
    parse_turns,
    strip_fences,
)
from podcast_script_generator.tools.text_metrics import word_count

from conftest import make_dialogue


class TestNormalizeScript:
    def test_canonical_input_unchanged(self):
        text = "---\nHOST:\nWelcome back.\n\n---\nGUEST:\nThanks for having me."
        assert normalize_script(text) == text

    def test_inline_labels_and_spacing(self):
        text = "HOST : Welcome back.\nGUEST: Thanks!"
        assert normalize_script(text) == "---\nHOST:\nWelcome back.\n\n---\nGUEST:\nThanks!"

    def test_fences_artifacts_and_stage_directions(self):
        text = "```markdown\nmarkdown\n---\nHOST:\n[music] Hello there\n```"
        assert normalize_script(text) == "---\nHOST:\nHello there"

    def test_character_names_map_to_roles(self):
        text = "Maya: So what is a tide pool?\nDr. Ortiz: A pocket of the sea."
        result = normalize_script(text, host_name="Maya", guest_name="Dr. Ortiz")
        assert result == "---\nHOST:\nSo what is a tide pool?\n\n---\nGUEST:\nA pocket of the sea."

    def test_repeated_labels_keep_last(self):
        assert normalize_script("HOST: GUEST: I am the guest") == "---\nGUEST:\nI am the guest"

    def test_multiline_turn_joined(self):
        text = "---\nGUEST:\nFirst line\nsecond line"
        assert normalize_script(text) == "---\nGUEST:\nFirst line second line"

    def test_empty_blocks_dropped(self):
        text = "---\nHOST:\n\n---\nGUEST:\nOnly me"
        assert normalize_script(text) == "---\nGUEST:\nOnly me"

    def test_unlabeled_text_kept(self):
        assert normalize_script("Just narration") == "---\nJust narration"

    def test_idempotent(self):
        messy = "```\n**HOST:** Hi [smiles]\nthere\nGUEST :\nHello\n---\n---\nmd\nHOST: Bye\n```"
        once = normalize_script(messy)
        assert normalize_script(once) == once

    def test_word_count_preserved(self):
        text = make_dialogue(137)
        assert word_count(normalize_script(text)) == 137


class TestStripFences:
    def test_removes_fences_only(self):
        text = "```markdown\n1. Intro\nDuration: 2 minutes\n```"
        assert strip_fences(text) == "1. Intro\nDuration: 2 minutes"


class TestExchanges:
    def test_last_two_pairs(self):
        text = make_dialogue(120, turn_words=20)  # six turns
        tail = extract_last_exchanges(text, 2)
        turns = parse_turns(tail)
        assert len(turns) == 4
        assert turns[0].speaker == HOST
        assert turns[-1].speaker == GUEST

    def test_fewer_turns_than_requested(self):
        text = make_dialogue(40, turn_words=20)
        assert len(parse_turns(extract_last_exchanges(text, 5))) == 2

    def test_zero_and_empty(self):
        assert extract_last_exchanges("", 2) == ""
        assert extract_last_exchanges(make_dialogue(40), 0) == ""

    def test_single_turn_has_no_exchange(self):
        assert extract_last_exchanges("---\nHOST:\nHello", 2) == ""


class TestSpeakerHandoffs:
    def test_first_and_last_speaker(self):
        text = make_dialogue(60, first=GUEST, turn_words=20)
        assert first_speaker(text) == GUEST
        assert last_speaker(text) == GUEST

    def test_detects_same_speaker_boundaries(self):
        sections = [
            make_dialogue(40, first=HOST),   # ends GUEST
            make_dialogue(40, first=GUEST),  # same-speaker handoff; ends HOST
            make_dialogue(40, first=GUEST),  # clean handoff
        ]
        assert find_speaker_handoffs(sections) == [0]

    def test_single_section(self):
        assert find_speaker_handoffs([make_dialogue(40)]) == []

"""Tests for tools/checkpoint.py and the Rich outline table."""

from __future__ import annotations

import json

from podcast_script_generator.logging_config import render_outline_table
from podcast_script_generator.models import RunManifest
from podcast_script_generator.tools.checkpoint import CheckpointStore
from podcast_script_generator.tools.outline_parser import parse_outline


class TestCheckpointStore:
    def test_outline_trailing_whitespace_trimmed(self, tmp_output_dir):
        store = CheckpointStore(tmp_output_dir)
        path = store.save_outline("1. Intro\nDuration: 2 minutes\n\n\n")
        assert path.read_text(encoding="utf-8") == "1. Intro\nDuration: 2 minutes\n"

    def test_final_script_replaces_partial(self, tmp_output_dir):
        store = CheckpointStore(tmp_output_dir)
        partial = store.save_partial_script(["---\nHOST:\nOne", "---\nGUEST:\nTwo"])
        assert partial.read_text(encoding="utf-8") == "---\nHOST:\nOne\n\n---\nGUEST:\nTwo\n"
        store.save_script("---\nHOST:\nOne")
        assert not partial.exists()
        assert (tmp_output_dir / "script.md").exists()

    def test_creates_missing_directory(self, tmp_path):
        store = CheckpointStore(tmp_path / "nested" / "out")
        store.save_manifest(RunManifest(project_name="p", total_words=10))
        data = json.loads((tmp_path / "nested" / "out" / "manifest.json").read_text(encoding="utf-8"))
        assert data["project_name"] == "p"
        assert data["total_words"] == 10


class TestOutlineTable:
    def test_rows(self, sample_outline_text):
        table = render_outline_table(parse_outline(sample_outline_text), 160)
        assert table.row_count == 3

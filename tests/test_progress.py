"""Tests for progress.py: composite run progress."""

from __future__ import annotations

import pytest

from podcast_script_generator.models import ProgressWeights
from podcast_script_generator.progress import CompositeProgress


def _recorder():
    values: list[int] = []
    return values, values.append


class TestCompositeProgress:
    def test_section_stages(self):
        values, emit = _recorder()
        progress = CompositeProgress(2, ProgressWeights(), emit)
        progress.section_stage(0, "generate", 1.0)
        assert progress.value == 16  # 40 per section * 0.4
        progress.section_stage(0, "verify", 1.0)
        assert progress.value == 28
        progress.section_done(0)
        assert progress.value == 40
        assert values == [16, 28, 40]

    def test_never_decreases(self):
        values, emit = _recorder()
        progress = CompositeProgress(2, ProgressWeights(), emit)
        progress.section_done(0)
        progress.section_stage(0, "generate", 0.5)
        assert progress.value == 40
        assert values == [40]

    def test_document_bands(self):
        progress = CompositeProgress(1, ProgressWeights())
        progress.section_done(0)
        progress.document_stage("verify", 0.5)
        assert progress.value == 85
        progress.document_stage("improve", 1.0)
        assert progress.value == 99

    def test_only_complete_reports_100(self):
        values, emit = _recorder()
        progress = CompositeProgress(1, ProgressWeights(), emit)
        progress.section_done(0)
        progress.document_stage("verify", 1.0)
        progress.document_stage("improve", 1.0)
        assert progress.value == 99
        progress.complete()
        progress.complete()
        assert values[-1] == 100
        assert values.count(100) == 1

    def test_custom_weights_are_normalized(self):
        weights = ProgressWeights(sections=40, document_verify=5, document_improve=5)
        progress = CompositeProgress(1, weights)
        progress.section_done(0)
        assert progress.value == 80

    def test_unknown_stage(self):
        progress = CompositeProgress(1)
        with pytest.raises(ValueError):
            progress.section_stage(0, "summarize", 1.0)
        with pytest.raises(ValueError):
            progress.document_stage("generate", 1.0)

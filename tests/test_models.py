"""Tests for models.py."""

from __future__ import annotations

import pytest

from podcast_script_generator.models import (
    Issue,
    LoopStatus,
    PipelineResult,
    ProjectConfig,
    RunStatus,
    Section,
    Severity,
    VerificationResult,
)


class TestIssue:
    def test_aliases(self):
        issue = Issue.model_validate({
            "type": "flow", "priority": "Major", "description": "d",
            "location": "turn 3", "recommendation": "r",
        })
        assert issue.category == "FLOW"
        assert issue.severity == Severity.MAJOR
        assert issue.evidence == "turn 3"
        assert issue.fix == "r"

    def test_defaults_and_nulls(self):
        issue = Issue.model_validate({"description": None, "fix": None, "actions": None})
        assert issue.category == "GENERAL"
        assert issue.severity == Severity.MINOR
        assert issue.description == ""
        assert issue.actions == ()

    def test_actions_from_string(self):
        assert Issue(actions="Add an example").actions == ("Add an example",)

    def test_frozen(self):
        with pytest.raises(Exception):
            Issue(description="x").description = "y"


class TestResults:
    def test_verification_defaults(self):
        result = VerificationResult(is_valid=False)
        assert result.issues == []
        assert result.raw_structured is None

    def test_pipeline_success(self):
        assert PipelineResult(status=RunStatus.COMPLETED).success
        assert not PipelineResult(status=RunStatus.CANCELLED).success

    def test_section_immutable(self):
        section = Section(id="section-1", number="1", title="Intro")
        with pytest.raises(Exception):
            section.duration_minutes = 4

    def test_loop_status_values(self):
        assert {s.value for s in LoopStatus} == {"valid", "exhausted", "no_progress", "stalled"}


class TestProjectConfig:
    def test_defaults(self):
        config = ProjectConfig()
        assert config.words_per_minute == 160
        assert config.target_duration_minutes == 30
        assert config.max_attempts == 3
        assert config.host.name == "Host"
        assert config.progress.sections == 80

    def test_tail_exchanges_non_negative(self):
        with pytest.raises(ValueError):
            ProjectConfig(dialogue_tail_exchanges=-1)

"""Deterministic tools for text measurement, parsing and issue tracking."""

from .issue_history import IssueHistory, issue_signature
from .outline_parser import OutlineParseError, parse_outline
from .script_normalizer import normalize_script
from .text_metrics import duration_delta, normalize_text, target_words, word_count

__all__ = [
    "IssueHistory",
    "OutlineParseError",
    "duration_delta",
    "issue_signature",
    "normalize_script",
    "normalize_text",
    "parse_outline",
    "target_words",
    "word_count",
]

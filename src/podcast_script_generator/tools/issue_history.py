"""Track recurring verification issues across refinement attempts."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from ..models import AttemptRecord, Issue, IssueSignatureEntry

logger = logging.getLogger(__name__)


def _prefix(text: str, length: int) -> str:
    return re.sub(r"\s+", " ", text[:length]).strip()


def issue_signature(issue: Issue) -> str:
    """Coarse fingerprint used to recognise the same issue across attempts."""
    return "-".join([
        issue.category or "unknown",
        issue.severity.value if issue.severity else "unknown",
        _prefix(issue.description, 50),
        _prefix(issue.evidence, 30),
    ])


class IssueHistory:
    """Attempt log plus cumulative persistent-issue counts for one refinement run.

    Metrics are updated as a side effect of ``add_attempt``. Calling
    ``calculate_improvement_metrics`` again for the same pair of attempts
    counts the resolved issues twice.
    """

    def __init__(self) -> None:
        self._attempts: list[AttemptRecord] = []
        self._signatures: dict[str, IssueSignatureEntry] = {}
        self.total_issues_resolved = 0
        self.improvement_rates: list[float] = []

    @property
    def attempts(self) -> list[AttemptRecord]:
        return list(self._attempts)

    @property
    def latest_rate(self) -> float | None:
        return self.improvement_rates[-1] if self.improvement_rates else None

    def __len__(self) -> int:
        return len(self._attempts)

    # -----------------------------------------------------------------------
    # Recording
    # -----------------------------------------------------------------------

    def add_attempt(
        self,
        issues: Iterable[Issue],
        text: str,
        section_id: str | None = None,
        tiers: Iterable[str] = (),
    ) -> AttemptRecord:
        """Record one refinement iteration and update persistence and metrics."""
        snapshot = tuple(issues)
        record = AttemptRecord(
            issues_snapshot=snapshot,
            produced_text=text,
            section_id=section_id,
            tiers_addressed=tuple(tiers),
            attempt_number=len(self._attempts) + 1,
        )
        self._attempts.append(record)
        self.update_persistent_issues(snapshot)

        if len(self._attempts) >= 2:
            self.calculate_improvement_metrics()
        return record

    def update_persistent_issues(self, issues: Iterable[Issue]) -> None:
        """Bump counts for issues seen this iteration; others keep their count."""
        for entry in self._signatures.values():
            entry.seen_this_iteration = False

        attempt_number = len(self._attempts)
        for issue in issues:
            sig = issue_signature(issue)
            entry = self._signatures.get(sig)
            if entry is None:
                self._signatures[sig] = IssueSignatureEntry(
                    count=1,
                    last_seen_attempt=attempt_number,
                    sample=issue,
                    seen_this_iteration=True,
                )
            else:
                entry.count += 1
                entry.last_seen_attempt = attempt_number
                entry.sample = issue
                entry.seen_this_iteration = True

    def calculate_improvement_metrics(self) -> dict[str, float]:
        """Compare issue counts of the two most recent attempts.

        Appends the rate to ``improvement_rates`` and adds the resolved count
        to ``total_issues_resolved`` on every call.
        """
        if len(self._attempts) < 2:
            remaining = len(self._attempts[0].issues_snapshot) if self._attempts else 0
            return {"improvement_rate": 100.0, "issues_resolved": 0, "issues_remaining": remaining}

        prev = len(self._attempts[-2].issues_snapshot)
        cur = len(self._attempts[-1].issues_snapshot)
        resolved = max(0, prev - cur)
        rate = resolved / prev * 100 if prev > 0 else 0.0
        if cur > prev:
            # A clean attempt followed by new issues has no base to divide by.
            rate = -((cur - prev) / prev) * 100 if prev > 0 else -100.0 * cur

        self.total_issues_resolved += resolved
        self.improvement_rates.append(rate)
        logger.debug("Improvement rate %.1f%% (%d -> %d issues)", rate, prev, cur)
        return {"improvement_rate": rate, "issues_resolved": resolved, "issues_remaining": cur}

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_persistent_issues(self, min_occurrences: int = 2) -> list[IssueSignatureEntry]:
        """Entries seen at least *min_occurrences* times, most frequent and most recent first."""
        persistent = [e for e in self._signatures.values() if e.count >= min_occurrences]
        return sorted(persistent, key=lambda e: (-e.count, -e.last_seen_attempt))

    def should_continue_improvement(self, max_attempts: int = 3, min_rate: float = 10) -> bool:
        """Advisory stop/continue decision; callers decide whether to act on it."""
        if len(self._attempts) >= max_attempts:
            return False
        if not self._attempts:
            return True
        rate = self.latest_rate
        if rate is not None and rate < min_rate:
            logger.info("Improvement rate %.2f%% below threshold %.2f%%", rate, min_rate)
            return False
        return True

    def generate_history_summary(self, max_attempts_to_include: int = 2) -> str:
        """Prose digest of earlier attempts for inclusion in a later prompt."""
        if not self._attempts:
            return ""

        lines = [
            "--- PREVIOUS IMPROVEMENT ATTEMPTS ---",
            f"There have been {len(self._attempts)} previous improvement attempts.",
            "",
        ]

        persistent = self.get_persistent_issues(2)
        if persistent:
            lines.append("Persistent issues that haven't been fully resolved:")
            for i, entry in enumerate(persistent[:5], 1):
                issue = entry.sample
                lines.append(
                    f"{i}. {issue.category} ({issue.severity.value}): {issue.description} "
                    f"(appeared {entry.count} times)"
                )
            lines.append("")

        recent = self._attempts[-max_attempts_to_include:] if max_attempts_to_include > 0 else []
        for record in recent:
            tiers = ", ".join(record.tiers_addressed) or "all"
            lines.append(f"Attempt #{record.attempt_number} (focused on {tiers} issues):")
            lines.append(f"- Issues addressed: {len(record.issues_snapshot)}")
            if record.issues_snapshot:
                lines.append("- Example issues:")
                for issue in record.issues_snapshot[:2]:
                    lines.append(f"  * {issue.category} ({issue.severity.value}): {issue.description}")
            lines.append("")

        if self.improvement_rates:
            average = sum(self.improvement_rates) / len(self.improvement_rates)
            lines.append(f"Recent improvement rate: {self.improvement_rates[-1]:.2f}% issues resolved")
            lines.append(f"Average improvement rate: {average:.2f}%")
            lines.append(f"Total issues resolved across all attempts: {self.total_issues_resolved}")

        return "\n".join(lines).rstrip() + "\n"

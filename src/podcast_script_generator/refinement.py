"""Bounded verify/improve loop shared by outline, section and document passes."""

from __future__ import annotations

import logging
from typing import Callable

from .models import ImprovementResult, Issue, LoopStatus, RefinementOutcome, VerificationResult
from .tools.issue_history import IssueHistory

logger = logging.getLogger(__name__)

VerifyFn = Callable[[str, int], VerificationResult]
ImproveFn = Callable[[str, VerificationResult, str, int], ImprovementResult]
StageHook = Callable[[str, int, int], None]


class GenerationCancelled(Exception):
    """Raised at the next checkpoint after ``cancel()`` was requested."""


def _tiers(issues: list[Issue]) -> list[str]:
    seen: list[str] = []
    for issue in issues:
        if issue.severity.value not in seen:
            seen.append(issue.severity.value)
    return seen


class RefinementLoop:
    """Verify, then improve while invalid, until valid or out of attempts.

    At most ``max_attempts`` verify calls are made. An improvement that
    leaves the text unchanged ends the loop immediately. When
    ``min_improvement_rate`` is set, the loop also stops once the issue
    count stops falling fast enough.
    """

    def __init__(
        self,
        verify: VerifyFn,
        improve: ImproveFn,
        *,
        max_attempts: int = 3,
        scope: str = "section",
        min_improvement_rate: float | None = None,
        is_cancelled: Callable[[], bool] | None = None,
        on_stage: StageHook | None = None,
        on_verification: Callable[[int, VerificationResult], None] | None = None,
        on_improvement: Callable[[int, ImprovementResult], None] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.verify = verify
        self.improve = improve
        self.max_attempts = max_attempts
        self.scope = scope
        self.min_improvement_rate = min_improvement_rate
        self.is_cancelled = is_cancelled or (lambda: False)
        self.on_stage = on_stage
        self.on_verification = on_verification
        self.on_improvement = on_improvement
        self.history = IssueHistory()

    def _checkpoint(self) -> None:
        if self.is_cancelled():
            logger.info("Cancelled during refinement of %s", self.scope)
            raise GenerationCancelled(self.scope)

    def _stage(self, stage: str, attempt: int) -> None:
        if self.on_stage is not None:
            self.on_stage(stage, attempt, self.max_attempts)

    def run(self, text: str) -> RefinementOutcome:
        verify_calls = 0
        for attempt in range(1, self.max_attempts + 1):
            self._checkpoint()
            result = self.verify(text, attempt)
            verify_calls += 1
            self._checkpoint()

            self.history.add_attempt(result.issues, text, self.scope, _tiers(result.issues))
            self._stage("verify", attempt)
            if self.on_verification is not None:
                self.on_verification(attempt, result)

            if result.is_valid:
                return self._outcome(text, LoopStatus.VALID, verify_calls, result)

            if attempt == self.max_attempts:
                logger.info(
                    "%s still has %d issue(s) after %d attempts",
                    self.scope, len(result.issues), attempt,
                )
                return self._outcome(text, LoopStatus.EXHAUSTED, verify_calls, result)

            if self.min_improvement_rate is not None and not self.history.should_continue_improvement(
                self.max_attempts, self.min_improvement_rate
            ):
                return self._outcome(text, LoopStatus.STALLED, verify_calls, result)

            improvement = self.improve(text, result, self.history.generate_history_summary(), attempt)
            self._checkpoint()
            self._stage("improve", attempt)
            if self.on_improvement is not None:
                self.on_improvement(attempt, improvement)

            if not improvement.changed:
                logger.info("%s: no further progress on attempt %d", self.scope, attempt)
                return self._outcome(text, LoopStatus.NO_PROGRESS, verify_calls, result)
            text = improvement.text

        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _outcome(
        text: str,
        status: LoopStatus,
        verify_calls: int,
        result: VerificationResult,
    ) -> RefinementOutcome:
        residual = [] if status == LoopStatus.VALID else list(result.issues)
        return RefinementOutcome(
            text=text,
            status=status,
            verify_calls=verify_calls,
            final_verification=result,
            residual_issues=residual,
        )

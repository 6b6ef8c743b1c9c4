"""Composite 0-100 progress for one script generation run."""

from __future__ import annotations

import logging
import math
from typing import Callable

from .models import ProgressWeights

logger = logging.getLogger(__name__)

SECTION_STAGES = ("generate", "verify", "improve")
DOCUMENT_STAGES = ("verify", "improve")


class CompositeProgress:
    """Weighted progress over per-section stages and the whole-document pass.

    Sections share the ``sections`` band evenly; inside a section the band is
    split between generate, verify and improve. The whole-document verify and
    improve passes each own a fixed band. Reported values never decrease and
    only ``complete()`` reports 100.
    """

    def __init__(
        self,
        total_sections: int,
        weights: ProgressWeights | None = None,
        emit: Callable[[int], None] | None = None,
    ) -> None:
        w = weights or ProgressWeights()
        band_total = (w.sections + w.document_verify + w.document_improve) or 1.0
        stage_total = (w.generate + w.verify + w.improve) or 1.0

        self.total_sections = max(total_sections, 1)
        self._sections_band = 100.0 * w.sections / band_total
        self._document_band = {
            "verify": 100.0 * w.document_verify / band_total,
            "improve": 100.0 * w.document_improve / band_total,
        }
        self._stage_share = {
            "generate": w.generate / stage_total,
            "verify": w.verify / stage_total,
            "improve": w.improve / stage_total,
        }
        self._emit = emit
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    @property
    def per_section(self) -> float:
        return self._sections_band / self.total_sections

    def _report(self, raw: float) -> None:
        candidate = min(99, max(0, math.floor(raw + 1e-9)))
        if candidate > self._value:
            self._value = candidate
            if self._emit is not None:
                self._emit(candidate)

    def section_stage(self, index: int, stage: str, fraction: float) -> None:
        """Record that *stage* of section *index* (0-based) is *fraction* done.

        Earlier stages of the section count as finished.
        """
        if stage not in SECTION_STAGES:
            raise ValueError(f"Unknown section stage: {stage!r}")
        fraction = min(max(fraction, 0.0), 1.0)
        done = 0.0
        for name in SECTION_STAGES:
            if name == stage:
                done += self._stage_share[name] * fraction
                break
            done += self._stage_share[name]
        self._report(self.per_section * (index + done))

    def section_done(self, index: int) -> None:
        self._report(self.per_section * (index + 1))

    def document_stage(self, stage: str, fraction: float) -> None:
        if stage not in DOCUMENT_STAGES:
            raise ValueError(f"Unknown document stage: {stage!r}")
        fraction = min(max(fraction, 0.0), 1.0)
        raw = self._sections_band
        if stage == "improve":
            raw += self._document_band["verify"]
        raw += self._document_band[stage] * fraction
        self._report(raw)

    def complete(self) -> None:
        if self._value < 100:
            self._value = 100
            if self._emit is not None:
                self._emit(100)

"""
Critical Moment Detector
========================
Scans the evaluation curve for sharp swings (blunders, brilliancies and
other turning points) and keeps the few biggest ones for the highlights
video.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass

from game_data import EvaluationSample
from timeline_config import CRITICAL_MOMENT_SETTINGS

logger = logging.getLogger("CriticalMoments")


class MomentKind(str, Enum):
    BRILLIANT = "brilliant"
    BLUNDER = "blunder"
    SWING = "swing"


@dataclass(frozen=True)
class CriticalMoment:
    """A ply where the evaluation swings sharply."""
    ply_index: int
    kind: MomentKind
    eval_before: int
    eval_after: int

    @property
    def delta(self) -> int:
        return self.eval_after - self.eval_before


class CriticalMomentDetector:
    """
    Classifies evaluation swings between consecutive plies.

    A drop of at least ``blunder_threshold`` is a blunder, a gain of at
    least ``brilliant_threshold`` is brilliant, and anything else of at
    least ``swing_threshold`` either way is a swing. With the default
    single threshold the swing bucket stays empty; it fills up when the
    blunder/brilliant thresholds are set stricter than the swing one.
    """

    def __init__(
        self,
        threshold_cp: int = CRITICAL_MOMENT_SETTINGS["threshold_cp"],
        max_moments: int = CRITICAL_MOMENT_SETTINGS["max_moments"],
        blunder_threshold: Optional[int] = None,
        brilliant_threshold: Optional[int] = None
    ):
        if threshold_cp <= 0:
            raise ValueError(f"threshold_cp must be positive, got {threshold_cp}")
        if max_moments < 0:
            raise ValueError(f"max_moments must not be negative, got {max_moments}")

        self.swing_threshold = threshold_cp
        self.blunder_threshold = blunder_threshold if blunder_threshold is not None else threshold_cp
        self.brilliant_threshold = brilliant_threshold if brilliant_threshold is not None else threshold_cp
        self.max_moments = max_moments

    def classify(self, delta: int) -> Optional[MomentKind]:
        """Kind of moment for an evaluation change, or None if it's quiet."""
        if delta <= -self.blunder_threshold:
            return MomentKind.BLUNDER
        if delta >= self.brilliant_threshold:
            return MomentKind.BRILLIANT
        if abs(delta) >= self.swing_threshold:
            return MomentKind.SWING
        return None

    def detect(
        self,
        evaluations: Iterable[EvaluationSample],
        max_ply: Optional[int] = None
    ) -> List[CriticalMoment]:
        """
        Find the most significant moments in a game.

        Only plies with a sample for both themselves and the previous ply
        are compared, since samples may be sparse.

        Args:
            evaluations: Evaluation samples in any order
            max_ply: Last ply of the game; later samples are ignored

        Returns:
            At most ``max_moments`` moments, sorted by ply index
        """
        scores: Dict[int, int] = {}
        for sample in evaluations:
            if max_ply is not None and sample.ply_index > max_ply:
                continue
            scores[sample.ply_index] = sample.score_cp

        if not scores:
            return []

        moments = []
        for ply in sorted(scores):
            if ply < 1 or (ply - 1) not in scores:
                continue
            before, after = scores[ply - 1], scores[ply]
            kind = self.classify(after - before)
            if kind is not None:
                moments.append(CriticalMoment(ply, kind, before, after))

        if len(moments) > self.max_moments:
            logger.debug(
                f"Found {len(moments)} critical moments, keeping top {self.max_moments}"
            )
            moments.sort(key=lambda m: (-abs(m.delta), m.ply_index))
            moments = moments[:self.max_moments]

        moments.sort(key=lambda m: m.ply_index)
        return moments


def detect_critical_moments(
    evaluations: Iterable[EvaluationSample],
    threshold_cp: int = CRITICAL_MOMENT_SETTINGS["threshold_cp"],
    max_moments: int = CRITICAL_MOMENT_SETTINGS["max_moments"]
) -> List[CriticalMoment]:
    """Shortcut for ``CriticalMomentDetector(...).detect(evaluations)``."""
    return CriticalMomentDetector(threshold_cp, max_moments).detect(evaluations)

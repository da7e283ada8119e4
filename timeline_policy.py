"""
Timeline Policies
=================
One value object describes how a composition variant spends time. The
timeline builder, duration calculator, frame resolver and chapter compiler
all read the same policy, so the variants can't drift apart.
"""

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Iterable, List

from timeline_config import (
    TIMELINE_POLICIES,
    OVERLAY_SETTINGS,
    CRITICAL_MOMENT_SETTINGS,
    CHAPTER_SETTINGS,
)


class PolicyKind(str, Enum):
    WALKTHROUGH = "walkthrough"
    ANNOTATED = "annotated"
    HIGHLIGHTS = "highlights"
    PUZZLE = "puzzle"


@dataclass(frozen=True)
class TimelinePolicy:
    """Per-variant timing constants (all durations in seconds)."""
    kind: PolicyKind
    seconds_per_move: float = 1.0
    annotation_pause_seconds: float = 0.0
    critical_moment_seconds: float = 0.0
    puzzle_pause_seconds: float = 0.0
    puzzle_question_seconds: float = 0.0
    puzzle_thinking_seconds: float = 0.0
    puzzle_reveal_seconds: float = 0.0
    max_puzzles: int = 0
    intro_seconds: float = 3.0
    result_seconds: float = 0.0
    outro_seconds: float = 3.0
    fallback_seconds: float = 60.0
    fade_seconds: float = OVERLAY_SETTINGS["fade_seconds"]
    emphasis_peak: float = OVERLAY_SETTINGS["emphasis_peak"]
    critical_threshold_cp: int = CRITICAL_MOMENT_SETTINGS["threshold_cp"]
    max_critical_moments: int = CRITICAL_MOMENT_SETTINGS["max_moments"]
    min_chapter_spacing_seconds: int = CHAPTER_SETTINGS["min_spacing_seconds"]
    min_chapter_count: int = CHAPTER_SETTINGS["min_chapter_count"]

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def puzzle_seconds(self) -> float:
        return (
            self.puzzle_pause_seconds
            + self.puzzle_question_seconds
            + self.puzzle_thinking_seconds
            + self.puzzle_reveal_seconds
        )

    @property
    def uses_annotations(self) -> bool:
        return self.kind in (PolicyKind.ANNOTATED, PolicyKind.PUZZLE)

    @property
    def uses_critical_moments(self) -> bool:
        return self.kind == PolicyKind.HIGHLIGHTS


def get_policy(name: str, **overrides: Any) -> TimelinePolicy:
    """
    Build the policy for a composition variant.

    Args:
        name: walkthrough, annotated, highlights or puzzle
        **overrides: Field values that replace the configured ones

    Returns:
        Frozen TimelinePolicy

    Raises:
        ValueError: Unknown variant name or unknown override field
    """
    try:
        kind = PolicyKind(name)
    except ValueError:
        valid = ", ".join(k.value for k in PolicyKind)
        raise ValueError(f"Unknown timeline policy {name!r} (expected one of: {valid})")

    known = {f.name for f in fields(TimelinePolicy)}
    settings = {k: v for k, v in TIMELINE_POLICIES[kind.value].items() if k in known}
    policy = TimelinePolicy(kind=kind, **settings)

    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

    return replace(policy, **overrides) if overrides else policy


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Whole frames for a duration, halves rounded up; the single rounding rule."""
    return int(math.floor(seconds * fps + 0.5))


def frame_boundaries(durations: Iterable[float], fps: int) -> List[int]:
    """
    Frame offsets where each piece of the video starts, plus the end.

    Offsets are rounded from the running total of seconds, not per piece,
    so rounding never accumulates: the last offset is always the total
    duration times fps (rounded once). A piece whose start and end round to
    the same frame covers no frames.

    Args:
        durations: Seconds per piece, in playback order
        fps: Frames per second

    Returns:
        ``len(durations) + 1`` non-decreasing offsets, starting at 0
    """
    boundaries = [0]
    elapsed = []
    for seconds in durations:
        elapsed.append(max(0.0, float(seconds)))
        boundaries.append(max(boundaries[-1], seconds_to_frames(math.fsum(elapsed), fps)))
    return boundaries

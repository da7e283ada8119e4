"""
Event Timeline Builder
======================
Merges moves, annotations, critical moments and puzzle prompts into one
ordered list of contiguous segments. The segment list *is* the video's
schedule: render workers, the preview player and the chapter compiler all
read it, and nobody mutates it after it's built.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass

from critical_moments import CriticalMoment
from timeline_policy import PolicyKind, TimelinePolicy, frame_boundaries

logger = logging.getLogger("TimelineBuilder")

# =============================================================================
# DATA CLASSES
# =============================================================================

class SegmentKind(str, Enum):
    INTRO = "intro"
    NORMAL_MOVE = "normal-move"
    ANNOTATED_MOVE = "annotated-move"
    CRITICAL_MOMENT = "critical-moment"
    PUZZLE_PROMPT = "puzzle-prompt"
    RESULT = "result"
    OUTRO = "outro"


@dataclass(frozen=True)
class TimelineEvent:
    """One planned piece of the video, before frame offsets are assigned."""
    ply_index: int
    kind: SegmentKind
    seconds: float
    annotation: Optional[str] = None
    critical_moment: Optional[CriticalMoment] = None


@dataclass(frozen=True)
class Segment:
    """A half-open frame range ``[start_frame, end_frame)`` showing one ply."""
    start_frame: int
    end_frame: int
    ply_index: int
    kind: SegmentKind
    annotation: Optional[str] = None
    critical_moment: Optional[CriticalMoment] = None

    @property
    def duration_frames(self) -> int:
        return self.end_frame - self.start_frame

    def contains(self, frame: int) -> bool:
        return self.start_frame <= frame < self.end_frame


@dataclass(frozen=True)
class Timeline:
    """The compiled schedule for one job."""
    policy: TimelinePolicy
    fps: int
    move_count: int
    segments: Tuple[Segment, ...]

    @property
    def total_frames(self) -> int:
        return self.segments[-1].end_frame if self.segments else 0

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps

    def segments_of_kind(self, kind: SegmentKind) -> List[Segment]:
        return [seg for seg in self.segments if seg.kind == kind]

    def first_segment_for_ply(self, ply: int) -> Optional[Segment]:
        """Earliest segment showing ``ply`` (intro excluded)."""
        for seg in self.segments:
            if seg.ply_index == ply and seg.kind != SegmentKind.INTRO:
                return seg
        return None

# =============================================================================
# EVENT PLANNING
# =============================================================================

def select_puzzle_plies(annotated_plies: Iterable[int], max_puzzles: int) -> List[int]:
    """The first ``max_puzzles`` annotated plies, in ply order."""
    return sorted(set(annotated_plies))[:max(0, max_puzzles)]


def _in_range(plies: Iterable[int], move_count: int, what: str) -> List[int]:
    valid = []
    for ply in plies:
        if 0 <= ply <= move_count:
            valid.append(ply)
        else:
            logger.warning(f"⚠️ Ignoring {what} at ply {ply} (game has {move_count} plies)")
    return valid


def plan_events(
    move_count: int,
    policy: TimelinePolicy,
    annotations: Optional[Mapping[int, str]] = None,
    critical_moments: Optional[Sequence[CriticalMoment]] = None
) -> List[TimelineEvent]:
    """
    Decide the kind and length of every piece of the video.

    Walks plies 0..N once. Ply 0 (the starting position) has no move of its
    own, so it only gets time when an event is attached to it.

    Args:
        move_count: Number of plies in the game
        policy: Timing policy for the composition variant
        annotations: Ply -> commentary text
        critical_moments: Retained critical moments (highlights only)

    Returns:
        Events in playback order, intro first and outro last
    """
    move_count = max(0, move_count)
    annotations = annotations or {}
    critical_moments = critical_moments or []

    events = [TimelineEvent(0, SegmentKind.INTRO, policy.intro_seconds)]

    if move_count == 0:
        events.append(TimelineEvent(0, SegmentKind.OUTRO, policy.outro_seconds))
        return events

    annotated: Dict[int, str] = {}
    if policy.uses_annotations:
        for ply in _in_range(sorted(annotations), move_count, "annotation"):
            annotated[ply] = annotations[ply]

    critical: Dict[int, CriticalMoment] = {}
    if policy.kind == PolicyKind.HIGHLIGHTS:
        by_ply = {m.ply_index: m for m in critical_moments}
        for ply in _in_range(sorted(by_ply), move_count, "critical moment"):
            critical[ply] = by_ply[ply]

    puzzles = set()
    if policy.kind == PolicyKind.PUZZLE:
        puzzles = set(select_puzzle_plies(annotated, policy.max_puzzles))

    for ply in range(move_count + 1):
        base = policy.seconds_per_move if ply > 0 else 0.0

        if policy.kind == PolicyKind.ANNOTATED and ply in annotated:
            events.append(TimelineEvent(
                ply, SegmentKind.ANNOTATED_MOVE,
                base + policy.annotation_pause_seconds,
                annotation=annotated[ply]
            ))
        elif policy.kind == PolicyKind.HIGHLIGHTS and ply in critical:
            events.append(TimelineEvent(
                ply, SegmentKind.CRITICAL_MOMENT,
                policy.critical_moment_seconds,
                critical_moment=critical[ply]
            ))
        elif policy.kind == PolicyKind.PUZZLE and ply in puzzles:
            events.append(TimelineEvent(
                ply, SegmentKind.PUZZLE_PROMPT,
                policy.puzzle_seconds,
                annotation=annotated[ply]
            ))
        elif ply > 0:
            events.append(TimelineEvent(ply, SegmentKind.NORMAL_MOVE, base))

    if policy.result_seconds > 0:
        events.append(TimelineEvent(move_count, SegmentKind.RESULT, policy.result_seconds))
    events.append(TimelineEvent(move_count, SegmentKind.OUTRO, policy.outro_seconds))

    return events

# =============================================================================
# TIMELINE CONSTRUCTION
# =============================================================================

def build_timeline(
    move_count: int,
    policy: TimelinePolicy,
    annotations: Optional[Mapping[int, str]] = None,
    critical_moments: Optional[Sequence[CriticalMoment]] = None,
    fps: int = 30
) -> Timeline:
    """
    Build the segment list for a game.

    Each segment starts where the previous one ends. Segment edges are
    rounded from the running total of seconds, so a segment can be a frame
    longer or shorter than its own duration while the total stays exact.
    Events whose edges round to the same frame are left out.

    Returns:
        Immutable Timeline
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    events = plan_events(move_count, policy, annotations, critical_moments)
    boundaries = frame_boundaries((event.seconds for event in events), fps)

    segments = []
    for event, start, end in zip(events, boundaries, boundaries[1:]):
        if end <= start:
            continue

        segments.append(Segment(
            start_frame=start,
            end_frame=end,
            ply_index=event.ply_index,
            kind=event.kind,
            annotation=event.annotation,
            critical_moment=event.critical_moment,
        ))

    logger.debug(
        f"Built {policy.name} timeline: {len(segments)} segments, {boundaries[-1]} frames"
    )

    return Timeline(
        policy=policy,
        fps=fps,
        move_count=max(0, move_count),
        segments=tuple(segments),
    )

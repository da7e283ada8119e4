"""
Frame State Resolver
====================
Maps a global frame number to everything a renderer needs to draw that
frame: which ply is on the board, which overlay is showing and how
strongly, board emphasis, and puzzle phase/countdown.

Render workers call this for arbitrary, non-contiguous frame ranges, so
``resolve`` is a pure function of (frame, timeline, positions). All
lookup tables are built in the constructor and never touched again.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass

import numpy as np

from critical_moments import CriticalMoment
from game_data import EvaluationSample
from position_cache import PositionCache
from timeline_builder import Segment, SegmentKind, Timeline
from timeline_config import EVAL_BAR_SETTINGS
from timeline_policy import seconds_to_frames

# =============================================================================
# DATA CLASSES
# =============================================================================

class OverlayKind(str, Enum):
    NONE = "none"
    INTRO = "intro"
    ANNOTATION = "annotation"
    CRITICAL = "critical"
    PUZZLE = "puzzle"
    RESULT = "result"
    OUTRO = "outro"


class PuzzlePhase(str, Enum):
    PAUSE = "pause"
    QUESTION = "question"
    THINKING = "thinking"
    REVEAL = "reveal"


@dataclass(frozen=True)
class FrameState:
    """Visual state for one frame."""
    frame: int
    segment_kind: SegmentKind
    ply_index: int
    position: str
    overlay_kind: OverlayKind
    overlay_opacity: float
    emphasis_scale: float
    puzzle_phase: Optional[PuzzlePhase] = None
    countdown: Optional[int] = None
    annotation: Optional[str] = None
    critical_moment: Optional[CriticalMoment] = None
    last_move: Optional[str] = None
    evaluation: Optional[int] = None
    eval_bar: float = 0.5  # White's share of the evaluation bar


OVERLAY_FOR_SEGMENT = {
    SegmentKind.INTRO: OverlayKind.INTRO,
    SegmentKind.NORMAL_MOVE: OverlayKind.NONE,
    SegmentKind.ANNOTATED_MOVE: OverlayKind.ANNOTATION,
    SegmentKind.CRITICAL_MOMENT: OverlayKind.CRITICAL,
    SegmentKind.PUZZLE_PROMPT: OverlayKind.PUZZLE,
    SegmentKind.RESULT: OverlayKind.RESULT,
    SegmentKind.OUTRO: OverlayKind.OUTRO,
}

# =============================================================================
# ENVELOPES
# =============================================================================

def fade_envelope(frame_in_segment: int, duration: int, fade_frames: float) -> float:
    """
    Fade in, hold, fade out, linear in between.

    Args:
        frame_in_segment: Frame offset inside the segment
        duration: Segment length in frames
        fade_frames: Length of each fade (shrunk to fit short segments)

    Returns:
        Opacity in [0, 1]
    """
    if duration <= 0:
        return 0.0
    fade = min(float(fade_frames), duration / 2.0)
    if fade <= 0:
        return 1.0

    opacity = np.interp(
        frame_in_segment,
        [0.0, fade, duration - fade, float(duration)],
        [0.0, 1.0, 1.0, 0.0],
    )
    return float(min(1.0, max(0.0, opacity)))


def emphasis_curve(frame_in_segment: int, duration: int, fade_frames: float, peak: float) -> float:
    """Board zoom: ease from 1.0 to ``peak`` over the fade window, then hold."""
    fade = min(float(fade_frames), float(duration))
    if fade <= 0:
        return float(peak)
    return float(np.interp(frame_in_segment, [0.0, fade, float(max(duration, fade))], [1.0, peak, peak]))


def eval_bar_fraction(score_cp: Optional[int], max_eval: int = EVAL_BAR_SETTINGS["max_eval_cp"]) -> float:
    """White's share of the evaluation bar for a centipawn score."""
    if score_cp is None:
        return 0.5
    clamped = max(-max_eval, min(max_eval, score_cp))
    return (clamped + max_eval) / (2.0 * max_eval)

# =============================================================================
# RESOLVER
# =============================================================================

class FrameStateResolver:
    """
    Resolves frames against one job's timeline.

    Safe to share between workers: it holds only data computed in
    ``__init__``.
    """

    def __init__(
        self,
        timeline: Timeline,
        positions: PositionCache,
        evaluations: Optional[Iterable[EvaluationSample]] = None
    ):
        self.timeline = timeline
        self.positions = positions
        self.fps = timeline.fps
        self.total_frames = timeline.total_frames

        policy = timeline.policy
        self._fade_frames = policy.fade_seconds * self.fps
        self._emphasis_peak = policy.emphasis_peak

        self._segments = timeline.segments
        self._starts = np.array([seg.start_frame for seg in self._segments], dtype=np.int64)

        # Puzzle phase boundaries, cumulative so rounding can't drift
        self._pause_end = seconds_to_frames(policy.puzzle_pause_seconds, self.fps)
        self._question_end = seconds_to_frames(
            policy.puzzle_pause_seconds + policy.puzzle_question_seconds, self.fps
        )
        self._thinking_end = seconds_to_frames(
            policy.puzzle_pause_seconds + policy.puzzle_question_seconds
            + policy.puzzle_thinking_seconds, self.fps
        )

        self._evaluations: Dict[int, int] = {}
        for sample in evaluations or []:
            self._evaluations[sample.ply_index] = sample.score_cp

    def segment_index_at(self, frame: int) -> int:
        """Index of the segment covering ``frame`` (clamped into the video)."""
        if not self._segments:
            return -1
        frame = max(0, min(int(frame), self.total_frames - 1))
        return int(np.searchsorted(self._starts, frame, side="right")) - 1

    def segment_at(self, frame: int) -> Optional[Segment]:
        index = self.segment_index_at(frame)
        return self._segments[index] if index >= 0 else None

    def resolve(self, frame: int) -> FrameState:
        """
        Visual state for a global frame number.

        Frames before the start or past the end resolve to the first or
        last frame, so the function is defined everywhere.
        """
        frame = int(frame)
        segment = self.segment_at(frame)

        if segment is None:
            return FrameState(
                frame=frame,
                segment_kind=SegmentKind.INTRO,
                ply_index=0,
                position=self.positions.position_at(0),
                overlay_kind=OverlayKind.NONE,
                overlay_opacity=0.0,
                emphasis_scale=1.0,
                evaluation=self._evaluations.get(0),
                eval_bar=eval_bar_fraction(self._evaluations.get(0)),
            )

        clamped = max(segment.start_frame, min(frame, segment.end_frame - 1))
        frame_in_segment = clamped - segment.start_frame
        duration = segment.duration_frames
        ply = segment.ply_index

        overlay_kind = OVERLAY_FOR_SEGMENT[segment.kind]
        if overlay_kind == OverlayKind.NONE:
            opacity = 0.0
        else:
            opacity = fade_envelope(frame_in_segment, duration, self._fade_frames)

        emphasis = 1.0
        if segment.kind == SegmentKind.CRITICAL_MOMENT:
            emphasis = emphasis_curve(frame_in_segment, duration, self._fade_frames, self._emphasis_peak)

        phase = None
        countdown = None
        if segment.kind == SegmentKind.PUZZLE_PROMPT:
            phase, countdown = self.puzzle_phase(frame_in_segment)

        evaluation = self._evaluations.get(ply)

        return FrameState(
            frame=frame,
            segment_kind=segment.kind,
            ply_index=ply,
            position=self.positions.position_at(ply),
            overlay_kind=overlay_kind,
            overlay_opacity=opacity,
            emphasis_scale=emphasis,
            puzzle_phase=phase,
            countdown=countdown,
            annotation=segment.annotation,
            critical_moment=segment.critical_moment,
            last_move=self.positions.last_move_at(ply),
            evaluation=evaluation,
            eval_bar=eval_bar_fraction(evaluation),
        )

    def puzzle_phase(self, frame_in_segment: int):
        """Sub-phase of a puzzle prompt, plus whole seconds left while thinking."""
        if frame_in_segment < self._pause_end:
            return PuzzlePhase.PAUSE, None
        if frame_in_segment < self._question_end:
            return PuzzlePhase.QUESTION, None
        if frame_in_segment < self._thinking_end:
            remaining = self._thinking_end - frame_in_segment
            return PuzzlePhase.THINKING, -(-remaining // self.fps)
        return PuzzlePhase.REVEAL, None

    def resolve_range(self, start_frame: int, end_frame: int) -> List[FrameState]:
        """States for ``[start_frame, end_frame)``, as one render worker sees them."""
        return [self.resolve(f) for f in range(start_frame, end_frame)]


def resolve_frame(
    frame: int,
    timeline: Timeline,
    positions: PositionCache,
    evaluations: Optional[Iterable[EvaluationSample]] = None
) -> FrameState:
    """One-off resolution without keeping a resolver around."""
    return FrameStateResolver(timeline, positions, evaluations).resolve(frame)

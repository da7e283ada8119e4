"""
Render Job Planner
==================
Compiles everything a render job needs in one synchronous pass:

1. Replay the moves into a position cache
2. Detect critical moments (highlights)
3. Build the timeline and its total frame count
4. Compile YouTube chapters
5. Split the frames into per-worker ranges

The compiled job is immutable. Workers each get a frame range and resolve
their frames independently, in any order.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field

from chapters import Chapter, compile_chapters
from critical_moments import CriticalMoment, CriticalMomentDetector
from duration import calculate_total_frames
from frame_resolver import FrameState, FrameStateResolver
from game_data import (
    Annotation,
    EvaluationSample,
    GameInfo,
    Move,
    annotation_map,
    extract_game_info,
    normalize_annotations,
    normalize_evaluations,
    parse_pgn_moves,
)
from position_cache import PositionCache
from timeline_builder import Timeline, build_timeline
from timeline_config import RENDER_SETTINGS, VIDEO_SETTINGS
from timeline_policy import TimelinePolicy, get_policy

logger = logging.getLogger("RenderJob")

COMPOSITION_NAMES = {
    "walkthrough": "ChessGameWalkthrough",
    "annotated": "ChessGameAnnotated",
    "highlights": "ChessGameHighlights",
    "puzzle": "ChessGamePuzzle",
}

# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class FrameRange:
    """Frames ``[start_frame, end_frame)`` assigned to one render worker."""
    worker_index: int
    start_frame: int
    end_frame: int

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame


@dataclass(frozen=True)
class CompiledJob:
    """Everything computed for one render job."""
    moves: Tuple[Move, ...]
    annotations: Tuple[Annotation, ...]
    evaluations: Tuple[EvaluationSample, ...]
    critical_moments: Tuple[CriticalMoment, ...]
    positions: PositionCache
    timeline: Timeline
    chapters: Tuple[Chapter, ...]
    game_info: Optional[GameInfo] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def policy(self) -> TimelinePolicy:
        return self.timeline.policy

    @property
    def fps(self) -> int:
        return self.timeline.fps

    @property
    def total_frames(self) -> int:
        return self.timeline.total_frames

    def resolver(self) -> FrameStateResolver:
        return FrameStateResolver(self.timeline, self.positions, self.evaluations)

    def resolve_frame(self, frame: int) -> FrameState:
        return self.resolver().resolve(frame)

    def frame_ranges(self, frames_per_worker: int = RENDER_SETTINGS["frames_per_worker"]) -> List[FrameRange]:
        return plan_frame_ranges(self.total_frames, frames_per_worker)

# =============================================================================
# PLANNING
# =============================================================================

def plan_frame_ranges(
    total_frames: int,
    frames_per_worker: int = RENDER_SETTINGS["frames_per_worker"]
) -> List[FrameRange]:
    """
    Split ``[0, total_frames)`` into contiguous worker ranges.

    Every range holds ``frames_per_worker`` frames except possibly the last.
    """
    if frames_per_worker <= 0:
        raise ValueError(f"frames_per_worker must be positive, got {frames_per_worker}")

    ranges = []
    for index, start in enumerate(range(0, max(0, total_frames), frames_per_worker)):
        ranges.append(FrameRange(index, start, min(start + frames_per_worker, total_frames)))
    return ranges


def compile_job(
    moves: Sequence[Union[Move, str]],
    policy: Union[str, TimelinePolicy] = "walkthrough",
    annotations: Any = None,
    evaluations: Any = None,
    fps: int = VIDEO_SETTINGS["fps"],
    game_info: Optional[GameInfo] = None
) -> CompiledJob:
    """
    Compile a render job from already-parsed inputs.

    Args:
        moves: Move objects or SAN strings, in order
        policy: Policy name or TimelinePolicy
        annotations: Raw annotation records (ply -> text, dicts, Annotations)
        evaluations: Raw analysis records (see normalize_evaluations)
        fps: Frames per second
        game_info: Header info carried into the manifest

    Returns:
        Immutable CompiledJob
    """
    if isinstance(policy, str):
        policy = get_policy(policy)

    move_list = tuple(m if isinstance(m, Move) else Move(i, str(m)) for i, m in enumerate(moves))
    ann_list = tuple(normalize_annotations(annotations))
    eval_list = tuple(normalize_evaluations(evaluations))

    positions = PositionCache(move_list)

    moments: Tuple[CriticalMoment, ...] = ()
    if policy.uses_critical_moments:
        detector = CriticalMomentDetector(
            threshold_cp=policy.critical_threshold_cp,
            max_moments=policy.max_critical_moments,
        )
        moments = tuple(detector.detect(eval_list, max_ply=len(move_list)))
        if not moments:
            logger.info("📋 No critical moments found, using fixed per-move timing")

    ann_map = annotation_map(ann_list)
    timeline = build_timeline(len(move_list), policy, ann_map, moments, fps)

    expected = calculate_total_frames(len(move_list), policy, ann_map, moments, fps)
    if expected != timeline.total_frames:
        raise RuntimeError(
            f"Timeline covers {timeline.total_frames} frames but duration is {expected}"
        )

    chapters = tuple(compile_chapters(timeline, move_list))

    logger.info(
        f"📋 {policy.name}: {len(move_list)} plies, {len(timeline.segments)} segments, "
        f"{timeline.total_frames} frames ({timeline.duration_seconds:.1f}s), "
        f"{len(chapters)} chapters"
    )

    return CompiledJob(
        moves=move_list,
        annotations=ann_list,
        evaluations=eval_list,
        critical_moments=moments,
        positions=positions,
        timeline=timeline,
        chapters=chapters,
        game_info=game_info,
        warnings=positions.warnings,
    )


def compile_job_from_pgn(
    pgn: str,
    policy: Union[str, TimelinePolicy] = "walkthrough",
    annotations: Any = None,
    evaluations: Any = None,
    fps: int = VIDEO_SETTINGS["fps"]
) -> CompiledJob:
    """
    Compile a render job straight from PGN text.

    Raises:
        ValueError: The PGN has no parseable game
    """
    moves = parse_pgn_moves(pgn)
    if moves is None:
        raise ValueError("Could not parse PGN")

    return compile_job(
        moves,
        policy=policy,
        annotations=annotations,
        evaluations=evaluations,
        fps=fps,
        game_info=extract_game_info(pgn),
    )

# =============================================================================
# MANIFEST
# =============================================================================

def _moment_dict(moment: Optional[CriticalMoment]) -> Optional[Dict[str, Any]]:
    if moment is None:
        return None
    return {
        "ply": moment.ply_index,
        "type": moment.kind.value,
        "evalBefore": moment.eval_before,
        "evalAfter": moment.eval_after,
    }


def build_manifest(
    job: CompiledJob,
    frames_per_worker: int = RENDER_SETTINGS["frames_per_worker"]
) -> Dict[str, Any]:
    """JSON-ready description of the job for the render farm."""
    info = job.game_info

    return {
        "composition": COMPOSITION_NAMES[job.policy.name],
        "policy": job.policy.name,
        "fps": job.fps,
        "width": VIDEO_SETTINGS["width"],
        "height": VIDEO_SETTINGS["height"],
        "durationInFrames": job.total_frames,
        "framesPerWorker": frames_per_worker,
        "gameInfo": None if info is None else {
            "white": info.white,
            "black": info.black,
            "result": info.result,
            "date": info.date,
        },
        "segments": [
            {
                "startFrame": seg.start_frame,
                "endFrame": seg.end_frame,
                "ply": seg.ply_index,
                "kind": seg.kind.value,
                "annotation": seg.annotation,
                "criticalMoment": _moment_dict(seg.critical_moment),
            }
            for seg in job.timeline.segments
        ],
        "chapters": [
            {"timestamp": ch.timestamp, "title": ch.title} for ch in job.chapters
        ],
        "frameRanges": [
            [r.start_frame, r.end_frame] for r in job.frame_ranges(frames_per_worker)
        ],
        "warnings": list(job.warnings),
    }


def frame_state_dict(state: FrameState) -> Dict[str, Any]:
    """JSON-ready frame state (used for previews and debugging)."""
    return {
        "frame": state.frame,
        "segmentKind": state.segment_kind.value,
        "ply": state.ply_index,
        "fen": state.position,
        "overlay": state.overlay_kind.value,
        "overlayOpacity": round(state.overlay_opacity, 4),
        "emphasisScale": round(state.emphasis_scale, 4),
        "puzzlePhase": state.puzzle_phase.value if state.puzzle_phase else None,
        "countdown": state.countdown,
        "annotation": state.annotation,
        "criticalMoment": _moment_dict(state.critical_moment),
        "lastMove": state.last_move,
        "evaluation": state.evaluation,
        "evalBar": round(state.eval_bar, 4),
    }

"""
Duration Calculator
===================
The one place that knows how long a video is. Job submission, the preview
player and the render farm's metadata callback all import it instead of
redoing the arithmetic.

The total is summed from the planned events, never by walking frames, so
it can run before anything is rendered.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from critical_moments import CriticalMoment, CriticalMomentDetector
from game_data import normalize_annotations, normalize_evaluations, annotation_map, parse_pgn_moves
from timeline_builder import plan_events
from timeline_policy import TimelinePolicy, frame_boundaries, seconds_to_frames

logger = logging.getLogger("Duration")


def calculate_total_frames(
    move_count: int,
    policy: TimelinePolicy,
    annotations: Optional[Mapping[int, str]] = None,
    critical_moments: Optional[Sequence[CriticalMoment]] = None,
    fps: int = 30
) -> int:
    """
    Total frame count for a game under a policy.

    Always equals ``build_timeline(...).total_frames`` for the same inputs.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    events = plan_events(move_count, policy, annotations, critical_moments)
    return frame_boundaries((event.seconds for event in events), fps)[-1]


def fallback_total_frames(policy: TimelinePolicy, fps: int = 30) -> int:
    """Fixed duration used when the game can't be parsed."""
    return seconds_to_frames(policy.fallback_seconds, fps)


def estimate_total_frames(
    pgn: str,
    policy: TimelinePolicy,
    annotations: Any = None,
    evaluations: Any = None,
    fps: int = 30
) -> int:
    """
    Size a render job straight from raw inputs.

    Never raises: job submission has to get a number synchronously, so an
    unparseable PGN (or any other failure) yields the policy's fallback.

    Args:
        pgn: PGN text of the game
        policy: Timing policy for the composition variant
        annotations: Raw annotation records (see normalize_annotations)
        evaluations: Raw analysis records (see normalize_evaluations)
        fps: Frames per second

    Returns:
        Total frames for the video
    """
    try:
        moves = parse_pgn_moves(pgn)
        if moves is None:
            logger.warning(
                f"⚠️ Could not parse PGN, using {policy.fallback_seconds:.0f}s fallback duration"
            )
            return fallback_total_frames(policy, fps)

        ann_map = annotation_map(normalize_annotations(annotations)) if policy.uses_annotations else {}

        moments = []
        if policy.uses_critical_moments:
            detector = CriticalMomentDetector(
                threshold_cp=policy.critical_threshold_cp,
                max_moments=policy.max_critical_moments,
            )
            moments = detector.detect(normalize_evaluations(evaluations), max_ply=len(moves))

        return calculate_total_frames(len(moves), policy, ann_map, moments, fps)

    except Exception as e:
        logger.error(f"❌ Duration estimate failed ({e}), using fallback duration")
        safe_fps = fps if isinstance(fps, int) and fps > 0 else 30
        return fallback_total_frames(policy, safe_fps)

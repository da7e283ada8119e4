#!/usr/bin/env python3
"""
Chess Video Timeline Compiler
=============================
Compiles a PGN (plus optional annotations and engine analysis) into the
render schedule for one of the chess video compositions:

- walkthrough: every move at a steady pace
- annotated:   pauses on annotated moves to show the commentary
- highlights:  fast-forwards, slowing down on critical moments
- puzzle:      stops at annotated positions and quizzes the viewer

Output is a JSON manifest (segments, total frames, chapters, per-worker
frame ranges) for the render farm, plus the YouTube chapter block.

Dependencies:
- python-chess: PGN parsing and move replay
- numpy: Segment lookup and overlay envelopes
"""

import sys
import json
import logging
import argparse
from pathlib import Path
from typing import Any, List, Optional, Tuple

from chapters import format_chapter_lines
from duration import estimate_total_frames
from game_data import load_json_file
from render_job import build_manifest, compile_job_from_pgn, frame_state_dict
from timeline_config import RENDER_SETTINGS, VIDEO_SETTINGS
from timeline_policy import PolicyKind, get_policy

# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("TimelineCompiler")

# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile chess game videos into frame-accurate render schedules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python compile_video.py game.pgn
  python compile_video.py game.pgn --policy annotated --annotations notes.json
  python compile_video.py game.pgn --policy highlights --analysis analysis.json -o job.json
  python compile_video.py game.pgn --estimate-only
  python compile_video.py game.pgn --frame 0 --frame 450
        """
    )

    parser.add_argument('pgn_file', help='Path to PGN file')

    parser.add_argument(
        '--policy', '-p',
        choices=[k.value for k in PolicyKind],
        default=PolicyKind.WALKTHROUGH.value,
        help='Composition variant (default: walkthrough)'
    )
    parser.add_argument(
        '--annotations', '-a',
        default=None,
        help='JSON file with annotations ({"ply": "text"} or API records)'
    )
    parser.add_argument(
        '--analysis', '-e',
        default=None,
        help='JSON file with engine analysis (analysisResults or per-move records)'
    )
    parser.add_argument(
        '--fps',
        type=int,
        default=VIDEO_SETTINGS["fps"],
        help=f'Frames per second (default: {VIDEO_SETTINGS["fps"]})'
    )
    parser.add_argument(
        '--frames-per-worker',
        type=int,
        default=RENDER_SETTINGS["frames_per_worker"],
        help=f'Frames per render worker (default: {RENDER_SETTINGS["frames_per_worker"]})'
    )
    parser.add_argument(
        '--output', '-o',
        default=None,
        help='Write the manifest to this file instead of stdout'
    )
    parser.add_argument(
        '--estimate-only',
        action='store_true',
        help='Only print the total frame count (never fails)'
    )
    parser.add_argument(
        '--frame', '-f',
        type=int,
        action='append',
        default=[],
        help='Print the resolved state of a frame (repeatable)'
    )

    return parser


def _read_side_file(path: Optional[str], what: str) -> Tuple[Any, bool]:
    """
    Load an optional JSON side file.

    Returns:
        (data, ok): data is None when no file was given or it couldn't be read
    """
    if not path:
        return None, True
    try:
        return load_json_file(path), True
    except (OSError, ValueError) as e:
        logger.error(f"❌ Could not read {what} file {path}: {e}")
        return None, False


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line interface for timeline compilation."""
    args = build_parser().parse_args(argv)

    if args.fps <= 0:
        logger.error(f"❌ --fps must be positive, got {args.fps}")
        return 1
    if args.frames_per_worker <= 0:
        logger.error(f"❌ --frames-per-worker must be positive, got {args.frames_per_worker}")
        return 1

    pgn_path = Path(args.pgn_file)
    if not pgn_path.exists():
        logger.error(f"❌ PGN file not found: {pgn_path}")
        return 1

    pgn = pgn_path.read_text()
    annotations, annotations_ok = _read_side_file(args.annotations, "annotations")
    analysis, analysis_ok = _read_side_file(args.analysis, "analysis")
    policy = get_policy(args.policy)

    if not (annotations_ok and analysis_ok):
        if not args.estimate_only:
            return 1
        logger.warning("⚠️ Estimating without the unreadable side data")

    if args.estimate_only:
        total = estimate_total_frames(pgn, policy, annotations, analysis, args.fps)
        print(total)
        return 0

    logger.info(f"🎬 Compiling {policy.name} timeline from: {pgn_path}")

    try:
        job = compile_job_from_pgn(pgn, policy, annotations, analysis, args.fps)
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 1

    for warning in job.warnings:
        logger.warning(f"⚠️ {warning}")

    if job.game_info:
        logger.info(f"📋 {job.game_info.white} vs {job.game_info.black} ({job.game_info.result})")
    logger.info(f"📋 Duration: {job.total_frames} frames ({job.timeline.duration_seconds:.1f}s)")

    if args.frame:
        resolver = job.resolver()
        states = [frame_state_dict(resolver.resolve(f)) for f in args.frame]
        print(json.dumps(states, indent=2))
        return 0

    manifest = build_manifest(job, args.frames_per_worker)
    text = json.dumps(manifest, indent=2)

    if args.output:
        Path(args.output).write_text(text)
        logger.info(f"💾 Saved manifest: {args.output}")
    else:
        print(text)

    if job.chapters:
        logger.info("📑 Chapters:\n" + format_chapter_lines(job.chapters))
    else:
        logger.info("📑 No chapters (too few or too close together)")

    logger.info("✅ Timeline compiled!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
YouTube Chapter Compiler
========================
Reduces a compiled timeline to the coarse chapter list that goes into the
video description.

YouTube only shows chapters when:
- the first timestamp is exactly 0:00
- there are at least 3 of them
- each chapter is at least MIN_SPACING seconds long

A list that can't meet those rules is returned empty; "no chapters" is a
normal outcome, not an error.
"""

import math
import logging
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass

from game_data import Move
from timeline_builder import Segment, SegmentKind, Timeline
from timeline_config import CHAPTER_SETTINGS
from timeline_policy import PolicyKind

logger = logging.getLogger("Chapters")

# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Chapter:
    """One line of the description's chapter list."""
    timestamp: str  # "0:15" or "1:02:03"
    title: str

    @property
    def seconds(self) -> int:
        return parse_timestamp(self.timestamp)

    def to_line(self) -> str:
        return f"{self.timestamp} {self.title}"

# =============================================================================
# TIMESTAMPS
# =============================================================================

def format_timestamp(seconds: float) -> str:
    """Format seconds as M:SS, or H:MM:SS past the hour."""
    total = int(math.floor(max(0.0, seconds)))
    hours, rest = divmod(total, 3600)
    mins, secs = divmod(rest, 60)

    if hours > 0:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def parse_timestamp(timestamp: str) -> int:
    """Parse M:SS or H:MM:SS back to seconds."""
    parts = [int(p) for p in timestamp.split(":")]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    raise ValueError(f"Bad chapter timestamp: {timestamp!r}")


def format_chapter_lines(chapters: Sequence[Chapter]) -> str:
    """Chapter block for the description, one ``TIMESTAMP Title`` per line."""
    return "\n".join(chapter.to_line() for chapter in chapters)

# =============================================================================
# CHAPTER COMPILER
# =============================================================================

def _truncate(text: str, limit: int) -> str:
    text = " ".join(text.split())
    return text[:limit] + "..." if len(text) > limit else text


def _full_move(ply: int) -> int:
    """Move number of timeline ply ``ply`` (ply 1 and 2 are move 1)."""
    return (ply + 1) // 2


class ChapterCompiler:
    """Builds chapters from a timeline, following one policy's rules."""

    def __init__(
        self,
        min_spacing_seconds: int = CHAPTER_SETTINGS["min_spacing_seconds"],
        min_chapter_count: int = CHAPTER_SETTINGS["min_chapter_count"],
        annotation_title_chars: int = CHAPTER_SETTINGS["annotation_title_chars"],
        max_title_length: int = CHAPTER_SETTINGS["max_title_length"],
        opening_cut: float = CHAPTER_SETTINGS["opening_cut"],
        middlegame_cut: float = CHAPTER_SETTINGS["middlegame_cut"]
    ):
        self.min_spacing_seconds = min_spacing_seconds
        self.min_chapter_count = min_chapter_count
        self.annotation_title_chars = annotation_title_chars
        self.max_title_length = max_title_length
        self.opening_cut = opening_cut
        self.middlegame_cut = middlegame_cut

    @classmethod
    def for_timeline(cls, timeline: Timeline) -> "ChapterCompiler":
        policy = timeline.policy
        return cls(
            min_spacing_seconds=policy.min_chapter_spacing_seconds,
            min_chapter_count=policy.min_chapter_count,
        )

    def compile(self, timeline: Timeline, moves: Sequence[Move]) -> List[Chapter]:
        """
        Chapters for a compiled timeline.

        Annotated videos get one candidate per annotated move; every other
        variant (or an annotated video without annotations) is split into
        opening, middlegame and endgame.

        Args:
            timeline: The job's compiled timeline
            moves: The game's moves, for chapter titles

        Returns:
            Valid chapter list, or [] when YouTube would reject it
        """
        annotated = timeline.segments_of_kind(SegmentKind.ANNOTATED_MOVE)

        if timeline.policy.kind == PolicyKind.ANNOTATED and annotated:
            candidates = [(0, "Introduction")]
            candidates += [
                (self._seconds(seg, timeline.fps), self._annotation_title(seg, moves))
                for seg in annotated
            ]
        else:
            candidates = self._phase_candidates(timeline)

        return self.select(candidates)

    def select(self, candidates: Sequence[Tuple[int, str]]) -> List[Chapter]:
        """
        Keep candidates that are far enough apart.

        The first kept chapter is pinned to 0:00; each later one must start
        at least ``min_spacing_seconds`` after the previous kept one.
        """
        chapters: List[Chapter] = []
        last_kept: Optional[int] = None

        for seconds, title in sorted(candidates, key=lambda c: c[0]):
            if last_kept is None:
                seconds = 0
            elif seconds - last_kept < self.min_spacing_seconds:
                logger.debug(f"Dropping chapter {title!r} at {seconds}s (too close)")
                continue

            chapters.append(Chapter(format_timestamp(seconds), self._clip_title(title)))
            last_kept = seconds

        if len(chapters) < self.min_chapter_count:
            logger.debug(
                f"Only {len(chapters)} chapters (< {self.min_chapter_count}), dropping chapters"
            )
            return []

        return chapters

    @staticmethod
    def _seconds(segment: Segment, fps: int) -> int:
        return segment.start_frame // fps

    def _clip_title(self, title: str) -> str:
        if len(title) <= self.max_title_length:
            return title
        return title[:self.max_title_length - 3] + "..."

    def _annotation_title(self, segment: Segment, moves: Sequence[Move]) -> str:
        text = _truncate(segment.annotation or "", self.annotation_title_chars)
        ply = segment.ply_index

        if ply == 0:
            return f"Starting Position - {text}"

        san = moves[ply - 1].san if ply - 1 < len(moves) else "?"
        dots = "." if ply % 2 == 1 else "..."
        return f"{_full_move(ply)}{dots} {san} - {text}"

    def _phase_candidates(self, timeline: Timeline) -> List[Tuple[int, str]]:
        """Opening/middlegame/endgame boundaries, timed from the segments."""
        total = timeline.move_count
        if total == 0:
            return []

        opening_end = min(total, math.ceil(total * self.opening_cut))
        middlegame_end = min(total, math.ceil(total * self.middlegame_cut))

        def start_of(ply: int) -> int:
            seg = timeline.first_segment_for_ply(ply)
            return self._seconds(seg, timeline.fps) if seg is not None else 0

        candidates = [(start_of(1), f"Opening - Moves 1-{_full_move(opening_end)}")]

        if middlegame_end > opening_end:
            candidates.append((
                start_of(opening_end + 1),
                f"Middlegame - Moves {_full_move(opening_end + 1)}-{_full_move(middlegame_end)}"
            ))
        if total > middlegame_end:
            candidates.append((
                start_of(middlegame_end + 1),
                f"Endgame - Moves {_full_move(middlegame_end + 1)}-{_full_move(total)}"
            ))

        return candidates


def compile_chapters(timeline: Timeline, moves: Sequence[Move]) -> List[Chapter]:
    """Chapters for a timeline using its policy's spacing and count rules."""
    return ChapterCompiler.for_timeline(timeline).compile(timeline, moves)

"""Tests for the frame state resolver."""

from __future__ import annotations

import random

import pytest

from critical_moments import CriticalMoment, MomentKind
from frame_resolver import (
    FrameStateResolver,
    OverlayKind,
    PuzzlePhase,
    eval_bar_fraction,
    fade_envelope,
    resolve_frame,
)
from game_data import EvaluationSample, Move
from position_cache import PositionCache
from timeline_builder import SegmentKind, build_timeline
from timeline_policy import PolicyKind, get_policy

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def _resolver(
    moves: list[Move],
    name: str,
    annotations: dict[int, str] | None = None,
    moments: list[CriticalMoment] | None = None,
    evaluations: list[EvaluationSample] | None = None,
) -> FrameStateResolver:
    timeline = build_timeline(len(moves), get_policy(name), annotations, moments, fps=30)
    return FrameStateResolver(timeline, PositionCache(moves), evaluations)


class TestSegmentLookup:
    @pytest.mark.parametrize("name", [k.value for k in PolicyKind])
    def test_every_frame_has_exactly_one_segment(self, eight_ply_moves: list[Move], name: str) -> None:
        moments = [CriticalMoment(5, MomentKind.BLUNDER, 30, -300)]
        resolver = _resolver(eight_ply_moves, name, {0: "a", 3: "b"}, moments)
        segments = resolver.timeline.segments

        for frame in range(resolver.total_frames):
            owners = [i for i, seg in enumerate(segments) if seg.contains(frame)]
            assert owners == [resolver.segment_index_at(frame)]

    def test_walkthrough_plies(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "walkthrough")
        assert resolver.resolve(0).segment_kind == SegmentKind.INTRO
        assert resolver.resolve(0).ply_index == 0
        assert resolver.resolve(90).ply_index == 1
        assert resolver.resolve(90).position == AFTER_E4
        assert resolver.resolve(90).last_move == "e2e4"
        assert resolver.resolve(119).ply_index == 1
        assert resolver.resolve(120).ply_index == 2
        assert resolver.resolve(329).ply_index == 8
        assert resolver.resolve(330).segment_kind == SegmentKind.OUTRO
        assert resolver.resolve(419).ply_index == 8

    def test_out_of_range_frames_are_clamped(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "walkthrough")
        before = resolver.resolve(-10)
        after = resolver.resolve(10_000)
        assert before.frame == -10
        assert (before.ply_index, before.segment_kind) == (0, SegmentKind.INTRO)
        assert (after.ply_index, after.segment_kind) == (8, SegmentKind.OUTRO)
        assert after.overlay_opacity == resolver.resolve(419).overlay_opacity


class TestOverlays:
    def test_normal_moves_have_no_overlay(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "walkthrough")
        for frame in range(90, 330):
            state = resolver.resolve(frame)
            assert state.overlay_kind == OverlayKind.NONE
            assert state.overlay_opacity == 0.0
            assert state.emphasis_scale == 1.0

    def test_annotation_envelope(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "annotated", {3: "Develops the knight"})
        segment = resolver.timeline.first_segment_for_ply(3)
        start = segment.start_frame

        first = resolver.resolve(start)
        assert first.overlay_kind == OverlayKind.ANNOTATION
        assert first.annotation == "Develops the knight"
        assert first.overlay_opacity == 0.0
        assert resolver.resolve(start + 4).overlay_opacity == pytest.approx(4 / 9)
        assert resolver.resolve(start + 9).overlay_opacity == pytest.approx(1.0)
        assert resolver.resolve(start + 75).overlay_opacity == pytest.approx(1.0)
        assert resolver.resolve(start + 149).overlay_opacity == pytest.approx(1 / 9)

    def test_opacity_stays_in_unit_interval(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "puzzle", {2: "x", 6: "y"})
        for frame in range(resolver.total_frames):
            state = resolver.resolve(frame)
            assert 0.0 <= state.overlay_opacity <= 1.0
            assert state.emphasis_scale > 0

    def test_critical_moment_emphasis(self, eight_ply_moves: list[Move]) -> None:
        moment = CriticalMoment(5, MomentKind.BLUNDER, 30, -300)
        resolver = _resolver(eight_ply_moves, "highlights", moments=[moment])
        start = resolver.timeline.first_segment_for_ply(5).start_frame

        first = resolver.resolve(start)
        assert first.overlay_kind == OverlayKind.CRITICAL
        assert first.critical_moment == moment
        assert first.emphasis_scale == pytest.approx(1.0)
        assert resolver.resolve(start + 9).emphasis_scale == pytest.approx(1.05)
        assert resolver.resolve(start + 149).emphasis_scale == pytest.approx(1.05)
        assert resolver.resolve(start + 60).overlay_opacity == pytest.approx(1.0)

    def test_fade_envelope_short_segment(self) -> None:
        # 10-frame segment can't fit two 9-frame fades
        assert fade_envelope(0, 10, 9) == 0.0
        assert fade_envelope(5, 10, 9) == pytest.approx(1.0)
        assert fade_envelope(3, 0, 9) == 0.0
        assert fade_envelope(3, 10, 0) == 1.0


class TestPuzzlePhases:
    def test_phases_and_countdown(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "puzzle", {4: "Find the pin"})
        start = resolver.timeline.first_segment_for_ply(4).start_frame

        def phase(offset: int):
            state = resolver.resolve(start + offset)
            return state.puzzle_phase, state.countdown

        assert phase(0) == (PuzzlePhase.PAUSE, None)
        assert phase(29) == (PuzzlePhase.PAUSE, None)
        assert phase(30) == (PuzzlePhase.QUESTION, None)
        assert phase(60) == (PuzzlePhase.THINKING, 4)
        assert phase(89) == (PuzzlePhase.THINKING, 4)
        assert phase(90) == (PuzzlePhase.THINKING, 3)
        assert phase(179) == (PuzzlePhase.THINKING, 1)
        assert phase(180) == (PuzzlePhase.REVEAL, None)
        assert phase(239) == (PuzzlePhase.REVEAL, None)

    def test_non_puzzle_frames_have_no_phase(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "puzzle", {4: "Find the pin"})
        state = resolver.resolve(100)
        assert state.puzzle_phase is None
        assert state.countdown is None


class TestPurity:
    def test_order_independent(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "puzzle", {1: "a", 5: "b"})
        sequential = resolver.resolve_range(0, resolver.total_frames)

        frames = list(range(resolver.total_frames))
        random.Random(7).shuffle(frames)
        shuffled = {f: resolver.resolve(f) for f in frames}

        assert [shuffled[f] for f in range(resolver.total_frames)] == sequential

    def test_independent_resolvers_agree(self, eight_ply_moves: list[Move]) -> None:
        first = _resolver(eight_ply_moves, "annotated", {3: "x"})
        second = _resolver(eight_ply_moves, "annotated", {3: "x"})
        for frame in (0, 100, 200, 300, 400, 539):
            assert first.resolve(frame) == second.resolve(frame)

    def test_one_off_helper(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(eight_ply_moves, "walkthrough")
        state = resolve_frame(200, resolver.timeline, resolver.positions)
        assert state == resolver.resolve(200)


class TestEvaluation:
    def test_evaluation_follows_ply(self, eight_ply_moves: list[Move]) -> None:
        resolver = _resolver(
            eight_ply_moves, "walkthrough",
            evaluations=[EvaluationSample(1, 40), EvaluationSample(2, -1500)],
        )
        assert resolver.resolve(95).evaluation == 40
        assert resolver.resolve(125).evaluation == -1500
        assert resolver.resolve(125).eval_bar == 0.0
        assert resolver.resolve(155).evaluation is None
        assert resolver.resolve(155).eval_bar == 0.5

    def test_eval_bar_fraction(self) -> None:
        assert eval_bar_fraction(0) == 0.5
        assert eval_bar_fraction(500) == pytest.approx(0.75)
        assert eval_bar_fraction(5000) == 1.0
        assert eval_bar_fraction(None) == 0.5

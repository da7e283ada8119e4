"""Tests for render job compilation, worker ranges and the manifest."""

from __future__ import annotations

import json
import random

import pytest

from duration import estimate_total_frames
from game_data import GameInfo, Move
from render_job import (
    COMPOSITION_NAMES,
    build_manifest,
    compile_job,
    compile_job_from_pgn,
    frame_state_dict,
    plan_frame_ranges,
)
from timeline_builder import SegmentKind
from timeline_policy import PolicyKind, get_policy


class TestFrameRanges:
    def test_split(self) -> None:
        ranges = plan_frame_ranges(420, 100)
        assert [(r.start_frame, r.end_frame) for r in ranges] == [
            (0, 100), (100, 200), (200, 300), (300, 400), (400, 420),
        ]
        assert [r.worker_index for r in ranges] == [0, 1, 2, 3, 4]
        assert ranges[-1].frame_count == 20

    def test_exact_multiple(self) -> None:
        assert len(plan_frame_ranges(300, 100)) == 3

    def test_empty(self) -> None:
        assert plan_frame_ranges(0, 100) == []

    def test_invalid_chunk(self) -> None:
        with pytest.raises(ValueError):
            plan_frame_ranges(420, 0)


class TestCompileJob:
    def test_from_pgn(self, sample_pgn: str) -> None:
        job = compile_job_from_pgn(sample_pgn, "walkthrough")
        assert job.total_frames == 420
        assert len(job.moves) == 8
        assert job.game_info == GameInfo("Player1", "Player2", "1-0", "2025.10.09")
        assert job.warnings == ()

    def test_matches_estimate(self, sample_pgn: str, blunder_at_ply_five: list[dict]) -> None:
        for kind in PolicyKind:
            policy = get_policy(kind.value)
            annotations = {"3": "Knight out", "6": "Pawn push"}
            job = compile_job_from_pgn(sample_pgn, policy, annotations, blunder_at_ply_five)
            estimate = estimate_total_frames(sample_pgn, policy, annotations, blunder_at_ply_five)
            assert job.total_frames == estimate

    def test_highlights_finds_blunder(self, sample_pgn: str, blunder_at_ply_five: list[dict]) -> None:
        job = compile_job_from_pgn(sample_pgn, "highlights", evaluations=blunder_at_ply_five)
        assert [m.ply_index for m in job.critical_moments] == [5]
        assert job.timeline.first_segment_for_ply(5).kind == SegmentKind.CRITICAL_MOMENT

    def test_invalid_pgn(self) -> None:
        with pytest.raises(ValueError, match="Could not parse PGN"):
            compile_job_from_pgn("this is not chess")

    def test_illegal_move_freezes_board(self) -> None:
        job = compile_job(["e4", "e5", "Ke3", "Nf6"], "walkthrough")
        assert job.positions.frozen_at == 2
        assert len(job.warnings) == 1
        assert job.total_frames == (3 + 4 + 3) * 30
        assert job.resolve_frame(200).position == job.positions.position_at(2)

    def test_unknown_policy(self) -> None:
        with pytest.raises(ValueError):
            compile_job([Move(0, "e4")], "arrows")


class TestWorkers:
    def test_shuffled_workers_match_sequential(self, eight_ply_moves: list[Move]) -> None:
        job = compile_job(eight_ply_moves, "puzzle", {2: "a", 5: "b"}, fps=24)
        sequential = job.resolver().resolve_range(0, job.total_frames)

        ranges = job.frame_ranges(37)
        random.Random(3).shuffle(ranges)

        collected = {}
        for frame_range in ranges:
            # A fresh resolver per worker, as on separate machines
            resolver = job.resolver()
            for state in resolver.resolve_range(frame_range.start_frame, frame_range.end_frame):
                collected[state.frame] = state

        assert [collected[f] for f in range(job.total_frames)] == sequential


class TestManifest:
    def test_manifest_is_consistent(self, sample_pgn: str) -> None:
        job = compile_job_from_pgn(sample_pgn, "annotated", {3: "Knight out"})
        manifest = build_manifest(job, 100)

        assert manifest["composition"] == COMPOSITION_NAMES["annotated"]
        assert manifest["durationInFrames"] == 540
        assert manifest["segments"][0]["startFrame"] == 0
        assert manifest["segments"][-1]["endFrame"] == 540
        assert manifest["frameRanges"][-1] == [500, 540]
        assert manifest["gameInfo"]["white"] == "Player1"
        assert json.loads(json.dumps(manifest)) == manifest

    def test_frame_state_dict(self, sample_pgn: str) -> None:
        job = compile_job_from_pgn(sample_pgn, "puzzle", {4: "Find it"})
        start = job.timeline.first_segment_for_ply(4).start_frame
        state = frame_state_dict(job.resolve_frame(start + 60))

        assert state["segmentKind"] == "puzzle-prompt"
        assert state["puzzlePhase"] == "thinking"
        assert state["countdown"] == 4
        assert state["annotation"] == "Find it"
        json.dumps(state)


class TestAnalysisLongerThanGame:
    def test_out_of_range_swings_do_not_crowd_out_real_ones(self) -> None:
        # Record j is ply j+1; plies 5..11 lie beyond the four-ply game
        records = [0, 0, 300, 300, -700, 300, -700, 300, -700, 300, -700]
        moves = ["e4", "e5", "Nf3", "Nc6"]

        job = compile_job(moves, "highlights", evaluations=records)

        assert [m.ply_index for m in job.critical_moments] == [3]
        assert job.timeline.first_segment_for_ply(3).kind == SegmentKind.CRITICAL_MOMENT
        pgn = "1. e4 e5 2. Nf3 Nc6 *"
        assert estimate_total_frames(pgn, get_policy("highlights"), evaluations=records) == job.total_frames

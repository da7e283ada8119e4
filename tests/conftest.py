"""Shared pytest fixtures used across the test suite."""

from __future__ import annotations

import pytest

from game_data import Move, moves_from_san

EIGHT_PLY_SAN = ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6", "Ba4", "Nf6"]

SAMPLE_PGN = """[Event "Live Chess"]
[Site "Chess.com"]
[Date "2025.10.09"]
[White "Player1"]
[Black "Player2"]
[Result "1-0"]

1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 4. Ba4 Nf6 1-0
"""


@pytest.fixture
def eight_ply_moves() -> list[Move]:
    """Ruy Lopez, eight plies."""
    return moves_from_san(EIGHT_PLY_SAN)


@pytest.fixture
def sample_pgn() -> str:
    return SAMPLE_PGN


@pytest.fixture
def forty_ply_moves() -> list[Move]:
    """Knights shuffling out and back: forty legal plies."""
    return moves_from_san(["Nf3", "Nf6", "Ng1", "Ng8"] * 10)


@pytest.fixture
def blunder_at_ply_five() -> list[dict]:
    """Analysis records (record j = ply j+1) with one big drop at ply 5."""
    return [
        {"evaluation": 30},
        {"evaluation": 20},
        {"eval": 25},
        {"score": 30},
        {"evaluation": -300},
        {"evaluation": -290},
        {"evaluation": -280},
        {"evaluation": -285},
    ]

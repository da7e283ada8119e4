"""
Position Cache
==============
Replays a game once with python-chess and keeps every position in an
index-addressable tuple, so frame lookups never replay from move zero.

A bad move freezes the board: the last good position is repeated for every
remaining ply and a warning is recorded. Nothing here raises on bad input,
because a render worker must never crash mid-frame.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import chess

from game_data import Move

logger = logging.getLogger("PositionCache")


class PositionCache:
    """
    FEN strings for timeline plies 0..N of one game.

    Built once per job and read-only afterwards; share it freely between
    resolvers.
    """

    def __init__(
        self,
        moves: Sequence[Union[Move, str]],
        start_fen: str = chess.STARTING_FEN
    ):
        """
        Replay the moves.

        Args:
            moves: Moves in order (Move objects or plain SAN strings)
            start_fen: Position before the first move
        """
        self.move_count = len(moves)
        self.frozen_at: Optional[int] = None

        positions, last_moves, warnings = self._replay(moves, start_fen)
        self._positions: Tuple[str, ...] = tuple(positions)
        self._last_moves: Tuple[Optional[str], ...] = tuple(last_moves)
        self.warnings: Tuple[str, ...] = tuple(warnings)

    def _replay(
        self,
        moves: Sequence[Union[Move, str]],
        start_fen: str
    ) -> Tuple[List[str], List[Optional[str]], List[str]]:
        warnings = []
        try:
            board = chess.Board(start_fen)
        except ValueError as e:
            message = f"Invalid start position {start_fen!r}: {e}"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)
            board = chess.Board()
            self.frozen_at = 0

        positions = [board.fen()]
        last_moves: List[Optional[str]] = [None]

        for ply, move in enumerate(moves, start=1):
            if self.frozen_at is None:
                san = move.san if isinstance(move, Move) else str(move)
                try:
                    played = board.push_san(san)
                except ValueError as e:
                    self.frozen_at = ply - 1
                    message = f"Move {san!r} at ply {ply} could not be played: {e}"
                    logger.warning(f"⚠️ {message}; freezing at ply {self.frozen_at}")
                    warnings.append(message)
                else:
                    positions.append(board.fen())
                    last_moves.append(played.uci())
                    continue

            positions.append(positions[-1])
            last_moves.append(None)

        return positions, last_moves, warnings

    def __len__(self) -> int:
        return len(self._positions)

    @property
    def positions(self) -> Tuple[str, ...]:
        return self._positions

    @property
    def is_frozen(self) -> bool:
        return self.frozen_at is not None

    def _clamp(self, ply: int) -> int:
        return max(0, min(int(ply), len(self._positions) - 1))

    def position_at(self, ply: int) -> str:
        """FEN after ``ply`` half-moves; out-of-range plies are clamped."""
        return self._positions[self._clamp(ply)]

    def last_move_at(self, ply: int) -> Optional[str]:
        """UCI of the move that produced ``ply``, None for ply 0 or frozen plies."""
        return self._last_moves[self._clamp(ply)]


def replay(moves: Sequence[Union[Move, str]]) -> List[str]:
    """Positions after each ply (index 0 is the start position)."""
    return list(PositionCache(moves).positions)

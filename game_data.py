"""
Game Data Boundary
==================
Turns raw inputs (PGN text, analysis records, annotation records) into the
immutable data classes the timeline compiler works with.

Ply convention: timeline ply ``p`` is the position after ``p`` half-moves.
``Move.ply_index`` is 0-based, so the move with ``ply_index == k`` produces
timeline ply ``k + 1``.
"""

import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from dataclasses import dataclass

import chess
import chess.pgn

logger = logging.getLogger("GameData")

# Engine mate scores are mapped into this centipawn range
MATE_SCORE_CP = 10000

# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Move:
    """A single half-move in standard algebraic notation."""
    ply_index: int
    san: str

    @property
    def move_number(self) -> int:
        return self.ply_index // 2 + 1

    @property
    def is_white_move(self) -> bool:
        return self.ply_index % 2 == 0


@dataclass(frozen=True)
class EvaluationSample:
    """Engine evaluation of the position at a timeline ply (White's view)."""
    ply_index: int
    score_cp: int


@dataclass(frozen=True)
class Annotation:
    """Commentary attached to a timeline ply (0 = before the first move)."""
    ply_index: int
    text: str


@dataclass(frozen=True)
class GameInfo:
    """Header information shown on the intro and result cards."""
    white: str
    black: str
    result: str
    date: str

# =============================================================================
# PGN PARSING
# =============================================================================

def moves_from_san(san_moves: Iterable[str]) -> List[Move]:
    """Wrap a plain list of SAN strings into Move objects."""
    return [Move(ply_index=i, san=san) for i, san in enumerate(san_moves)]


def read_pgn_game(pgn_text: str) -> Optional[chess.pgn.Game]:
    """
    Read the first game from PGN text.

    Returns:
        The parsed game, or None if nothing usable was found
    """
    if not pgn_text or not pgn_text.strip():
        return None

    game = chess.pgn.read_game(io.StringIO(pgn_text))
    if game is None:
        return None

    # read_game accepts any text; an empty game only counts if it had tag pairs
    if game.next() is None:
        if game.errors:
            logger.warning(f"⚠️ PGN has no playable moves: {game.errors[0]}")
            return None
        if not _has_tag_pairs(pgn_text):
            return None

    return game


def _has_tag_pairs(pgn_text: str) -> bool:
    return any(line.lstrip().startswith("[") for line in pgn_text.splitlines())


def parse_pgn_moves(pgn_text: str) -> Optional[List[Move]]:
    """
    Parse PGN text into a list of moves.

    python-chess stops the mainline at the first illegal move, so the
    returned list only contains moves that replay cleanly.

    Returns:
        List of moves, or None if the PGN could not be parsed at all
    """
    game = read_pgn_game(pgn_text)
    if game is None:
        return None

    board = game.board()
    moves = []
    for i, move in enumerate(game.mainline_moves()):
        moves.append(Move(ply_index=i, san=board.san(move)))
        board.push(move)

    if game.errors:
        logger.warning(f"⚠️ PGN truncated after {len(moves)} plies: {game.errors[0]}")

    return moves


def extract_game_info(pgn_text: str) -> GameInfo:
    """Pull player names, result and date from PGN headers."""
    game = read_pgn_game(pgn_text)
    headers = game.headers if game is not None else {}

    return GameInfo(
        white=headers.get("White", "Unknown"),
        black=headers.get("Black", "Unknown"),
        result=headers.get("Result", "*"),
        date=headers.get("Date", "Unknown"),
    )

# =============================================================================
# EVALUATION NORMALIZATION
# =============================================================================

def _score_to_cp(value: Any) -> Optional[int]:
    """Convert one raw score (number or engine dict) to centipawns."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Mapping):
        kind = value.get("type")
        raw = value.get("value")
        if raw is None:
            return None
        if kind == "mate":
            mate_moves = int(raw)
            if mate_moves > 0:
                return MATE_SCORE_CP - mate_moves * 10
            return -MATE_SCORE_CP + abs(mate_moves) * 10
        return int(round(float(raw)))

    return int(round(float(value)))


def _record_score(record: Any) -> Optional[int]:
    """Read the score from an analysis record, whatever it calls the field."""
    if isinstance(record, Mapping):
        for key in ("evaluation", "eval", "score"):
            if record.get(key) is not None:
                return _score_to_cp(record[key])
        return None
    return _score_to_cp(record)


def normalize_evaluations(
    records: Union[None, Mapping[Any, Any], Iterable[Any]]
) -> List[EvaluationSample]:
    """
    Normalize raw analysis output into evaluation samples.

    Accepts either:
        - a sequence of per-move records (``analysisResults.moves``), where
          record ``j`` is the evaluation after move ``j`` (timeline ply j+1)
        - a mapping of timeline ply -> score

    Records without a usable score are skipped.

    Returns:
        Samples sorted by ply index
    """
    if not records:
        return []

    if isinstance(records, Mapping) and "moves" in records:
        records = records["moves"] or []

    samples: Dict[int, int] = {}

    if isinstance(records, Mapping):
        items = ((int(ply), value) for ply, value in records.items())
    else:
        items = ((j + 1, value) for j, value in enumerate(records))

    for ply, value in items:
        try:
            score = _record_score(value)
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Ignoring unreadable evaluation at ply {ply}: {value!r}")
            continue
        if score is None or ply < 0:
            continue
        samples[ply] = score

    return [EvaluationSample(ply_index=ply, score_cp=samples[ply]) for ply in sorted(samples)]

# =============================================================================
# ANNOTATIONS
# =============================================================================

def normalize_annotations(
    records: Union[None, Mapping[Any, str], Iterable[Any]]
) -> List[Annotation]:
    """
    Normalize annotation records into Annotation objects.

    Accepts a mapping of ply -> text, Annotation objects, or dicts shaped
    like the annotation API (``move_index`` / ``annotation_text``). When a
    ply appears twice the later record wins.
    """
    if not records:
        return []

    by_ply: Dict[int, str] = {}

    if isinstance(records, Mapping):
        for ply, text in records.items():
            by_ply[int(ply)] = str(text)
    else:
        for record in records:
            if isinstance(record, Annotation):
                by_ply[record.ply_index] = record.text
            elif isinstance(record, Mapping):
                ply = record.get("move_index", record.get("ply_index"))
                text = record.get("annotation_text", record.get("text"))
                if ply is None or text is None:
                    logger.warning(f"⚠️ Skipping malformed annotation: {record!r}")
                    continue
                by_ply[int(ply)] = str(text)
            else:
                raise TypeError(f"Unsupported annotation record: {record!r}")

    return [Annotation(ply_index=ply, text=by_ply[ply]) for ply in sorted(by_ply)]


def annotation_map(annotations: Iterable[Annotation]) -> Dict[int, str]:
    """Index annotations by ply for quick lookup."""
    return {ann.ply_index: ann.text for ann in annotations}


def load_json_file(path: Union[str, Path]) -> Any:
    """Read a JSON side file (annotations or analysis results)."""
    with open(path, "r") as f:
        return json.load(f)

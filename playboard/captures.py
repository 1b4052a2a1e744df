from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass

import chess

from playboard.position import COLOR_NAMES, Position

PIECE_VALUES = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
}


@dataclass(frozen=True)
class CapturedPiece:
    kind: str    # "p", "n", "b", "r", "q"
    color: str   # colour of the piece that was taken
    value: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MaterialBalance:
    value: int
    side: str | None


def _tally(position: Position) -> Counter:
    return Counter((piece.color, piece.piece_type) for piece in position.piece_map().values())


def diff_captures(before: Position, after: Position) -> dict[str, list[CapturedPiece]]:
    """Pieces that disappeared between two positions, keyed by capturing colour.

    Works on full board occupancy, so en passant is seen even though the
    destination square was empty.
    """
    old, new = _tally(before), _tally(after)
    captured: dict[str, list[CapturedPiece]] = {"white": [], "black": []}

    # A promoted pawn turns into a new piece of its own colour, not a capture
    promoted = Counter()
    for (color, piece_type), count in new.items():
        if piece_type != chess.PAWN:
            promoted[color] += max(0, count - old.get((color, piece_type), 0))

    for (color, piece_type), count in sorted(old.items()):
        lost = count - new.get((color, piece_type), 0)
        if piece_type == chess.PAWN:
            lost -= promoted[color]
        if lost <= 0 or piece_type == chess.KING:
            continue
        capturer = COLOR_NAMES[not color]
        for _ in range(lost):
            captured[capturer].append(
                CapturedPiece(
                    kind=chess.piece_symbol(piece_type),
                    color=COLOR_NAMES[color],
                    value=PIECE_VALUES[piece_type],
                )
            )
    return captured


def material_balance(captured: dict[str, list[CapturedPiece]]) -> MaterialBalance:
    white = sum(piece.value for piece in captured.get("white", []))
    black = sum(piece.value for piece in captured.get("black", []))
    if white > black:
        return MaterialBalance(white - black, "white")
    if black > white:
        return MaterialBalance(black - white, "black")
    return MaterialBalance(0, None)

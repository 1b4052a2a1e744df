"""Turn move payloads of unknown shape into legal canonical moves.

The move-suggestion backend does not commit to a response format. A payload is
classified into one of the recognised shapes below, then an ordered list of
parse strategies is tried; the first one producing a move that is legal in the
given position wins. When every strategy fails the original payload is read as
SAN as a last resort.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

import chess

from playboard.errors import MoveFormatError
from playboard.position import CanonicalMove, Position, Rejected

logger = logging.getLogger(__name__)

PROMOTION_PIECES = set("qrbn")


# ---- Payload shapes ----
@dataclass(frozen=True)
class CoordinateString:
    text: str


@dataclass(frozen=True)
class SquareNamePair:
    from_square: Any
    to_square: Any
    promotion: Any = None


@dataclass(frozen=True)
class SquareIndexPair:
    from_index: Any
    to_index: Any
    promotion: Any = None


@dataclass(frozen=True)
class Unrecognized:
    raw: Any


Payload = Union[CoordinateString, SquareNamePair, SquareIndexPair, Unrecognized]


def classify(raw: Any) -> Payload:
    if isinstance(raw, str) and len(raw.strip()) in (4, 5):
        return CoordinateString(raw.strip())
    if isinstance(raw, dict):
        if raw.get("from") and raw.get("to"):
            return SquareNamePair(raw["from"], raw["to"], raw.get("promotion"))
        if raw.get("from_square") is not None and raw.get("to_square") is not None:
            return SquareIndexPair(raw["from_square"], raw["to_square"], raw.get("promotion"))
    return Unrecognized(raw)


def describe(raw: Any) -> str:
    if isinstance(raw, dict):
        return f"object with keys {sorted(map(str, raw))}"
    return f"{type(raw).__name__} {raw!r}"


# ---- Square helpers ----
def index_to_square(index: Any) -> str:
    """0 is a1, 7 is h1, 63 is h8."""
    if isinstance(index, bool) or not isinstance(index, int):
        raise MoveFormatError(f"square index must be an integer, got {index!r}")
    if index < 0 or index > 63:
        raise MoveFormatError(f"square index out of range: {index}")
    return f"{chess.FILE_NAMES[index % 8]}{index // 8 + 1}"


def _square_name(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    name = value.strip().lower()
    return name if name in chess.SQUARE_NAMES else None


def _promotion(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        # python-chess piece type numbers: 2=knight .. 5=queen
        if chess.KNIGHT <= value <= chess.QUEEN:
            return chess.piece_symbol(value)
        return None
    if isinstance(value, str):
        letter = value.strip().lower()[:1]
        return letter if letter in PROMOTION_PIECES else None
    return None


# ---- Strategies ----
# Each returns a CanonicalMove, or None for "not this shape".
def from_coordinate_string(payload: Payload) -> CanonicalMove | None:
    if not isinstance(payload, CoordinateString):
        return None
    text = payload.text.lower()
    src, dst = _square_name(text[0:2]), _square_name(text[2:4])
    if src is None or dst is None:
        return None
    promotion = _promotion(text[4:5]) if len(text) == 5 else None
    if len(text) == 5 and promotion is None:
        return None
    return CanonicalMove(src, dst, promotion)


def from_square_names(payload: Payload) -> CanonicalMove | None:
    if not isinstance(payload, SquareNamePair):
        return None
    src, dst = _square_name(payload.from_square), _square_name(payload.to_square)
    if src is None or dst is None:
        return None
    return CanonicalMove(src, dst, _promotion(payload.promotion))


def from_square_indices(payload: Payload) -> CanonicalMove | None:
    if not isinstance(payload, SquareIndexPair):
        return None
    return CanonicalMove(
        index_to_square(payload.from_index),
        index_to_square(payload.to_index),
        _promotion(payload.promotion),
    )


Strategy = Callable[[Payload], Union[CanonicalMove, None]]

STRATEGIES: list[Strategy] = [
    from_coordinate_string,
    from_square_names,
    from_square_indices,
]


def _from_san(raw: Any, position: Position) -> CanonicalMove | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return position.parse_san(raw.strip())


def normalize(raw: Any, position: Position) -> CanonicalMove:
    """Return the legal CanonicalMove ``raw`` describes in ``position``.

    Raises MoveFormatError when the payload matches no known shape or when no
    reading of it is legal.
    """
    payload = classify(raw)
    problems: list[str] = []

    for strategy in STRATEGIES:
        try:
            move = strategy(payload)
        except MoveFormatError as exc:
            problems.append(str(exc))
            continue
        if move is None:
            continue
        result = position.apply(move)
        if isinstance(result, Rejected):
            problems.append(result.reason)
            continue
        return position.canonical(move)

    move = _from_san(raw, position)
    if move is not None:
        logger.debug("Read move payload %r as SAN", raw)
        return move

    if isinstance(payload, Unrecognized) and not problems:
        raise MoveFormatError(f"Unrecognized move format: {describe(raw)}")
    detail = "; ".join(problems) if problems else "no legal reading"
    raise MoveFormatError(f"No legal move in payload {describe(raw)}: {detail}")

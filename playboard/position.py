from __future__ import annotations

from dataclasses import dataclass

import chess

COLOR_NAMES = {chess.WHITE: "white", chess.BLACK: "black"}


@dataclass(frozen=True)
class CanonicalMove:
    from_square: str
    to_square: str
    promotion: str | None = None

    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def as_dict(self) -> dict:
        payload = {"from": self.from_square, "to": self.to_square}
        if self.promotion:
            payload["promotion"] = self.promotion
        return payload

    @classmethod
    def from_chess_move(cls, move: chess.Move) -> "CanonicalMove":
        promotion = chess.piece_symbol(move.promotion) if move.promotion else None
        return cls(
            chess.square_name(move.from_square),
            chess.square_name(move.to_square),
            promotion,
        )


@dataclass(frozen=True)
class Rejected:
    move: CanonicalMove
    reason: str


class Position:
    """Read-only view of one ply. ``apply`` hands back a new Position."""

    def __init__(self, board: chess.Board | None = None) -> None:
        self._board = board.copy() if board is not None else chess.Board()

    @classmethod
    def initial(cls) -> "Position":
        return cls()

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        return cls(chess.Board(fen))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return self.fen() == other.fen()

    def __hash__(self) -> int:
        return hash(self.fen())

    def __repr__(self) -> str:
        return f"Position({self.fen()!r})"

    # ---- Queries ----
    def fen(self) -> str:
        return self._board.fen()

    def side_to_move(self) -> str:
        return COLOR_NAMES[self._board.turn]

    def _drawn_by_rule(self) -> bool:
        # threefold repetition that has happened, or fifty moves without progress
        return self._board.is_repetition(3) or self._board.is_fifty_moves()

    def is_game_over(self) -> bool:
        return self._board.is_game_over() or self._drawn_by_rule()

    def is_draw(self) -> bool:
        outcome = self._board.outcome()
        if outcome is not None:
            return outcome.winner is None
        return self._drawn_by_rule()

    def winner(self) -> str | None:
        outcome = self._board.outcome()
        if outcome is None or outcome.winner is None:
            return None
        return COLOR_NAMES[outcome.winner]

    def piece_at(self, square: str) -> chess.Piece | None:
        try:
            return self._board.piece_at(chess.parse_square(square))
        except ValueError:
            return None

    def piece_map(self) -> dict[int, chess.Piece]:
        return self._board.piece_map()

    def owns(self, square: str) -> bool:
        """True when ``square`` holds a piece of the side to move."""
        piece = self.piece_at(square)
        return piece is not None and piece.color == self._board.turn

    def legal_targets(self, square: str) -> set[str]:
        try:
            src = chess.parse_square(square)
        except ValueError:
            return set()
        return {
            chess.square_name(mv.to_square)
            for mv in self._board.legal_moves
            if mv.from_square == src
        }

    # ---- Moves ----
    def _resolve(self, move: CanonicalMove) -> chess.Move | None:
        promotion = (move.promotion or "").strip().lower()[:1]
        try:
            candidate = chess.Move.from_uci(f"{move.from_square}{move.to_square}{promotion}")
        except ValueError:
            return None

        if candidate in self._board.legal_moves:
            return candidate

        # Promotion required but not given: queen
        if not promotion:
            queened = chess.Move(candidate.from_square, candidate.to_square, chess.QUEEN)
            if queened in self._board.legal_moves:
                return queened
        return None

    def apply(self, move: CanonicalMove) -> Position | Rejected:
        resolved = self._resolve(move)
        if resolved is None:
            return Rejected(move, f"illegal move {move.uci()} in {self.fen()}")
        board = self._board.copy()
        board.push(resolved)
        return Position(board)

    def canonical(self, move: CanonicalMove) -> CanonicalMove | None:
        """The fully specified form of a legal ``move`` (promotion filled in)."""
        resolved = self._resolve(move)
        return CanonicalMove.from_chess_move(resolved) if resolved else None

    def san(self, move: CanonicalMove) -> str:
        resolved = self._resolve(move)
        if resolved is None:
            raise ValueError(f"illegal move {move.uci()}")
        return self._board.san(resolved)

    def parse_san(self, text: str) -> CanonicalMove | None:
        try:
            move = self._board.parse_san(text)
        except ValueError:
            return None
        return CanonicalMove.from_chess_move(move)

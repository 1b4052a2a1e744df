from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from playboard.captures import CapturedPiece, diff_captures, material_balance
from playboard.config import AI_DEPTHS, Settings
from playboard.errors import InvalidSettingError, MoveFormatError
from playboard.history import MoveHistory
from playboard.normalizer import normalize
from playboard.position import CanonicalMove, Position, Rejected
from playboard.remote import (
    EvaluationSample,
    EvaluationStream,
    MoveSuggestionClient,
    SuggestedMove,
)

logger = logging.getLogger(__name__)

PLAYER_KINDS = ("human", "ai")


@dataclass(frozen=True)
class SessionAdvance:
    position: Position
    move: CanonicalMove
    san: str
    mover: str
    captures: dict[str, list[CapturedPiece]] = field(default_factory=dict)


def advance_session(position: Position, move: CanonicalMove, mover: str) -> SessionAdvance | None:
    """Everything one accepted move changes, computed without touching state.

    None when the move is illegal in ``position``.
    """
    if position.side_to_move() != mover:
        return None
    result = position.apply(move)
    if isinstance(result, Rejected):
        logger.debug("Rejected %s: %s", move.uci(), result.reason)
        return None
    return SessionAdvance(
        position=result,
        move=position.canonical(move),
        san=position.san(move),
        mover=mover,
        captures=diff_captures(position, result),
    )


@dataclass(frozen=True)
class _Request:
    generation: int
    fen: str
    mover: str


class BoardController:
    """Owns one game session and answers the view layer's input.

    User input is handled synchronously. AI turns and evaluation updates are
    scheduled on the running event loop; without one they only happen when
    ``play_ai_turn`` is awaited directly.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        suggestions: MoveSuggestionClient | None = None,
        evaluation: EvaluationStream | None = None,
        players: dict[str, str] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.suggestions = suggestions or MoveSuggestionClient(
            self.settings.ai_url, timeout=self.settings.ai_timeout
        )
        self.evaluation_stream = evaluation or EvaluationStream(
            self.settings.eval_url,
            depth=self.settings.eval_depth,
            variants=self.settings.eval_variants,
        )
        self.evaluation_stream.on_sample = self._on_evaluation

        # Persist across new games
        self.players = {"white": "human", "black": "ai"}
        if players:
            for color, kind in players.items():
                self._check_player(color, kind)
                self.players[color] = kind
        self.ai_depth = self.settings.ai_depth
        self.orientation = "white"
        self.show_evaluation = False
        self.show_best_move = False

        self.version = 0
        self._generation = 0
        self._in_flight = False
        self._listeners: list[Callable[[dict], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._reset_session()

    # ---- Session state ----
    def _reset_session(self) -> None:
        self.position = Position.initial()
        self.history = MoveHistory()
        self.captured: dict[str, list[CapturedPiece]] = {"white": [], "black": []}
        self.evaluation: EvaluationSample | None = None
        self.ai_evaluation: float | None = None
        self.best_move: SuggestedMove | None = None
        self.last_move: CanonicalMove | None = None
        self.selected: str | None = None
        self.targets: set[str] = set()

    @property
    def thinking(self) -> bool:
        return self._in_flight

    def add_listener(self, callback: Callable[[dict], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[dict], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _changed(self) -> None:
        self.version += 1
        if not self._listeners:
            return
        payload = self.snapshot()
        for callback in list(self._listeners):
            callback(payload)

    def _spawn(self, coro) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every scheduled AI request and stream update is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---- Selection ----
    def _user_input_allowed(self) -> bool:
        mover = self.position.side_to_move()
        return self.players[mover] == "human" and not self._in_flight

    def _select(self, square: str) -> None:
        self.selected = square
        self.targets = self.position.legal_targets(square)

    def _deselect(self) -> None:
        self.selected = None
        self.targets = set()

    def highlights(self) -> dict[str, str]:
        marks = {square: "target" for square in self.targets}
        if self.selected:
            marks[self.selected] = "selected"
        return marks

    # ---- View handlers ----
    def click(self, square: str) -> None:
        if not self._user_input_allowed():
            return

        if self.selected is None:
            if self.position.owns(square):
                self._select(square)
                self._changed()
            return

        if square == self.selected:
            self._deselect()
            self._changed()
            return

        source = self.selected
        self._deselect()
        # Promotion is left to Position, which queens by default
        if not self._try_move(CanonicalMove(source, square)):
            if self.position.owns(square):
                self._select(square)
        self._changed()

    def drag_start(self, square: str) -> None:
        if not self._user_input_allowed():
            return
        if not self.position.owns(square):
            return
        self._select(square)
        self._changed()

    def drop(self, source: str, target: str) -> bool:
        if not self._user_input_allowed():
            return False
        self._deselect()
        moved = self._try_move(CanonicalMove(source, target))
        self._changed()
        return moved

    def flip(self) -> None:
        self.orientation = "black" if self.orientation == "white" else "white"
        self._changed()

    def new_game(self) -> None:
        self._generation += 1
        self._in_flight = False
        self._reset_session()
        logger.info("New game started")
        self._position_changed()
        self._changed()

    def toggle_ai(self, color: str) -> None:
        self._check_color(color)
        self.players[color] = "human" if self.players[color] == "ai" else "ai"
        self._deselect()
        self._maybe_request_ai()
        self._changed()

    def set_ai_depth(self, depth: int) -> None:
        if isinstance(depth, bool) or depth not in AI_DEPTHS:
            raise InvalidSettingError(f"AI depth must be one of {AI_DEPTHS}, got {depth!r}")
        self.ai_depth = depth
        self._maybe_request_ai()
        self._changed()

    def trigger_ai(self) -> None:
        if self._maybe_request_ai():
            self._changed()

    async def set_show_evaluation(self, enabled: bool) -> None:
        self.show_evaluation = bool(enabled)
        await self._sync_stream()
        self._changed()

    async def set_show_best_move(self, enabled: bool) -> None:
        self.show_best_move = bool(enabled)
        if not self.show_best_move:
            self.best_move = None
        await self._sync_stream()
        self._changed()

    async def shutdown(self) -> None:
        self._generation += 1
        await self.evaluation_stream.close()
        await self.drain()
        await self.suggestions.aclose()

    # ---- Moves ----
    def _try_move(self, move: CanonicalMove) -> bool:
        advance = advance_session(self.position, move, self.position.side_to_move())
        if advance is None:
            return False
        self._commit(advance)
        return True

    def _commit(self, advance: SessionAdvance) -> None:
        self.position = advance.position
        self.history.record(advance.san, advance.mover)
        for color, pieces in advance.captures.items():
            self.captured[color].extend(pieces)
        self.last_move = advance.move
        self._deselect()
        logger.debug("%s played %s", advance.mover, advance.san)
        self._position_changed()

    def _position_changed(self) -> None:
        if self.show_evaluation or self.show_best_move:
            self._spawn(self.evaluation_stream.push_position(self.position.fen()))
        self._maybe_request_ai()

    # ---- AI turns ----
    def _ai_to_move(self) -> bool:
        if self.position.is_game_over():
            return False
        return self.players[self.position.side_to_move()] == "ai" and not self._in_flight

    def _begin_request(self) -> _Request:
        self._in_flight = True
        return _Request(self._generation, self.position.fen(), self.position.side_to_move())

    def _maybe_request_ai(self) -> bool:
        if not self._ai_to_move():
            return False
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._spawn(self._resolve_request(self._begin_request()))
        return True

    async def play_ai_turn(self) -> bool:
        """Request and apply one AI move now. True when a move was played."""
        if not self._ai_to_move():
            return False
        return await self._resolve_request(self._begin_request())

    async def _resolve_request(self, request: _Request) -> bool:
        try:
            suggestion = await self.suggestions.suggest(
                request.fen, self.ai_depth, request.mover == "white"
            )
        finally:
            if request.generation == self._generation:
                self._in_flight = False

        if request.generation != self._generation or request.fen != self.position.fen():
            logger.info("Discarding move suggestion for a position no longer on the board")
            return False
        if self.players[request.mover] != "ai":
            logger.info("Discarding move suggestion: %s is now played by a human", request.mover)
            self._changed()
            return False

        if suggestion is None:
            logger.warning("No move suggestion for %s", request.fen)
            self._changed()
            return False

        try:
            move = normalize(suggestion.payload, self.position)
        except MoveFormatError as exc:
            logger.warning("Ignoring AI move: %s", exc)
            self._changed()
            return False

        advance = advance_session(self.position, move, request.mover)
        if advance is None:
            self._changed()
            return False
        if suggestion.evaluation is not None:
            self.ai_evaluation = suggestion.evaluation
        self._commit(advance)
        self._changed()
        return True

    # ---- Evaluation ----
    async def _sync_stream(self) -> None:
        if self.show_evaluation or self.show_best_move:
            await self.evaluation_stream.open(self.position.fen())
        else:
            await self.evaluation_stream.close()

    def _on_evaluation(self, sample: EvaluationSample, suggestion: SuggestedMove | None) -> None:
        self.evaluation = sample
        if self.show_best_move and suggestion is not None:
            self.best_move = suggestion
        self._changed()

    # ---- Read side ----
    def status_text(self) -> str:
        if self._in_flight:
            return "AI is thinking..."
        if self.position.is_game_over():
            if self.position.is_draw():
                return "Draw!"
            winner = self.position.winner()
            return f"{winner.capitalize()} wins!" if winner else "Game over"
        mover = self.position.side_to_move()
        return f"{mover.capitalize()} to move ({self.players[mover]})"

    def snapshot(self) -> dict[str, Any]:
        balance = material_balance(self.captured)
        return {
            "type": "state",
            "fen": self.position.fen(),
            "turn": self.position.side_to_move(),
            "orientation": self.orientation,
            "selected": self.selected,
            "highlights": self.highlights(),
            "lastMove": self.last_move.as_dict() if self.last_move else None,
            "bestMove": self.best_move.as_dict() if self.best_move else None,
            "history": self.history.to_payload(),
            "captured": {
                color: [piece.as_dict() for piece in pieces]
                for color, pieces in self.captured.items()
            },
            "material": {"value": balance.value, "side": balance.side},
            "evaluation": self.evaluation.as_dict() if self.evaluation else None,
            "aiEvaluation": self.ai_evaluation,
            "players": dict(self.players),
            "aiDepth": self.ai_depth,
            "thinking": self._in_flight,
            "gameOver": self.position.is_game_over(),
            "status": self.status_text(),
            "showEvaluation": self.show_evaluation,
            "showBestMove": self.show_best_move,
        }

    @staticmethod
    def _check_color(color: str) -> None:
        if color not in ("white", "black"):
            raise InvalidSettingError(f"unknown colour {color!r}")

    @classmethod
    def _check_player(cls, color: str, kind: str) -> None:
        cls._check_color(color)
        if kind not in PLAYER_KINDS:
            raise InvalidSettingError(f"player must be one of {PLAYER_KINDS}, got {kind!r}")

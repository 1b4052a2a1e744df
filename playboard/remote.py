"""Clients for the two external services the session talks to.

``MoveSuggestionClient`` asks the AI backend for a move over HTTP.
``EvaluationStream`` keeps a WebSocket open to the analysis service while
evaluation is shown and feeds every sample back through a callback.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from playboard.config import DEFAULT_EVAL_DEPTH, DEFAULT_EVAL_VARIANTS

logger = logging.getLogger(__name__)

MOVE_ENDPOINT = "/api/move"


@dataclass(frozen=True)
class MoveSuggestion:
    payload: Any
    evaluation: float | None = None


@dataclass(frozen=True)
class EvaluationSample:
    win_chance_percent: float
    depth: int
    eval_centipawns: float | None = None
    mate_in: int | None = None

    def as_dict(self) -> dict:
        return {
            "eval": self.eval_centipawns,
            "mate": self.mate_in,
            "winChance": self.win_chance_percent,
            "depth": self.depth,
        }


@dataclass(frozen=True)
class SuggestedMove:
    from_square: str
    to_square: str
    san: str | None = None

    def as_dict(self) -> dict:
        return {"from": self.from_square, "to": self.to_square, "san": self.san}


# ---- Move suggestions ----
class MoveSuggestionClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def suggest(self, fen: str, depth: int, is_white: bool) -> MoveSuggestion | None:
        """Ask the backend for a move. Any failure comes back as None."""
        body = {"fen": fen, "message": fen, "depth": depth, "isWhite": is_white}
        try:
            response = await self._client.post(MOVE_ENDPOINT, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Move backend returned HTTP %s", exc.response.status_code)
            return None
        except httpx.HTTPError as exc:
            logger.warning("Move backend request failed: %s", exc)
            return None
        except ValueError:
            logger.warning("Move backend sent a body that is not JSON")
            return None

        if not isinstance(data, dict) or data.get("move") is None:
            logger.warning("Move backend response has no move: %r", data)
            return None

        evaluation = data.get("eval")
        if isinstance(evaluation, bool) or not isinstance(evaluation, (int, float)):
            evaluation = None
        return MoveSuggestion(data["move"], evaluation)

    async def aclose(self) -> None:
        await self._client.aclose()


# ---- Live evaluation ----
EvaluationCallback = Callable[[EvaluationSample, "SuggestedMove | None"], None]
Connector = Callable[[str], Awaitable[Any]]


def parse_evaluation(message: Any) -> tuple[EvaluationSample, SuggestedMove | None] | None:
    """Read one analysis message. None for anything that is not a move sample."""
    if isinstance(message, (str, bytes)):
        try:
            message = json.loads(message)
        except ValueError:
            return None
    if not isinstance(message, dict) or message.get("type") not in ("move", "bestmove"):
        return None

    mate = message.get("mate")
    raw_eval = message.get("eval")
    if isinstance(mate, int) and not isinstance(mate, bool):
        sample_eval, mate_in = None, mate
    else:
        sample_eval = float(raw_eval) if isinstance(raw_eval, (int, float)) else None
        mate_in = None

    win_chance = message.get("winChance")
    depth = message.get("depth")
    sample = EvaluationSample(
        win_chance_percent=float(win_chance) if isinstance(win_chance, (int, float)) else 50.0,
        depth=int(depth) if isinstance(depth, (int, float)) else 0,
        eval_centipawns=sample_eval,
        mate_in=mate_in,
    )

    suggestion = None
    if message.get("from") and message.get("to"):
        suggestion = SuggestedMove(str(message["from"]), str(message["to"]), message.get("san"))
    return sample, suggestion


class EvaluationStream:
    """One analysis connection, owned for as long as evaluation is displayed.

    Use ``open``/``close`` or ``async with``. Sends never queue: when the
    socket is gone a fresh one is opened and the send retried once.
    """

    def __init__(
        self,
        url: str,
        on_sample: EvaluationCallback | None = None,
        depth: int = DEFAULT_EVAL_DEPTH,
        variants: int = DEFAULT_EVAL_VARIANTS,
        connector: Connector | None = None,
    ) -> None:
        self.url = url
        self.depth = depth
        self.variants = variants
        self.on_sample = on_sample
        self._connector = connector or ws_connect
        self._conn: Any = None
        self._reader: asyncio.Task | None = None
        self._fen: str | None = None
        self._wanted = False
        self._connecting = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def __aenter__(self) -> "EvaluationStream":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def open(self, fen: str | None = None) -> None:
        self._wanted = True
        if fen is not None:
            self._fen = fen
        if self._conn is None:
            await self._connect()

    async def close(self) -> None:
        self._wanted = False
        conn, reader = self._conn, self._reader
        self._conn, self._reader = None, None
        if reader is not None:
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if conn is not None:
            await self._close_quietly(conn)
            logger.info("Analysis stream closed")

    async def push_position(self, fen: str) -> None:
        self._fen = fen
        if not self._wanted:
            return
        if self._conn is None:
            # a fresh connection sends the current position itself
            await self._connect()
            return
        try:
            await self._send(self._conn, fen)
        except (OSError, WebSocketException) as exc:
            logger.info("Analysis send failed (%s), reconnecting", exc)
            await self._drop()
            await self._connect()

    # ---- internals ----
    def _request(self, fen: str) -> str:
        return json.dumps({"fen": fen, "depth": self.depth, "variants": self.variants})

    async def _send(self, conn: Any, fen: str) -> None:
        await conn.send(self._request(fen))

    async def _connect(self) -> None:
        # One connect at a time; late callers find the socket already open
        async with self._connecting:
            if self._conn is not None or not self._wanted:
                return
            try:
                conn = await self._connector(self.url)
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("Could not reach analysis service at %s: %s", self.url, exc)
                return
            if self._conn is not None or not self._wanted:
                # closed while connecting
                await self._close_quietly(conn)
                return
            self._conn = conn
            self._reader = asyncio.get_running_loop().create_task(self._read(conn))
            logger.info("Analysis stream connected to %s", self.url)
            if self._fen is not None:
                try:
                    await self._send(conn, self._fen)
                except (OSError, WebSocketException) as exc:
                    logger.warning("Analysis send failed on a fresh connection: %s", exc)
                    await self._drop()

    async def _close_quietly(self, conn: Any) -> None:
        try:
            await conn.close()
        except (OSError, WebSocketException) as exc:
            logger.debug("Closing analysis connection failed: %s", exc)

    async def _drop(self) -> None:
        conn, reader = self._conn, self._reader
        self._conn, self._reader = None, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if conn is not None:
            await self._close_quietly(conn)

    async def _read(self, conn: Any) -> None:
        try:
            async for message in conn:
                parsed = parse_evaluation(message)
                if parsed is not None and self.on_sample is not None:
                    self.on_sample(*parsed)
        except ConnectionClosed as exc:
            logger.info("Analysis stream closed by peer: %s", exc)
        finally:
            if self._conn is conn:
                self._conn = None
                self._reader = None

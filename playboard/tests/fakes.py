"""Test doubles for the external services."""
import asyncio

from playboard.config import Settings
from playboard.controller import BoardController
from playboard.remote import EvaluationStream, MoveSuggestion

HUMANS = {"white": "human", "black": "human"}


class FakeSuggestions:
    """Stands in for MoveSuggestionClient. Replies are handed out in order."""

    def __init__(self, replies=(), gate=None):
        self.replies = list(replies)
        self.calls = []
        self.gate = gate
        self.closed = False

    async def suggest(self, fen, depth, is_white):
        self.calls.append((fen, depth, is_white))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if not self.replies:
            return None
        reply = self.replies.pop(0)
        if reply is None or isinstance(reply, MoveSuggestion):
            return reply
        return MoveSuggestion(reply)

    async def aclose(self):
        self.closed = True


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.closed = False
        self.fail_send = False
        self._incoming = asyncio.Queue()

    async def send(self, data):
        if self.fail_send:
            raise OSError("broken pipe")
        self.sent.append(data)

    def feed(self, message):
        self._incoming.put_nowait(message)

    async def close(self):
        self.closed = True
        self._incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._incoming.get()
        if message is None:
            raise StopAsyncIteration
        return message


class FakeConnector:
    def __init__(self):
        self.connections = []
        self.urls = []

    async def __call__(self, url):
        self.urls.append(url)
        conn = FakeConnection()
        self.connections.append(conn)
        return conn


class SlowConnector(FakeConnector):
    """Connects after a short delay, like a real handshake."""

    def __init__(self, delay=0.01):
        super().__init__()
        self.delay = delay

    async def __call__(self, url):
        await asyncio.sleep(self.delay)
        return await super().__call__(url)


async def settle(rounds: int = 5) -> None:
    """Give background reader tasks a few loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_controller(suggestions=None, connector=None, players=None) -> BoardController:
    stream = EvaluationStream("wss://analysis.test/v1", connector=connector or FakeConnector())
    return BoardController(
        Settings(),
        suggestions=suggestions or FakeSuggestions(),
        evaluation=stream,
        players=players or dict(HUMANS),
    )

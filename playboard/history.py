from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class MoveHistoryEntry:
    move_number: int
    white: str
    black: str = ""

    def as_dict(self) -> dict:
        return {"moveNumber": self.move_number, "white": self.white, "black": self.black}


class MoveHistory:
    """Paired (white, black) move list, one entry per full move."""

    def __init__(self) -> None:
        self._entries: list[MoveHistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, san: str, mover: str) -> None:
        if mover == "white":
            self._entries.append(MoveHistoryEntry(len(self._entries) + 1, san))
            return
        # Black with nothing recorded yet: caller bug, leave the ledger alone
        if self._entries:
            self._entries[-1].black = san

    def entries(self) -> list[MoveHistoryEntry]:
        return [MoveHistoryEntry(**asdict(entry)) for entry in self._entries]

    def clear(self) -> None:
        self._entries = []

    def to_payload(self) -> list[dict]:
        return [entry.as_dict() for entry in self._entries]

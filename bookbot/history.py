"""
Position history ledger.

An ordered log of played plies with a read cursor. Index -1 is the game's
start position (which may be a loaded FEN), 0 is the position after the first
ply, and so on. The cursor is "live" when it sits on the last entry.

Navigation moves in full moves (two plies), so the reviewed position keeps the
same side to move as the one the reviewer left.
"""

import chess

from models import HistoryEntry

NAV_STEP = 2


class HistoryLedger:
    def __init__(self, start_fen: str = chess.STARTING_FEN):
        self.start_fen = start_fen
        self.entries: list[HistoryEntry] = []
        self._cursor: int | None = None  # None == live
        self.reviewing = False

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def last_index(self) -> int:
        return len(self.entries) - 1

    @property
    def index(self) -> int:
        return self.last_index if self._cursor is None else self._cursor

    @property
    def is_live(self) -> bool:
        return self._cursor is None

    def fen_at(self, index: int) -> str:
        if index < 0:
            return self.start_fen
        return self.entries[index].fen

    def current_fen(self) -> str:
        return self.fen_at(self.index)

    def sans(self, upto: int | None = None) -> list[str]:
        end = self.index if upto is None else upto
        return [e.san for e in self.entries[: end + 1]]

    def reset(self, start_fen: str | None = None) -> None:
        if start_fen is not None:
            self.start_fen = start_fen
        self.entries = []
        self._cursor = None
        self.reviewing = False

    def append(self, entry: HistoryEntry) -> int:
        """Record a ply. Abandons any continuation after a reviewed cursor. Returns the new index."""
        if self._cursor is not None:
            del self.entries[self._cursor + 1 :]
        self.entries.append(entry)
        self._cursor = None
        self.reviewing = False
        return self.last_index

    def back_target(self) -> int | None:
        """Index step_back would land on, or None when already at the start."""
        if self.index <= -1:
            return None
        return max(-1, self.index - NAV_STEP)

    def forward_target(self) -> int | None:
        """Index step_forward would land on, or None when already live."""
        if self.is_live:
            return None
        return min(self.last_index, self.index + NAV_STEP)

    def move_cursor(self, index: int) -> None:
        """Place the cursor. Reaching the last entry makes the ledger live again."""
        if not -1 <= index <= self.last_index:
            raise IndexError(f"Cursor {index} outside [-1, {self.last_index}]")
        if index == self.last_index:
            self._cursor = None
            self.reviewing = False
        else:
            self._cursor = index
            self.reviewing = True

    def step_back(self) -> bool:
        target = self.back_target()
        if target is None:
            return False
        self.reviewing = True
        self.move_cursor(target)
        return True

    def step_forward(self) -> bool:
        target = self.forward_target()
        if target is None:
            self.reviewing = False
            return False
        self.move_cursor(target)
        return True

    def jump_to(self, index: int) -> None:
        self.move_cursor(index)

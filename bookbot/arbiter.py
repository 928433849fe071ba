"""
Move source arbitration: Book, then Database, then Engine.

Each non-engine source gets an exhaustion mark, the ledger index where it first
had nothing to offer at the live cursor. Reviewing a position before a mark
restores that source; anything at or past it stays with the next source.
"""

import enum
import random

import chess

from models import CandidateMove
from opening_tree import OpeningTree


class MoveSource(str, enum.Enum):
    BOOK = "book"
    DATABASE = "database"
    ENGINE = "engine"


class MoveArbiter:
    def __init__(self, use_database: bool = True, rng: random.Random | None = None):
        self.tree: OpeningTree | None = None
        self.use_database = use_database
        self.rng = rng or random.Random()
        self.marks: dict[MoveSource, int | None] = {MoveSource.BOOK: None, MoveSource.DATABASE: None}
        self.mode = self._initial_mode()

    @property
    def book_loaded(self) -> bool:
        return self.tree is not None

    def _initial_mode(self) -> MoveSource:
        if self.book_loaded:
            return MoveSource.BOOK
        if self.use_database:
            return MoveSource.DATABASE
        return MoveSource.ENGINE

    def load_book(self, tree: OpeningTree) -> None:
        self.tree = tree
        self.reset_marks()

    def clear_book(self) -> None:
        self.tree = None
        self.reset_marks()

    def reset_marks(self) -> None:
        self.marks = {MoveSource.BOOK: None, MoveSource.DATABASE: None}
        self.mode = self._initial_mode()

    @staticmethod
    def _before(mark: int | None, index: int) -> bool:
        return mark is None or index < mark

    def recompute(self, index: int) -> MoveSource:
        """Re-derive the mode for a cursor position."""
        if self.book_loaded and self._before(self.marks[MoveSource.BOOK], index):
            self.mode = MoveSource.BOOK
        elif self.use_database and self._before(self.marks[MoveSource.DATABASE], index):
            self.mode = MoveSource.DATABASE
        else:
            self.mode = MoveSource.ENGINE
        return self.mode

    def mark_exhausted(self, source: MoveSource, index: int) -> None:
        """Record where `source` ran dry and hand over to the engine."""
        if source in self.marks:
            self.marks[source] = index
        self.mode = MoveSource.ENGINE

    def forget_after(self, index: int) -> None:
        """Drop marks set in a continuation that was abandoned at `index`."""
        for source, mark in self.marks.items():
            if mark is not None and mark > index:
                self.marks[source] = None

    def lookup_book(self, board: chess.Board) -> tuple[CandidateMove, ...]:
        if self.tree is None:
            return ()
        return self.tree.lookup(board)

    def choose(self, candidates) -> CandidateMove | None:
        candidates = list(candidates)
        if not candidates:
            return None
        return self.rng.choice(candidates)

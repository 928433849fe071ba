"""Data models for the book-aware opponent."""

from dataclasses import dataclass, field
from typing import Literal

import chess


@dataclass(frozen=True)
class CandidateMove:
    """A move a source proposes: SAN for display, UCI + squares for replay."""

    san: str
    uci: str
    from_square: str
    to_square: str
    promotion: str | None = None
    game_count: int | None = None

    @classmethod
    def from_move(cls, board: chess.Board, move: chess.Move, game_count: int | None = None) -> "CandidateMove":
        """Build from a python-chess move that is legal on `board` (board is not modified)."""
        return cls(
            san=board.san(move),
            uci=move.uci(),
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            game_count=game_count,
        )

    def to_move(self) -> chess.Move:
        return chess.Move.from_uci(self.uci)


@dataclass(frozen=True)
class HistoryEntry:
    """One ply of the live game."""

    san: str
    fen: str
    uci: str = ""


@dataclass(frozen=True)
class DatabaseFilters:
    """Thresholds applied to opening explorer results."""

    max_moves: int = 12
    min_games: int = 50
    min_share_pct: float = 5.0
    rating_min: int | None = None
    rating_max: int | None = None

    @property
    def has_rating_band(self) -> bool:
        if self.rating_min is not None and self.rating_max is not None:
            # An inverted band matches nothing; query without one.
            return self.rating_min <= self.rating_max
        return self.rating_min is not None or self.rating_max is not None


@dataclass
class EngineLine:
    """One ranked line from a MultiPV analysis. Eval is in pawns, White's perspective."""

    rank: int
    evaluation: float
    depth: int = 0
    mate: int | None = None
    pv: list[str] = field(default_factory=list)


@dataclass
class SearchRequest:
    """An outgoing engine search and the context needed to read its answer."""

    fen: str
    side: Literal["W", "B"]
    evaluation_only: bool = False
    analysis: bool = False

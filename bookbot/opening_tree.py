"""
Opening tree compilation.

Turns a PGN document (one or many games, nested variations allowed) into a
mapping from position key to the candidate moves the document plays there.

Usage:
  python opening_tree.py repertoire.pgn
"""

import argparse
import io
import sys
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import TextIO

import chess
import chess.pgn

sys.path.insert(0, str(Path(__file__).resolve().parent))
from errors import EmptyTreeError, ParseError
from models import CandidateMove
from position_key import position_key

Document = str | TextIO | Iterable[str]


class OpeningTree(Mapping):
    """Immutable position key -> candidate moves table."""

    def __init__(self, table: dict[str, dict[str, CandidateMove]], games: int = 0):
        self._table = MappingProxyType({k: tuple(v.values()) for k, v in table.items() if v})
        self.games = games

    def __getitem__(self, key: str) -> tuple[CandidateMove, ...]:
        return self._table[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def lookup(self, position: str | chess.Board) -> tuple[CandidateMove, ...]:
        """Candidates for a full FEN or board; empty when the book is silent."""
        return self._table.get(position_key(position), ())

    @classmethod
    def from_file(cls, path: str | Path) -> "OpeningTree":
        with open(path, encoding="utf-8", errors="replace") as f:
            return compile_tree(f)


def read_games(document: Document) -> list[chess.pgn.Game]:
    """Read every game from a PGN string, stream, or list of PGN strings."""
    if isinstance(document, str):
        handles = [io.StringIO(document)]
    elif hasattr(document, "read"):
        handles = [document]
    else:
        handles = [io.StringIO(chunk) for chunk in document]

    games = []
    for handle in handles:
        while True:
            game = chess.pgn.read_game(handle)
            if game is None:
                break
            games.append(game)
    return games


def _walk(node: chess.pgn.GameNode, board: chess.Board, table: dict[str, dict[str, CandidateMove]]) -> None:
    # Main line and sibling variations all start from the position before the ply.
    for child in node.variations:
        move = child.move
        if not move or not board.is_legal(move):
            continue
        key = position_key(board)
        table.setdefault(key, {}).setdefault(move.uci(), CandidateMove.from_move(board, move))
        board.push(move)
        _walk(child, board, table)
        board.pop()


def compile_tree(document: Document, starting_fen: str | None = None) -> OpeningTree:
    """
    Compile a PGN document into an OpeningTree.

    Each game starts from its own [FEN] header when present, otherwise from
    starting_fen (the standard position by default). Unparseable moves end
    their line; what was recorded before them is kept.

    Raises ParseError if nothing usable could be read and EmptyTreeError if the
    games parsed cleanly but contain no moves.
    """
    games = read_games(document)
    if not games:
        raise ParseError("No games found in document")

    table: dict[str, dict[str, CandidateMove]] = {}
    errors = []
    for game in games:
        errors.extend(game.errors)
        try:
            board = game.board() if "FEN" in game.headers or starting_fen is None else chess.Board(starting_fen)
        except ValueError as e:
            errors.append(e)
            continue
        _walk(game, board, table)

    if not table:
        if errors:
            raise ParseError(f"No recoverable moves in document: {errors[0]}")
        raise EmptyTreeError("Document contains no moves")

    for error in errors:
        print(f"Warning: skipped unparseable line: {error}", file=sys.stderr)
    return OpeningTree(table, games=len(games))


def main():
    parser = argparse.ArgumentParser(description="Compile a PGN repertoire and print its positions")
    parser.add_argument("pgn", help="PGN file path")
    args = parser.parse_args()

    try:
        tree = OpeningTree.from_file(args.pgn)
    except (ParseError, EmptyTreeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"{tree.games} games, {len(tree)} positions:")
    for key, moves in tree.items():
        print(f"  {key:<72} {' '.join(m.san for m in moves)}")


if __name__ == "__main__":
    main()

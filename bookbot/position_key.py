"""
Position keys: the canonical lookup key shared by the opening tree, the
arbiter and the explorer cache.

A key keeps piece placement, side to move and castling rights. The en
passant square and the move clocks are dropped so that transpositions which
differ only in those fields share one key.
"""

import chess

KEY_FIELDS = 3
KEY_SEPARATOR = " "


def position_key(position: str | chess.Board) -> str:
    """Normalize a FEN (or a board) into a position key."""
    fen = position.fen() if isinstance(position, chess.Board) else position
    return KEY_SEPARATOR.join(fen.split()[:KEY_FIELDS])


def side_to_move(position: str | chess.Board) -> str:
    """Return "W" or "B" for the side to move."""
    if isinstance(position, chess.Board):
        return "W" if position.turn == chess.WHITE else "B"
    fields = position.split()
    return "B" if len(fields) > 1 and fields[1] == "b" else "W"

"""Tests for opening_tree.py"""

import io
import sys
from pathlib import Path

import chess
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from errors import EmptyTreeError, ParseError
from opening_tree import compile_tree, read_games
from position_key import position_key

NESTED = """
1. e4 e5 2. Nf3 Nc6 (2... Nf6 3. Nxe5 d5 4. exd5 (4. d4 dxe4 5. c4) (4. Nc3 d4) 4... Nxd5 ) 3. Bb5 *
"""


def key_after(*sans: str, fen: str = chess.STARTING_FEN) -> str:
    board = chess.Board(fen)
    for san in sans:
        board.push_san(san)
    return position_key(board)


def sans(tree, key) -> set[str]:
    return {m.san for m in tree[key]}


def test_start_position_is_recorded():
    tree = compile_tree("1. e4 e5 *")
    assert position_key(chess.STARTING_FEN) in tree
    assert sans(tree, key_after()) == {"e4"}
    assert sans(tree, key_after("e4")) == {"e5"}
    assert len(tree) == 2


def test_variation_starts_from_position_before_its_ply():
    tree = compile_tree(NESTED)
    assert sans(tree, key_after("e4", "e5", "Nf3")) == {"Nc6", "Nf6"}
    assert sans(tree, key_after("e4", "e5", "Nf3", "Nf6", "Nxe5", "d5")) == {"exd5", "d4", "Nc3"}
    assert sans(tree, key_after("e4", "e5", "Nf3", "Nf6", "Nxe5", "d5", "exd5")) == {"Nxd5"}
    assert sans(tree, key_after("e4", "e5", "Nf3", "Nf6", "Nxe5", "d5", "d4", "dxe4")) == {"c4"}
    assert sans(tree, key_after("e4", "e5", "Nf3", "Nf6", "Nxe5", "d5", "Nc3")) == {"d4"}
    assert sans(tree, key_after("e4", "e5", "Nf3", "Nc6")) == {"Bb5"}


def test_variation_does_not_continue_the_main_line():
    tree = compile_tree(NESTED)
    # 3. Bb5 follows 2... Nc6, never 2... Nf6
    assert "Bb5" not in sans(tree, key_after("e4", "e5", "Nf3", "Nf6"))


def test_candidates_carry_replay_data():
    tree = compile_tree("1. e4 *")
    (move,) = tree[key_after()]
    assert move.uci == "e2e4"
    assert move.from_square == "e2"
    assert move.to_square == "e4"
    assert move.promotion is None


def test_multiple_games_share_one_tree():
    tree = compile_tree("1. e4 e5 *\n\n1. d4 d5 *\n\n1. e4 c5 *")
    assert tree.games == 3
    assert sans(tree, key_after()) == {"e4", "d4"}
    assert sans(tree, key_after("e4")) == {"e5", "c5"}


def test_duplicates_are_collapsed():
    tree = compile_tree("1. e4 e5 *\n\n1. e4 e5 2. Nf3 *")
    assert len(tree[key_after()]) == 1
    assert len(tree[key_after("e4")]) == 1


def test_transpositions_merge_under_one_key():
    tree = compile_tree("1. d4 d5 2. Nf3 Nf6 *\n\n1. Nf3 d5 2. d4 e6 *")
    assert sans(tree, key_after("d4", "d5", "Nf3")) == {"Nf6", "e6"}


def test_list_and_stream_documents_are_accepted():
    from_list = compile_tree(["1. e4 e5 *", "1. d4 d5 *"])
    assert sans(from_list, key_after()) == {"e4", "d4"}
    from_stream = compile_tree(io.StringIO("1. c4 e5 *"))
    assert sans(from_stream, key_after()) == {"c4"}


def test_bad_move_ends_only_its_line():
    tree = compile_tree("1. e4 e5 2. Qxf7 Nc6 *\n\n1. d4 d5 *")
    assert sans(tree, key_after()) == {"e4", "d4"}
    assert sans(tree, key_after("e4")) == {"e5"}
    assert key_after("e4", "e5") not in tree


def test_fen_header_sets_the_games_start():
    fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
    tree = compile_tree(f'[SetUp "1"]\n[FEN "{fen}"]\n\n1. e4 Kd7 *')
    assert sans(tree, position_key(fen)) == {"e4"}
    assert sans(tree, key_after("e4", fen=fen)) == {"Kd7"}


def test_lookup_normalizes_full_fen():
    tree = compile_tree("1. e4 e5 *")
    board = chess.Board()
    board.push_san("e4")
    assert [m.san for m in tree.lookup(board.fen())] == ["e5"]
    assert tree.lookup("8/8/8/8/8/8/8/K6k w - - 0 1") == ()


def test_empty_document_is_a_parse_error():
    with pytest.raises(ParseError):
        compile_tree("")


def test_document_with_only_illegal_moves_is_a_parse_error():
    with pytest.raises(ParseError):
        compile_tree("1. e5 e4 *")


def test_headers_without_moves_is_an_empty_tree():
    with pytest.raises(EmptyTreeError):
        compile_tree('[Event "Nothing here"]\n\n*')


def test_read_games_counts_games():
    assert len(read_games("1. e4 *\n\n1. d4 *")) == 2


def test_starting_fen_is_the_baseline_without_a_header():
    fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
    tree = compile_tree("1. e4 Kd7 *", starting_fen=fen)
    assert sans(tree, position_key(fen)) == {"e4"}
    assert tree.lookup(chess.STARTING_FEN) == ()

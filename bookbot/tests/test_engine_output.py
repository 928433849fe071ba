"""Tests for engine_output.py"""

import sys
from pathlib import Path

import chess
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from engine_output import (
    ANALYSIS_LINES,
    MATE_EVAL,
    EngineOutputInterpreter,
    parse_bestmove_line,
    parse_info_line,
    score_to_eval,
)
from models import SearchRequest

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


class Recorder:
    def __init__(self, reviewing: bool = False):
        self.reviewing = reviewing
        self.moves = []
        self.evals = []
        self.analyses = []

    def interpreter(self) -> EngineOutputInterpreter:
        return EngineOutputInterpreter(
            is_reviewing=lambda: self.reviewing,
            on_best_move=self.moves.append,
            on_evaluation=self.evals.append,
            on_analysis=self.analyses.append,
        )


def test_parse_info_line_with_cp():
    info = parse_info_line("info depth 14 seldepth 20 multipv 1 score cp 35 nodes 1000 pv e7e5 g1f3")
    assert info["depth"] == 14
    assert info["cp"] == 35
    assert info["mate"] is None
    assert info["pv"] == ["e7e5", "g1f3"]


def test_parse_info_line_with_mate_and_bound():
    info = parse_info_line("info depth 30 multipv 2 score mate -3 upperbound pv h7h6")
    assert info["mate"] == -3
    assert info["multipv"] == 2


def test_parse_info_line_without_score():
    assert parse_info_line("info depth 5 currmove e2e4 currmovenumber 1") is None
    assert parse_info_line("readyok") is None
    assert parse_info_line("info string NNUE evaluation enabled") is None


def test_parse_bestmove_line():
    assert parse_bestmove_line("bestmove e2e4 ponder e7e5") == (True, "e2e4")
    assert parse_bestmove_line("bestmove (none)") == (True, None)
    assert parse_bestmove_line("info depth 1") == (False, None)


def test_black_to_move_cp_is_flipped_to_white_perspective():
    assert score_to_eval(35, None, "B") == pytest.approx(-0.35)
    assert score_to_eval(35, None, "W") == pytest.approx(0.35)


def test_mate_saturates():
    assert score_to_eval(None, -3, "W") == -MATE_EVAL
    assert score_to_eval(None, 2, "W") == MATE_EVAL
    assert score_to_eval(None, 2, "B") == -MATE_EVAL
    assert score_to_eval(None, 0, "W") == -MATE_EVAL


def test_evaluation_uses_side_recorded_at_request_time():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.feed("info depth 10 score cp 35 pv e7e5")
    assert rec.evals == [pytest.approx(-0.35)]
    interp.feed("info depth 12 score mate -3 pv e7e5")
    assert rec.evals[-1] == MATE_EVAL


def test_best_move_is_delivered():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.feed("bestmove e7e5 ponder g1f3")
    assert [m.san for m in rec.moves] == ["e5"]
    assert not interp.searching


def test_evaluation_only_discards_move_and_clears_flag():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B", evaluation_only=True))
    interp.feed("info depth 10 score cp 10 pv e7e5")
    interp.feed("bestmove e7e5")
    assert rec.moves == []
    assert rec.evals == [pytest.approx(-0.1)]
    assert interp.evaluation_only is False


def test_evaluation_only_wins_over_reviewing():
    rec = Recorder(reviewing=True)
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B", evaluation_only=True))
    interp.feed("bestmove e7e5")
    assert interp.evaluation_only is False
    assert rec.moves == []


def test_reviewing_read_at_callback_time_discards_move():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    rec.reviewing = True
    interp.feed("bestmove e7e5")
    assert rec.moves == []


def test_stale_bestmove_is_discarded():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=chess.STARTING_FEN, side="W"))
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.feed("info depth 20 score cp 50 pv d2d4")  # old search still draining
    interp.feed("bestmove d2d4")
    assert rec.moves == []
    assert rec.evals == []
    interp.feed("bestmove c7c5")
    assert [m.san for m in rec.moves] == ["c5"]


def test_invalidate_drops_late_answer():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.invalidate()
    interp.feed("info depth 10 score cp 10 pv e7e5")
    interp.feed("bestmove e7e5")
    assert rec.moves == []
    assert rec.evals == []


def test_analysis_captures_ranked_lines_and_plays_nothing():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B", analysis=True))
    interp.feed("info depth 12 multipv 1 score cp 20 pv c7c5 g1f3")
    interp.feed("info depth 12 multipv 2 score cp 25 pv e7e5")
    interp.feed("info depth 12 multipv 3 score cp 40 pv e7e6")
    interp.feed("info depth 12 multipv 4 score cp 60 pv a7a6")
    interp.feed("bestmove c7c5")
    assert rec.moves == []
    (lines,) = rec.analyses
    assert len(lines) == ANALYSIS_LINES
    assert [line.pv[0] for line in lines] == ["c7c5", "e7e5", "e7e6"]
    assert lines[0].evaluation == pytest.approx(-0.2)
    assert interp.analysis is False


def test_illegal_engine_move_is_ignored():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.feed("bestmove e2e4")
    assert rec.moves == []


def test_bestmove_without_search_is_ignored():
    rec = Recorder()
    interp = rec.interpreter()
    interp.feed("bestmove e2e4")
    assert rec.moves == []


def test_readyok_during_a_search_is_ignored():
    rec = Recorder()
    interp = rec.interpreter()
    interp.begin_search(SearchRequest(fen=AFTER_E4, side="B"))
    interp.feed("readyok")
    assert interp.searching
    interp.feed("bestmove c7c5")
    assert [m.san for m in rec.moves] == ["c5"]

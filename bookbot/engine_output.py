"""
Interpretation of UCI engine output.

Turns the engine's line stream into evaluations (pawns, White's perspective)
and best-move signals, dropping output that belongs to a search the user has
already moved away from.
"""

import sys
from typing import Callable

import chess

from models import CandidateMove, EngineLine, SearchRequest

MATE_EVAL = 100.0
ANALYSIS_LINES = 3


def parse_info_line(line: str) -> dict | None:
    """Extract depth, multipv, score and pv from an `info` line. None if it carries no score."""
    tokens = line.split()
    if not tokens or tokens[0] != "info" or "score" not in tokens:
        return None

    info: dict = {"depth": 0, "multipv": 1, "cp": None, "mate": None, "pv": []}
    i = 1
    while i < len(tokens):
        tok = tokens[i]
        try:
            if tok == "depth":
                info["depth"] = int(tokens[i + 1])
                i += 2
            elif tok == "multipv":
                info["multipv"] = int(tokens[i + 1])
                i += 2
            elif tok == "score":
                kind, value = tokens[i + 1], int(tokens[i + 2])
                if kind == "cp":
                    info["cp"] = value
                elif kind == "mate":
                    info["mate"] = value
                i += 3
            elif tok == "pv":
                info["pv"] = tokens[i + 1 :]
                break
            else:
                i += 1
        except (IndexError, ValueError):
            return None

    if info["cp"] is None and info["mate"] is None:
        return None
    return info


def parse_bestmove_line(line: str) -> tuple[bool, str | None]:
    """Return (is_bestmove, uci). uci is None for `bestmove (none)` / `0000`."""
    tokens = line.split()
    if not tokens or tokens[0] != "bestmove":
        return False, None
    if len(tokens) < 2 or tokens[1] in ("(none)", "0000"):
        return True, None
    return True, tokens[1]


def score_to_eval(cp: int | None, mate: int | None, side: str) -> float:
    """Engine score (relative to `side`, the side to move at request time) -> pawns for White."""
    if mate is not None:
        value = MATE_EVAL if mate > 0 else -MATE_EVAL
    else:
        value = (cp or 0) / 100
    return value if side == "W" else -value


class EngineOutputInterpreter:
    """
    Reads engine lines for the newest search.

    Each `go` sent to the engine must be announced through begin_search(); every
    `bestmove` answers one of them in order, so any `bestmove` (and the `info`
    lines before it) arriving while a newer search is outstanding is stale.

    For the newest search's `bestmove` the checks run in order:
      1. evaluation-only request: flag cleared, move dropped
      2. analysis request: ranked lines delivered, move dropped
      3. ledger reviewing: dropped
      4. otherwise the move is handed to on_best_move
    """

    def __init__(
        self,
        is_reviewing: Callable[[], bool],
        on_best_move: Callable[[CandidateMove], None] | None = None,
        on_evaluation: Callable[[float], None] | None = None,
        on_analysis: Callable[[list[EngineLine]], None] | None = None,
    ):
        self.is_reviewing = is_reviewing
        self.on_best_move = on_best_move
        self.on_evaluation = on_evaluation
        self.on_analysis = on_analysis

        self.request: SearchRequest | None = None
        self.evaluation_only = False
        self.analysis = False
        self.lines: dict[int, EngineLine] = {}
        self._outstanding = 0

    @property
    def searching(self) -> bool:
        return self._outstanding > 0

    def begin_search(self, request: SearchRequest) -> None:
        self.request = request
        self.evaluation_only = request.evaluation_only
        self.analysis = request.analysis
        self.lines = {}
        self._outstanding += 1

    def invalidate(self) -> None:
        """Make any in-flight search's result unusable (a stop has been or is about to be sent)."""
        self.request = None
        self.evaluation_only = False
        self.analysis = False
        self.lines = {}

    def feed(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        is_best, uci = parse_bestmove_line(line)
        if is_best:
            self._handle_bestmove(uci)
            return

        if self._outstanding > 1 or self.request is None:
            return
        info = parse_info_line(line)
        if info is not None:
            self._handle_info(info)

    def _handle_info(self, info: dict) -> None:
        value = score_to_eval(info["cp"], info["mate"], self.request.side)
        rank = info["multipv"]
        if self.analysis and rank <= ANALYSIS_LINES:
            self.lines[rank] = EngineLine(
                rank=rank, evaluation=value, depth=info["depth"], mate=info["mate"], pv=info["pv"]
            )
        if rank == 1:
            if self.on_evaluation:
                self.on_evaluation(value)

    def _handle_bestmove(self, uci: str | None) -> None:
        if self._outstanding == 0:
            return
        self._outstanding -= 1
        if self._outstanding > 0 or self.request is None:
            return

        if self.evaluation_only:
            self.evaluation_only = False
            return
        if self.analysis:
            self.analysis = False
            if self.on_analysis:
                self.on_analysis([self.lines[k] for k in sorted(self.lines)])
            return
        if self.is_reviewing():
            return
        if uci is None:
            return

        board = chess.Board(self.request.fen)
        try:
            move = chess.Move.from_uci(uci)
        except ValueError:
            print(f"Engine sent unreadable move {uci!r}", file=sys.stderr)
            return
        if not board.is_legal(move):
            print(f"Engine move {uci} is illegal in {self.request.fen}", file=sys.stderr)
            return
        if self.on_best_move:
            self.on_best_move(CandidateMove.from_move(board, move))

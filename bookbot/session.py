"""
Game session: one human against the book-aware opponent.

Owns the board, the history ledger, the move arbiter and the engine output
interpreter, and keeps them consistent while moves, navigation and engine or
explorer replies arrive in any order.

Every navigation follows the same order: bump the generation and set the
reviewing flag, stop any running search, then move the ledger cursor. Replies
to requests issued under an older generation are dropped.
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent))
from arbiter import MoveArbiter, MoveSource
from config import SETTINGS, Settings
from engine_output import ANALYSIS_LINES, EngineOutputInterpreter
from engine_process import go_command, position_command, strength_commands
from errors import EmptyResultError, IllegalMoveAttempted, ProviderRateLimited, ProviderUnavailable
from explorer_client import ExplorerClient
from history import HistoryLedger
from models import CandidateMove, EngineLine, HistoryEntry, SearchRequest
from opening_tree import Document, OpeningTree, compile_tree
from position_key import side_to_move


def game_over_reason(board: chess.Board) -> str | None:
    outcome = board.outcome()
    if outcome is None:
        return None
    reason = outcome.termination.name.replace("_", " ").lower()
    if outcome.winner is None:
        return f"Draw by {reason}."
    winner = "White" if outcome.winner == chess.WHITE else "Black"
    return f"{reason.capitalize()}! {winner} wins."


class GameSession:
    def __init__(
        self,
        engine,
        explorer: ExplorerClient | None = None,
        settings: Settings = SETTINGS,
        human_color: chess.Color = chess.WHITE,
        rng=None,
        sleep=asyncio.sleep,
    ):
        self.engine = engine
        self.explorer = explorer
        self.settings = settings
        self.filters = settings.filters
        self.elo = settings.elo
        self.human_color = human_color
        self.sleep = sleep

        self.board = chess.Board()
        self.ledger = HistoryLedger()
        self.arbiter = MoveArbiter(use_database=settings.use_database and explorer is not None, rng=rng)
        self.interpreter = EngineOutputInterpreter(
            is_reviewing=lambda: self.ledger.reviewing,
            on_best_move=self._on_engine_move,
            on_evaluation=self._on_evaluation,
            on_analysis=self._on_analysis,
        )
        self.evaluation: float | None = None
        self.generation = 0
        self._multipv = 1
        self._pending: asyncio.Task | None = None

        self.on_move: Callable[[CandidateMove, MoveSource | None, str], None] | None = None
        self.on_evaluation: Callable[[float], None] | None = None
        self.on_analysis: Callable[[list[EngineLine]], None] | None = None
        self.on_notice: Callable[[str], None] | None = None
        self.on_game_over: Callable[[str], None] | None = None

        engine.on_output_line(self.interpreter.feed)

    # ---------------- Collaborator-facing helpers -----------------
    @property
    def mode(self) -> MoveSource:
        return self.arbiter.mode

    @property
    def opponent_to_move(self) -> bool:
        return self.board.turn != self.human_color

    def legal_moves(self, square: str) -> list[CandidateMove]:
        sq = chess.parse_square(square)
        return [CandidateMove.from_move(self.board, m) for m in self.board.legal_moves if m.from_square == sq]

    def needs_promotion(self, from_square: str, to_square: str) -> bool:
        return any(m.promotion for m in self.board.legal_moves if m.uci()[:4] == f"{from_square}{to_square}")

    def _notice(self, message: str) -> None:
        if self.on_notice:
            self.on_notice(message)

    # ---------------- Engine -----------------
    def configure_engine(self) -> None:
        for command in strength_commands(self.elo):
            self.engine.send(command)
        self.engine.send("ucinewgame")
        self.engine.send("isready")

    def set_strength(self, elo: int) -> None:
        self.elo = elo
        self._cancel_search()
        for command in strength_commands(elo):
            self.engine.send(command)

    def _cancel_search(self) -> None:
        self.interpreter.invalidate()
        if self.interpreter.searching:
            self.engine.send("stop")

    def _search(self, evaluation_only: bool = False, analysis: bool = False) -> None:
        if self.board.is_game_over():
            return
        self._cancel_search()
        multipv = ANALYSIS_LINES if analysis else 1
        if multipv != self._multipv:
            self.engine.send(f"setoption name MultiPV value {multipv}")
            self._multipv = multipv
        fen = self.board.fen()
        self.interpreter.begin_search(
            SearchRequest(fen=fen, side=side_to_move(self.board), evaluation_only=evaluation_only, analysis=analysis)
        )
        self.engine.send(position_command(fen))
        self.engine.send(go_command(self.settings.search_depth, self.settings.movetime_ms))

    def _on_evaluation(self, value: float) -> None:
        self.evaluation = value
        if self.on_evaluation:
            self.on_evaluation(value)

    def _on_analysis(self, lines: list[EngineLine]) -> None:
        if self.on_analysis:
            self.on_analysis(lines)

    def _on_engine_move(self, candidate: CandidateMove) -> None:
        request = self.interpreter.request
        if not self.opponent_to_move or request is None or request.fen != self.board.fen():
            return
        self._play(candidate, MoveSource.ENGINE)

    # ---------------- Game setup -----------------
    def new_game(self, start_fen: str = chess.STARTING_FEN, human_color: chess.Color | None = None) -> None:
        board = chess.Board(start_fen)
        self.generation += 1
        self.ledger.reviewing = False
        self._cancel_search()
        if human_color is not None:
            self.human_color = human_color
        self.board = board
        self.ledger.reset(board.fen())
        self.arbiter.reset_marks()
        self.evaluation = None
        self.engine.send("ucinewgame")
        self.engine.send("isready")
        self._after_position_change(allow_move=True)

    def load_position(self, fen: str) -> None:
        """Start a new game from a custom position. Raises ValueError on a bad FEN."""
        self.new_game(chess.Board(fen).fen())

    def load_book(self, document: Document, starting_fen: str | None = None) -> OpeningTree:
        """Compile and install a repertoire. On ParseError/EmptyTreeError the old book stays."""
        tree = compile_tree(document, starting_fen)
        self.arbiter.load_book(tree)
        self.arbiter.recompute(self.ledger.index)
        return tree

    def clear_book(self) -> None:
        self.arbiter.clear_book()
        self.arbiter.recompute(self.ledger.index)

    # ---------------- Moves -----------------
    def _parse(self, move: str) -> chess.Move:
        try:
            return self.board.parse_uci(move)
        except ValueError:
            try:
                return self.board.parse_san(move)
            except ValueError:
                raise IllegalMoveAttempted(move, self.board.fen()) from None

    def _apply(self, candidate: CandidateMove) -> HistoryEntry:
        """Push a candidate on the board and the ledger, or raise leaving both untouched."""
        try:
            move = chess.Move.from_uci(candidate.uci)
        except ValueError:
            raise IllegalMoveAttempted(candidate.uci, self.board.fen()) from None
        if not self.board.is_legal(move):
            raise IllegalMoveAttempted(candidate.uci, self.board.fen())
        san = self.board.san(move)
        self.board.push(move)
        entry = HistoryEntry(san=san, fen=self.board.fen(), uci=move.uci())
        if not self.ledger.is_live:
            self.arbiter.forget_after(self.ledger.index)
        self.ledger.append(entry)
        self.arbiter.recompute(self.ledger.index)
        return entry

    def _play(self, candidate: CandidateMove, source: MoveSource) -> bool:
        index = self.ledger.index
        try:
            self._apply(candidate)
        except IllegalMoveAttempted as e:
            print(f"Dropped {source.value} move: {e}", file=sys.stderr)
            self.arbiter.mark_exhausted(source, index)
            return False
        if self.on_move:
            self.on_move(candidate, source, self.board.fen())
        self._after_position_change(allow_move=False)
        return True

    def human_move(self, move: str) -> HistoryEntry | None:
        """
        Play the human's move on the displayed position. While reviewing, the
        abandoned continuation is discarded. Raises IllegalMoveAttempted.
        """
        if self.board.is_game_over():
            return None
        if self.opponent_to_move:
            self._notice("Not your turn.")
            return None
        parsed = self._parse(move)
        candidate = CandidateMove.from_move(self.board, parsed)
        self.generation += 1
        self._cancel_search()
        entry = self._apply(candidate)
        if self.on_move:
            self.on_move(candidate, None, self.board.fen())
        self._after_position_change(allow_move=True)
        return entry

    def _after_position_change(self, allow_move: bool) -> None:
        reason = game_over_reason(self.board)
        if reason:
            if self.on_game_over:
                self.on_game_over(reason)
            return
        if allow_move and self.opponent_to_move and not self.ledger.reviewing:
            self._schedule_opponent()
        else:
            self._search(evaluation_only=True)

    def _schedule_opponent(self) -> None:
        self._pending = asyncio.get_running_loop().create_task(self.request_opponent_move())

    async def settle(self) -> None:
        """Wait for a scheduled opponent move request to finish."""
        while self._pending is not None and not self._pending.done():
            await self._pending

    async def request_opponent_move(self) -> None:
        """Produce the opponent's move from the book, the explorer, or the engine."""
        if not self.opponent_to_move or self.ledger.reviewing or self.board.is_game_over():
            return
        generation = self.generation
        await self.sleep(self.settings.debounce_ms / 1000)
        if generation != self.generation or self.ledger.reviewing or not self.opponent_to_move:
            return

        index = self.ledger.index
        mode = self.arbiter.mode

        if mode != MoveSource.ENGINE:
            candidate = None
            try:
                candidate = await self._candidate_from(mode)
            except EmptyResultError:
                if mode == MoveSource.BOOK:
                    self._notice("Out of book.")
            except ProviderRateLimited:
                self._notice("Opening database rate limited, switching to engine.")
            except ProviderUnavailable as e:
                print(f"Explorer error: {e}", file=sys.stderr)
                self._notice("Opening database unavailable, switching to engine.")
            if generation != self.generation or self.ledger.reviewing:
                return
            if candidate is None:
                self.arbiter.mark_exhausted(mode, index)
            elif self._play(candidate, mode):
                return

        self._search(evaluation_only=False)

    async def _candidate_from(self, mode: MoveSource) -> CandidateMove:
        """Pick a move from the book or the explorer. Raises EmptyResultError when there is none."""
        if mode == MoveSource.BOOK:
            candidates = self.arbiter.lookup_book(self.board)
        else:
            candidates = await self.explorer.query(self.board.fen(), self.filters)
        candidate = self.arbiter.choose(candidates)
        if candidate is None:
            raise EmptyResultError(f"No {mode.value} move for {self.board.fen()}")
        return candidate

    # ---------------- Navigation -----------------
    def _navigate(self, target: int) -> None:
        self.generation += 1
        self.ledger.reviewing = target < self.ledger.last_index
        self._cancel_search()
        self.ledger.move_cursor(target)
        self._sync_board()
        self.arbiter.recompute(self.ledger.index)

    def _sync_board(self) -> None:
        board = chess.Board(self.ledger.start_fen)
        for entry in self.ledger.entries[: self.ledger.index + 1]:
            board.push_uci(entry.uci)
        self.board = board

    def step_back(self) -> bool:
        target = self.ledger.back_target()
        if target is None:
            return False
        self._navigate(target)
        self._search(evaluation_only=True)
        return True

    def step_forward(self) -> bool:
        target = self.ledger.forward_target()
        if target is None:
            self.ledger.reviewing = False
            return False
        self._navigate(target)
        self._after_position_change(allow_move=self.ledger.is_live)
        return True

    def jump_to(self, index: int) -> None:
        if not -1 <= index <= self.ledger.last_index:
            raise IndexError(f"No ply {index}")
        self._navigate(index)
        self._after_position_change(allow_move=self.ledger.is_live)

    def show_possible_moves(self) -> bool:
        """Start a MultiPV analysis of the displayed position; lines arrive via on_analysis."""
        if self.opponent_to_move and not self.ledger.reviewing:
            self._notice("Wait for the opponent to move.")
            return False
        if self.board.is_game_over():
            return False
        self._search(analysis=True)
        return True

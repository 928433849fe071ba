#!/usr/bin/env python3
"""
Play against the book-aware opponent in the terminal.

The opponent answers from a PGN repertoire while it has one, then from the
Lichess opening explorer, then from Stockfish.

Usage:
  python play.py --pgn repertoire.pgn --color black
  STOCKFISH_PATH=/usr/bin/stockfish python play.py --elo 1600 --no-database

Commands at the prompt:
  <move>     a move in SAN (Nf3) or UCI (g1f3)
  back       step back one full move
  forward    step forward one full move
  goto N     jump to ply N (0 = start position)
  moves SQ   legal moves from a square
  hint       show the engine's top lines
  eval       show the current evaluation
  new        start over
  quit
"""

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent))
from config import ELO_MAX, ELO_MIN, SETTINGS
from engine_process import EngineProcess
from errors import EmptyTreeError, IllegalMoveAttempted, ParseError
from explorer_client import ExplorerClient
from session import GameSession


def format_eval(value: float | None) -> str:
    if value is None:
        return "?"
    return f"{value:+.2f}"


def print_position(session: GameSession) -> None:
    print()
    print(session.board.unicode(empty_square=".", orientation=session.human_color))
    ledger = session.ledger
    status = "live" if ledger.is_live else f"reviewing ply {ledger.index + 1}/{len(ledger)}"
    print(f"[{status}] source: {session.mode.value}  eval: {format_eval(session.evaluation)}")


def wire_callbacks(session: GameSession) -> None:
    def on_move(candidate, source, fen):
        who = "You" if source is None else f"Bot ({source.value})"
        print(f"{who}: {candidate.san}")
        print_position(session)

    def on_analysis(lines):
        board = session.board
        for line in lines:
            moves = [chess.Move.from_uci(u) for u in line.pv[:6]]
            try:
                text = board.variation_san(moves)
            except ValueError:
                text = " ".join(line.pv[:6])
            print(f"  {line.rank}. {format_eval(line.evaluation)}  {text}")

    session.on_move = on_move
    session.on_analysis = on_analysis
    session.on_notice = lambda message: print(f"* {message}")
    session.on_game_over = lambda reason: print(f"Game over: {reason}")


async def handle_command(session: GameSession, text: str) -> bool:
    """Run one prompt command. Returns False to quit."""
    parts = text.split()
    if not parts:
        return True
    cmd = parts[0].lower()

    if cmd in ("quit", "exit", "q"):
        return False
    if cmd == "back":
        if session.step_back():
            print_position(session)
    elif cmd == "forward":
        session.step_forward()
        print_position(session)
    elif cmd == "goto" and len(parts) == 2 and parts[1].isdigit():
        try:
            session.jump_to(int(parts[1]) - 1)
        except IndexError as e:
            print(f"Error: {e}")
        else:
            print_position(session)
    elif cmd == "moves" and len(parts) == 2:
        try:
            moves = session.legal_moves(parts[1])
        except ValueError:
            print(f"Error: bad square {parts[1]}")
        else:
            print("  " + " ".join(m.san for m in moves) if moves else "  (none)")
    elif cmd == "hint":
        session.show_possible_moves()
    elif cmd == "eval":
        print(f"  eval: {format_eval(session.evaluation)}")
    elif cmd == "new":
        session.new_game(session.ledger.start_fen)
        print_position(session)
    else:
        try:
            session.human_move(parts[0])
        except IllegalMoveAttempted:
            print(f"Illegal move: {parts[0]}")
    await asyncio.sleep(0)
    return True


async def main_async():
    parser = argparse.ArgumentParser(description="Play against a book-aware chess opponent")
    parser.add_argument("--pgn", help="PGN repertoire for the opponent")
    parser.add_argument("--fen", help="Custom start position")
    parser.add_argument("--color", choices=["white", "black"], default="white", help="Your color")
    parser.add_argument("--elo", type=int, default=SETTINGS.elo, help=f"Bot strength ({ELO_MIN}-{ELO_MAX})")
    parser.add_argument("--depth", type=int, default=SETTINGS.search_depth, help="Engine search depth")
    parser.add_argument("--no-database", action="store_true", help="Skip the opening explorer")
    parser.add_argument("--engine-path", default=SETTINGS.stockfish_path)
    args = parser.parse_args()

    engine = EngineProcess(args.engine_path)
    try:
        await engine.start()
    except RuntimeError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    explorer = None if args.no_database else ExplorerClient()
    human_color = chess.WHITE if args.color == "white" else chess.BLACK
    settings = dataclasses.replace(SETTINGS, search_depth=args.depth)
    session = GameSession(engine, explorer, settings, human_color=human_color)
    session.elo = max(ELO_MIN, min(ELO_MAX, args.elo))
    wire_callbacks(session)
    session.configure_engine()

    if args.pgn:
        try:
            tree = session.load_book(Path(args.pgn).read_text(encoding="utf-8", errors="replace"), args.fen)
            print(f"Loaded {tree.games} games, {len(tree)} book positions.")
        except (ParseError, EmptyTreeError, OSError) as e:
            print(f"Could not load {args.pgn}: {e}", file=sys.stderr)

    try:
        session.new_game(chess.Board(args.fen).fen() if args.fen else chess.STARTING_FEN)
        print_position(session)
        while True:
            text = await asyncio.to_thread(input, "> ")
            if not await handle_command(session, text):
                break
    except (EOFError, KeyboardInterrupt):
        pass
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
    finally:
        await engine.stop()
        if explorer is not None:
            await explorer.aclose()


def main():
    asyncio.run(main_async())


if __name__ == "__main__":
    main()

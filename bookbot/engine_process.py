"""
UCI engine process adapter.

Runs the engine binary as an asyncio subprocess, writes commands to its stdin
and fans every stdout line out to subscribers. Nothing here waits for a reply;
replies are read by whoever subscribed.
"""

import asyncio
import shutil
import sys
from typing import Callable

import chess

ELO_LIMIT_MIN = 1320  # lowest UCI_Elo Stockfish accepts


def strength_commands(elo: int) -> list[str]:
    """setoption commands that make the engine play at roughly `elo`."""
    if elo >= ELO_LIMIT_MIN:
        return [
            "setoption name Skill Level value 20",
            "setoption name UCI_LimitStrength value true",
            f"setoption name UCI_Elo value {elo}",
        ]
    # Below the UCI_Elo floor fall back to Skill Level 0-5.
    level = max(0, min(5, (elo - 400) // 200))
    return [
        "setoption name UCI_LimitStrength value false",
        f"setoption name Skill Level value {level}",
    ]


def position_command(fen: str) -> str:
    if fen == chess.STARTING_FEN:
        return "position startpos"
    return f"position fen {fen}"


def go_command(depth: int | None = None, movetime_ms: int | None = None) -> str:
    if movetime_ms:
        return f"go movetime {movetime_ms}"
    return f"go depth {depth or 12}"


class EngineProcess:
    def __init__(self, path: str = "stockfish"):
        self.path = path
        self.process: asyncio.subprocess.Process | None = None
        self._listeners: list[Callable[[str], None]] = []
        self._reader: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def on_output_line(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Subscribe to output lines. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    async def start(self) -> None:
        if self.running:
            return
        resolved = shutil.which(self.path) or self.path
        try:
            self.process = await asyncio.create_subprocess_exec(
                resolved,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise RuntimeError(
                f"Engine not found (path='{self.path}'). Install Stockfish or set STOCKFISH_PATH."
            ) from e
        self._reader = asyncio.create_task(self._read_loop())
        self.send("uci")

    async def _read_loop(self) -> None:
        assert self.process is not None and self.process.stdout is not None
        while True:
            raw = await self.process.stdout.readline()
            if not raw:
                break
            line = raw.decode(errors="replace").rstrip("\r\n")
            for listener in list(self._listeners):
                try:
                    listener(line)
                except Exception as e:
                    print(f"Engine output handler failed on {line!r}: {e}", file=sys.stderr)

    def send(self, command: str) -> None:
        if not self.running or self.process.stdin is None:
            print(f"Engine not running, dropped command: {command}", file=sys.stderr)
            return
        self.process.stdin.write(f"{command}\n".encode())

    async def stop(self) -> None:
        if self.process is None:
            return
        if self.running:
            self.send("quit")
            try:
                await asyncio.wait_for(self.process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        self.process = None
        self._reader = None

"""Pytest configuration and shared fakes."""

import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import load_settings


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a Stockfish binary (skipped when none is installed)"
    )


class FakeEngine:
    """Records commands; replays output lines on demand. Answers every `go` in order like UCI."""

    def __init__(self):
        self.sent: list[str] = []
        self.pending = 0
        self._listeners = []

    def on_output_line(self, callback):
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def send(self, command: str) -> None:
        self.sent.append(command)
        if command.startswith("go"):
            self.pending += 1

    def emit(self, line: str) -> None:
        for callback in list(self._listeners):
            callback(line)

    def answer(self, uci: str, info: str | None = None) -> None:
        """Finish every outstanding search; the newest one reports `uci`."""
        while self.pending > 1:
            self.pending -= 1
            self.emit("bestmove 0000")
        if info:
            self.emit(info)
        self.pending = max(0, self.pending - 1)
        self.emit(f"bestmove {uci}")

    @property
    def gos(self) -> list[str]:
        return [c for c in self.sent if c.startswith("go")]


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def settings():
    return load_settings({"BOOKBOT_DEBOUNCE_MS": "0", "BOOKBOT_SEARCH_DEPTH": "8"})


@pytest.fixture
def rng():
    return random.Random(7)

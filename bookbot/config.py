"""
Configuration for bookbot, read from environment variables.

  STOCKFISH_PATH=/usr/bin/stockfish BOOKBOT_ELO=1600 python play.py
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from models import DatabaseFilters

ELO_MIN = 400
ELO_MAX = 2800


def _get(environ: Mapping[str, str], name: str, default: Any, cast: Callable[[str], Any] = str) -> Any:
    value = environ.get(name)
    if value is None or value == "":
        return default
    return cast(value)


def _flag(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    stockfish_path: str
    elo: int
    search_depth: int
    movetime_ms: int | None
    debounce_ms: int
    use_database: bool
    filters: DatabaseFilters
    explorer_url: str
    lichess_token: str | None
    http_timeout_s: float


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    elo = _get(environ, "BOOKBOT_ELO", 1200, int)
    return Settings(
        stockfish_path=_get(environ, "STOCKFISH_PATH", "stockfish"),
        elo=max(ELO_MIN, min(ELO_MAX, elo)),
        search_depth=_get(environ, "BOOKBOT_SEARCH_DEPTH", 12, int),
        movetime_ms=_get(environ, "BOOKBOT_MOVETIME_MS", None, int),
        debounce_ms=_get(environ, "BOOKBOT_DEBOUNCE_MS", 300, int),
        use_database=_get(environ, "BOOKBOT_USE_DATABASE", True, _flag),
        filters=DatabaseFilters(
            max_moves=_get(environ, "BOOKBOT_MAX_MOVES", 12, int),
            min_games=_get(environ, "BOOKBOT_MIN_GAMES", 50, int),
            min_share_pct=_get(environ, "BOOKBOT_MIN_SHARE_PCT", 5.0, float),
            rating_min=_get(environ, "BOOKBOT_RATING_MIN", None, int),
            rating_max=_get(environ, "BOOKBOT_RATING_MAX", None, int),
        ),
        explorer_url=_get(environ, "LICHESS_EXPLORER_URL", "https://explorer.lichess.ovh").rstrip("/"),
        lichess_token=_get(environ, "LICHESS_TOKEN", None),
        http_timeout_s=_get(environ, "BOOKBOT_HTTP_TIMEOUT_S", 10.0, float),
    )


SETTINGS = load_settings()

#!/usr/bin/env python3
"""
Database move source via the Lichess Opening Explorer.

Looks up what masters (or rated Lichess players inside a rating band) played
from a position, filters by game count and share, and returns candidate moves.

Usage:
  python explorer_client.py "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
  LICHESS_TOKEN=xxx python explorer_client.py --rating-min 1600 --rating-max 2000
"""

import argparse
import asyncio
import sys
from pathlib import Path

import chess
import httpx
from pydantic import BaseModel, ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parent))
from config import SETTINGS
from errors import ProviderRateLimited, ProviderUnavailable
from models import CandidateMove, DatabaseFilters
from position_key import position_key

RATING_BUCKETS = (0, 1000, 1200, 1400, 1600, 1800, 2000, 2200, 2500)


class ExplorerMove(BaseModel):
    uci: str
    san: str
    white: int = 0
    draws: int = 0
    black: int = 0

    @property
    def total(self) -> int:
        return self.white + self.draws + self.black


class ExplorerResponse(BaseModel):
    white: int = 0
    draws: int = 0
    black: int = 0
    moves: list[ExplorerMove] = []

    @property
    def total(self) -> int:
        return self.white + self.draws + self.black


def rating_buckets(rating_min: int | None, rating_max: int | None) -> list[int]:
    """Explorer rating groups covering [rating_min, rating_max]."""
    low = 0
    if rating_min is not None:
        low = max(b for b in RATING_BUCKETS if b <= max(rating_min, 0))
    return [b for b in RATING_BUCKETS if b >= low and (rating_max is None or b <= rating_max)]


def explorer_params(fen: str, filters: DatabaseFilters) -> tuple[str, dict]:
    """Endpoint path and query params for a lookup."""
    params = {"fen": fen, "moves": filters.max_moves, "topGames": 0}
    if not filters.has_rating_band:
        return "/masters", params
    params["recentGames"] = 0
    params["ratings"] = ",".join(str(b) for b in rating_buckets(filters.rating_min, filters.rating_max))
    return "/lichess", params


async def explorer_moves(
    fen: str,
    session: httpx.AsyncClient,
    filters: DatabaseFilters,
    base_url: str = SETTINGS.explorer_url,
    token: str | None = None,
) -> ExplorerResponse:
    """Fetch explorer statistics for a position."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    path, params = explorer_params(fen, filters)
    try:
        resp = await session.get(f"{base_url}{path}", params=params, headers=headers or None)
    except httpx.HTTPError as e:
        raise ProviderUnavailable(f"Explorer request failed: {e}") from e
    if resp.status_code == 429:
        raise ProviderRateLimited("Rate limited (429)")
    if resp.status_code >= 400:
        raise ProviderUnavailable(f"Explorer answered HTTP {resp.status_code}")
    try:
        return ExplorerResponse.model_validate(resp.json())
    except (ValueError, ValidationError) as e:
        raise ProviderUnavailable(f"Unreadable explorer response: {e}") from e


def filter_moves(data: ExplorerResponse, filters: DatabaseFilters) -> list[ExplorerMove]:
    """Keep moves with enough games and a large enough share of the position's games."""
    # The move list is capped, so only the position totals cover every game.
    total = data.total or sum(m.total for m in data.moves)
    kept = []
    for m in data.moves:
        if m.total < filters.min_games:
            continue
        share = m.total / total * 100 if total else 0.0
        if share < filters.min_share_pct:
            continue
        kept.append(m)
    return kept[: filters.max_moves]


def to_candidate(board: chess.Board, move: ExplorerMove) -> CandidateMove | None:
    """Convert an explorer move (UCI, castling may be king-takes-rook) into a CandidateMove."""
    try:
        parsed = board.parse_uci(move.uci)
    except ValueError:
        try:
            parsed = board.parse_san(move.san)
        except ValueError:
            return None
    return CandidateMove.from_move(board, parsed, game_count=move.total)


class ExplorerClient:
    """Explorer lookups with an in-process cache keyed by position key and filters."""

    def __init__(
        self,
        session: httpx.AsyncClient | None = None,
        base_url: str = SETTINGS.explorer_url,
        token: str | None = SETTINGS.lichess_token,
        timeout: float = SETTINGS.http_timeout_s,
    ):
        self._owns_session = session is None
        self.session = session or httpx.AsyncClient(timeout=timeout)
        self.base_url = base_url
        self.token = token
        self._cache: dict[tuple[str, DatabaseFilters], list[CandidateMove]] = {}

    async def query(self, fen: str, filters: DatabaseFilters) -> list[CandidateMove]:
        """
        Candidate moves passing `filters`, possibly empty.

        Raises ProviderRateLimited / ProviderUnavailable; callers treat both like
        an empty result.
        """
        cache_key = (position_key(fen), filters)
        if cache_key in self._cache:
            return self._cache[cache_key]

        data = await explorer_moves(fen, self.session, filters, self.base_url, self.token)
        board = chess.Board(fen)
        candidates = []
        for move in filter_moves(data, filters):
            candidate = to_candidate(board, move)
            if candidate is not None:
                candidates.append(candidate)
        self._cache[cache_key] = candidates
        return candidates

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        if self._owns_session:
            await self.session.aclose()


async def main_async():
    parser = argparse.ArgumentParser()
    parser.add_argument("fen", nargs="?", default=chess.STARTING_FEN)
    parser.add_argument("--min-games", type=int, default=SETTINGS.filters.min_games)
    parser.add_argument("--min-share", type=float, default=SETTINGS.filters.min_share_pct)
    parser.add_argument("--max-moves", type=int, default=SETTINGS.filters.max_moves)
    parser.add_argument("--rating-min", type=int, default=SETTINGS.filters.rating_min)
    parser.add_argument("--rating-max", type=int, default=SETTINGS.filters.rating_max)
    args = parser.parse_args()

    filters = DatabaseFilters(
        max_moves=args.max_moves,
        min_games=args.min_games,
        min_share_pct=args.min_share,
        rating_min=args.rating_min,
        rating_max=args.rating_max,
    )
    client = ExplorerClient()
    try:
        moves = await client.query(args.fen, filters)
    except (ProviderRateLimited, ProviderUnavailable) as e:
        print(f"Explorer error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await client.aclose()

    for m in moves:
        print(f"  {m.san:8s} {m.uci:6s} {m.game_count:8d} games")


def main():
    asyncio.run(main_async())


if __name__ == "__main__":
    main()

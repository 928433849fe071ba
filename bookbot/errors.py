"""Error taxonomy for the book-aware opponent."""


class BookbotError(Exception):
    """Base class for errors raised by bookbot."""


class ParseError(BookbotError):
    """Notation document holds no recoverable moves. Fatal to that load only."""


class EmptyTreeError(BookbotError):
    """Document parsed cleanly but produced no positions."""


class EmptyResultError(BookbotError):
    """A move source had nothing to offer for the position."""


class ProviderRateLimited(BookbotError):
    """Opening explorer answered 429."""


class ProviderUnavailable(BookbotError):
    """Opening explorer could not be reached or answered with an error."""


class IllegalMoveAttempted(BookbotError):
    """The board rejected a move a source proposed."""

    def __init__(self, move: str, fen: str):
        super().__init__(f"Illegal move {move} in {fen}")
        self.move = move
        self.fen = fen

from __future__ import annotations


class MatchError(Exception):
    """Base class for matching errors surfaced to the calling application."""

    error_code: str = "MATCH_ERROR"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(MatchError):
    """Blank name, blank search term or unparsable query date.

    Callers should re-prompt; this never means "no matches".
    """

    error_code = "INVALID_INPUT"


class MatchBackendUnavailable(MatchError):
    """The candidate source failed or timed out.

    A duplicate check that ends in this error is inconclusive, not clean.
    """

    error_code = "BACKEND_UNAVAILABLE"

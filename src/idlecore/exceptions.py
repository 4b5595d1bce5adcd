"""Typed economy errors.

Every error carries an HTTP-like status code and a stable machine-readable
reason string that clients use for messaging. They pass through the
transaction scope unchanged.
"""

from __future__ import annotations


class EconomyError(Exception):
    """Base class for all errors raised by the economy engines."""

    status_code: int = 500

    def __init__(self, reason: str, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason
        self.message = message or reason
        if status_code is not None:
            self.status_code = status_code


class ValidationError(EconomyError):
    """Malformed or out-of-range input, rejected before any side effect."""

    status_code = 400


class NotFoundError(EconomyError):
    """A referenced record or definition does not exist."""

    status_code = 404


class StateConflictError(EconomyError):
    """The request conflicts with the player's current state (e.g. prestige not ready)."""

    status_code = 400


class RateLimitError(EconomyError):
    """A rate limit or cooldown was hit."""

    status_code = 429

    def __init__(self, reason: str, message: str | None = None, retry_after: int | None = None) -> None:
        super().__init__(reason, message)
        self.retry_after = retry_after

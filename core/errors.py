"""Typed errors raised by the tracker core.

Every error here is recoverable: the engine reports it on the status line
and keeps running.
"""


class TrackerError(Exception):
    """Base class for tracker errors."""


class CommandSyntaxError(TrackerError):
    """Command text could not be parsed. State is left untouched."""


class ValidationError(TrackerError):
    """A mutation would break a state invariant and was rejected wholesale."""


class FetchError(TrackerError):
    """The price source failed as a whole (network, HTTP or API status)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(TrackerError):
    """Reading or writing the config snapshot failed."""

"""Errors shared across the framework."""

from __future__ import annotations

_NOT_FOUND_MESSAGE = "barry: not found"


class NotFoundError(Exception):
    """Raised by server logic when the requested page does not exist."""

    def __init__(self, message: str = _NOT_FOUND_MESSAGE) -> None:
        super().__init__(message)


def is_not_found_error(err: BaseException | None) -> bool:
    """Return True if *err* signals a missing page."""
    return err is not None and str(err) == _NOT_FOUND_MESSAGE
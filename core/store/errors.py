"""
RBO Core Store — Errors
=========================
Failures of the underlying key-value storage primitive.
"""

from typing import Optional


class StoreError(Exception):
    """Base error for key-value store operations."""
    pass


class StoreUnavailableError(StoreError):
    """The store could not be read or written. Ends the current pass."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause is not None else "."
        super().__init__(f"Store unavailable while accessing '{key}'{detail}")

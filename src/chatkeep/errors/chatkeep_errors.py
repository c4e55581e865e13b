"""ChatKeepError: base exception class for all chatkeep errors."""

from __future__ import annotations


class ChatKeepError(Exception):
    """Base error for all key registry and session store operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "chatkeep-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

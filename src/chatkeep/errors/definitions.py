"""Typed error kinds raised by the key registry and the session store."""

from __future__ import annotations

from chatkeep.errors.chatkeep_errors import ChatKeepError

# -- Key registry ----------------------------------------------------------


class DuplicateKey(ChatKeepError):
    """A key with the same digest or prefix is already registered."""

    def __init__(self, message: str = "api key already registered") -> None:
        super().__init__(message, code="duplicate-key")


class Rejected(ChatKeepError):
    """Key verification failed.

    The message is fixed: an unknown key and a wrong key are indistinguishable.
    """

    def __init__(self) -> None:
        super().__init__("api key rejected", code="rejected")


# -- Session store ---------------------------------------------------------


class UnknownKey(ChatKeepError):
    """Session creation referenced a prefix that is not registered."""

    def __init__(self, message: str = "api key prefix is not registered") -> None:
        super().__init__(message, code="unknown-key")


class KeyMismatch(ChatKeepError):
    """A session was reattached under a different prefix than its own."""

    def __init__(self, chat_id: int) -> None:
        super().__init__(
            f"chat {chat_id} is bound to a different api key", code="key-mismatch"
        )
        self.chat_id = chat_id


class NotFound(ChatKeepError):
    """The referenced chat session or key does not exist."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message, code="not-found")


class HistoryCorrupted(ChatKeepError):
    """A stored history document could not be decoded."""

    def __init__(self, message: str = "stored history is corrupted") -> None:
        super().__init__(message, code="history-corrupted")


# -- Storage ---------------------------------------------------------------


class StorageFailure(ChatKeepError):
    """The storage medium was unavailable or a write failed."""

    def __init__(self, message: str = "storage operation failed") -> None:
        super().__init__(message, code="storage-failure")

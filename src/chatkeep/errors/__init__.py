"""Error types for chatkeep."""

from chatkeep.errors.chatkeep_errors import ChatKeepError
from chatkeep.errors.definitions import (
    DuplicateKey,
    HistoryCorrupted,
    KeyMismatch,
    NotFound,
    Rejected,
    StorageFailure,
    UnknownKey,
)

__all__ = [
    "ChatKeepError",
    "DuplicateKey",
    "HistoryCorrupted",
    "KeyMismatch",
    "NotFound",
    "Rejected",
    "StorageFailure",
    "UnknownKey",
]

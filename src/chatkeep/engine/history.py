"""Conversation history: typed, versioned list with a JSON storage codec.

Entries are opaque JSON values supplied by the chat service; this module
only knows how to order them and how to move them across the storage
boundary.

Stored documents come in two shapes:

- version 0: a bare JSON array (``"[]"``), as written by earlier deployments;
- version 1: ``{"version": 1, "entries": [...]}``.

Decoding accepts both; encoding always writes the current version.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from chatkeep.errors.definitions import HistoryCorrupted

HISTORY_VERSION = 1


@dataclass
class History:
    """Append-ordered sequence of exchange records."""

    entries: list[Any] = field(default_factory=list)
    version: int = HISTORY_VERSION

    def append(self, entry: Any) -> None:
        self.entries.append(entry)

    def drop_oldest(self, count: int = 1) -> int:
        """Remove up to ``count`` entries from the front; return how many went."""
        if count < 0:
            msg = "count must be non-negative"
            raise ValueError(msg)
        removed = min(count, len(self.entries))
        del self.entries[:removed]
        return removed

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


def encode_history(history: History) -> str:
    """Serialize a history for the ``users.history`` column."""
    try:
        return json.dumps(
            {"version": HISTORY_VERSION, "entries": history.entries},
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as exc:
        msg = f"history entry is not JSON serializable: {exc}"
        raise ValueError(msg) from exc


def decode_history(document: str) -> History:
    """Parse a stored history document.

    Raises:
        HistoryCorrupted: If the document is not valid JSON or has an
            unexpected shape or version.
    """
    try:
        data = json.loads(document)
    except json.JSONDecodeError as exc:
        raise HistoryCorrupted(f"history is not valid JSON: {exc.msg}") from exc

    if isinstance(data, list):
        return History(entries=data, version=0)

    if not isinstance(data, dict):
        raise HistoryCorrupted("history document must be an array or an object")

    version = data.get("version")
    if version != HISTORY_VERSION:
        raise HistoryCorrupted(f"unsupported history version: {version!r}")
    entries = data.get("entries")
    if not isinstance(entries, list):
        raise HistoryCorrupted("history entries must be an array")
    return History(entries=entries)


EMPTY_HISTORY_DOCUMENT = encode_history(History())

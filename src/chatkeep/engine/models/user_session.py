"""UserSession model: per-chat prompt and conversation history."""

from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, ForeignKey, Integer, LargeBinary, Text
from sqlalchemy.orm import Mapped, mapped_column

from chatkeep.engine.history import History, decode_history
from chatkeep.engine.models.base import Base
from chatkeep.utils.crypto import PREFIX_LENGTH


class UserSession(Base):
    """Mutable state of one chat, authorized by exactly one API key.

    The ``history`` column holds a serialized document; read it through
    :attr:`history` (entries) or :meth:`load_history` (typed).
    """

    __tablename__ = "users"

    chat_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=False,
        comment="Chat identifier supplied by the transport",
    )
    current_prompt: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    history_document: Mapped[str] = mapped_column(
        "history",
        Text,
        nullable=False,
        comment="Serialized history document",
    )
    api_key_prefix: Mapped[bytes] = mapped_column(
        LargeBinary(PREFIX_LENGTH),
        ForeignKey("api_keys.key_prefix", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def load_history(self) -> History:
        """Decode the stored history document."""
        return decode_history(self.history_document)

    @property
    def history(self) -> list[Any]:
        """History entries in append order."""
        return self.load_history().entries

    def __repr__(self) -> str:
        return f"<UserSession chat_id={self.chat_id} prefix={self.api_key_prefix.hex()}>"

"""ApiKeyRecord model: digests of issued API keys."""

from __future__ import annotations

from sqlalchemy import LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from chatkeep.engine.models.base import Base
from chatkeep.utils.crypto import DIGEST_SIZE, PREFIX_LENGTH


class ApiKeyRecord(Base):
    """A valid API key, represented only by its digest and public prefix.

    ``key_hash`` is used solely for equality verification. ``key_prefix`` is
    the non-secret handle every session references.
    """

    __tablename__ = "api_keys"

    key_hash: Mapped[bytes] = mapped_column(
        LargeBinary(DIGEST_SIZE),
        unique=True,
        nullable=False,
        comment="Digest of the secret",
    )
    key_prefix: Mapped[bytes] = mapped_column(
        LargeBinary(PREFIX_LENGTH),
        primary_key=True,
        comment="First bytes of the secret, used as the public handle",
    )

    def __repr__(self) -> str:
        return f"<ApiKeyRecord prefix={self.key_prefix.hex()}>"

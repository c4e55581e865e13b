"""api_keys and users tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "api_keys",
        sa.Column("key_hash", sa.LargeBinary(32), nullable=False, unique=True),
        sa.Column("key_prefix", sa.LargeBinary(10), nullable=False, primary_key=True),
    )
    op.create_table(
        "users",
        sa.Column(
            "chat_id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            nullable=False,
            primary_key=True,
            autoincrement=False,
        ),
        sa.Column("current_prompt", sa.Text(), nullable=True),
        sa.Column("history", sa.Text(), nullable=False),
        sa.Column(
            "api_key_prefix",
            sa.LargeBinary(10),
            sa.ForeignKey("api_keys.key_prefix", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index("ix_users_api_key_prefix", "users", ["api_key_prefix"])


def downgrade() -> None:
    op.drop_index("ix_users_api_key_prefix", table_name="users")
    op.drop_table("users")
    op.drop_table("api_keys")

"""Create the reconciliation_state table."""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_reconciliation_state"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "reconciliation_state",
        sa.Column("tx_hash", sa.String(64), nullable=False),
        sa.Column("output_index", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tx_ref", sa.String(64), nullable=True),
        sa.Column("confirmation_polls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejection", sa.String(32), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("tx_hash", "output_index"),
    )
    op.create_index("ix_reconciliation_state_kind", "reconciliation_state", ["kind"])


def downgrade() -> None:
    op.drop_index("ix_reconciliation_state_kind", table_name="reconciliation_state")
    op.drop_table("reconciliation_state")

"""Create save_slots table."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_save_slots_table"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "save_slots",
        sa.Column("key", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("blob", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("save_slots")

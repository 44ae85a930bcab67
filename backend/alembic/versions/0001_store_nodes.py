"""store_nodes

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the single table backing SqlStore: one row per leaf of the
path-scoped tree (events, waiting lists, notifications, users).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "store_nodes",
        sa.Column("path", sa.String(512), primary_key=True),
        sa.Column("value", sa.JSON, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("store_nodes")

"""create_uploads_table

Revision ID: 3f1c9a7e2b40
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7e2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create uploads table (pinned documents and their anchoring transactions)."""
    op.create_table(
        "uploads",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("cid", sa.String(length=255), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_type", sa.String(length=100), nullable=True),
        sa.Column("wallet_address", sa.String(length=42), nullable=True),
        sa.Column("transaction_hash", sa.String(length=66), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    # Unique index enforces one record per CID atomically
    op.create_index("ix_uploads_cid", "uploads", ["cid"], unique=True)
    op.create_index("ix_uploads_wallet_address", "uploads", ["wallet_address"])
    op.create_index("ix_uploads_transaction_hash", "uploads", ["transaction_hash"])
    op.create_index(
        "ix_uploads_wallet_address_created_at", "uploads", ["wallet_address", "created_at"]
    )


def downgrade() -> None:
    """Drop uploads table."""
    op.drop_index("ix_uploads_wallet_address_created_at", table_name="uploads")
    op.drop_index("ix_uploads_transaction_hash", table_name="uploads")
    op.drop_index("ix_uploads_wallet_address", table_name="uploads")
    op.drop_index("ix_uploads_cid", table_name="uploads")
    op.drop_table("uploads")

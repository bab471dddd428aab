"""Create the kv_store table holding every catalog record.

Revision ID: 001_create_kv_store
Revises:
"""

from alembic import op
import sqlalchemy as sa

from mvdb.config import get_settings

revision = "001_create_kv_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        get_settings().kv_table_name,
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("value", sa.JSON, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table(get_settings().kv_table_name)

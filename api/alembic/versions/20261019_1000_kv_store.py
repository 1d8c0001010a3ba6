"""create kv_store table

Revision ID: kv_store_001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'kv_store_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'kv_store',
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('key')
    )
    # Prefix scans use LIKE 'prefix%'
    op.create_index(
        'idx_kv_store_key_pattern', 'kv_store', ['key'],
        postgresql_ops={'key': 'varchar_pattern_ops'}
    )


def downgrade() -> None:
    op.drop_index('idx_kv_store_key_pattern', table_name='kv_store')
    op.drop_table('kv_store')

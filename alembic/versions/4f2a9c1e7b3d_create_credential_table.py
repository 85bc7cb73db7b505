"""create_credential_table

Revision ID: 4f2a9c1e7b3d
Revises:
Create Date: 2026-10-19 10:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f2a9c1e7b3d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the credential table."""
    op.create_table(
        'credential',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=40), nullable=False),
        sa.Column('credential_type', sa.String(length=50), nullable=False),
        sa.Column('credential_data', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
        sa.Column('created_by', sa.String(length=40), nullable=True),
        sa.Column('updated_by', sa.String(length=40), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_credential_user_id', 'credential', ['user_id'])
    op.create_index(
        'ix_credential_lookup', 'credential', ['user_id', 'credential_type', 'status']
    )
    # One ACTIVE row per user and type; inactive rows are kept as history
    op.create_index(
        'ux_credential_active_user_type',
        'credential',
        ['user_id', 'credential_type'],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )


def downgrade() -> None:
    """Drop the credential table."""
    op.drop_index('ux_credential_active_user_type', table_name='credential')
    op.drop_index('ix_credential_lookup', table_name='credential')
    op.drop_index('ix_credential_user_id', table_name='credential')
    op.drop_table('credential')

# alembic/versions/001_tracked_account.py

"""Tracked account table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('tracked_account',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('pubkey', sa.String(length=44), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pubkey')
    )
    op.create_index(op.f('ix_tracked_account_pubkey'), 'tracked_account', ['pubkey'], unique=True)


def downgrade():
    op.drop_index(op.f('ix_tracked_account_pubkey'), table_name='tracked_account')
    op.drop_table('tracked_account')

"""add revoked_tokens for shared logout

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:02:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = '20261019_0002'
down_revision = '20261019_0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if 'revoked_tokens' not in tables:
        op.create_table(
            'revoked_tokens',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('token_hash', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('revoked_at', sa.DateTime(), nullable=False),
        )

    indexes = {idx['name'] for idx in inspector.get_indexes('revoked_tokens')}
    if 'ix_revoked_tokens_id' not in indexes:
        op.create_index('ix_revoked_tokens_id', 'revoked_tokens', ['id'])
    if 'ix_revoked_tokens_token_hash' not in indexes:
        op.create_index('ix_revoked_tokens_token_hash', 'revoked_tokens', ['token_hash'], unique=True)
    if 'ix_revoked_tokens_user_id' not in indexes:
        op.create_index('ix_revoked_tokens_user_id', 'revoked_tokens', ['user_id'])
    if 'ix_revoked_tokens_expires_at' not in indexes:
        op.create_index('ix_revoked_tokens_expires_at', 'revoked_tokens', ['expires_at'])


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())
    if 'revoked_tokens' not in tables:
        return

    indexes = {idx['name'] for idx in inspector.get_indexes('revoked_tokens')}
    for name in (
        'ix_revoked_tokens_expires_at',
        'ix_revoked_tokens_user_id',
        'ix_revoked_tokens_token_hash',
        'ix_revoked_tokens_id',
    ):
        if name in indexes:
            op.drop_index(name, table_name='revoked_tokens')
    op.drop_table('revoked_tokens')

"""Add rss_sync_logs table

Revision ID: 002
Revises: 001
Create Date: 2024-12-06

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'rss_sync_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('podcast_id', sa.String(36), sa.ForeignKey('podcasts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('episodes_added', sa.Integer, nullable=False, server_default='0'),
        sa.Column('episodes_updated', sa.Integer, nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_rss_sync_logs_podcast_id', 'rss_sync_logs', ['podcast_id'])
    op.create_index('ix_rss_sync_logs_created_at', 'rss_sync_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_rss_sync_logs_created_at', table_name='rss_sync_logs')
    op.drop_index('ix_rss_sync_logs_podcast_id', table_name='rss_sync_logs')
    op.drop_table('rss_sync_logs')

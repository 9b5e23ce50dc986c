"""Initial schema for podcasts and episodes

Revision ID: 001
Revises:
Create Date: 2024-12-05

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create podcasts table
    op.create_table(
        'podcasts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(36), nullable=True),
        sa.Column('rss_url', sa.String(2048), unique=True, nullable=True),
        sa.Column('website_url', sa.String(2048), nullable=True),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('author', sa.String(512), nullable=True),
        sa.Column('language', sa.String(32), nullable=True),
        sa.Column('category', sa.String(256), nullable=True),
        sa.Column('subcategory', sa.String(256), nullable=True),
        sa.Column('explicit', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('cover_image_url', sa.String(2048), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.Column('last_synced_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_podcasts_status', 'podcasts', ['status'])

    # Create episodes table
    op.create_table(
        'episodes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('podcast_id', sa.String(36), sa.ForeignKey('podcasts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guid', sa.String(2048), nullable=False),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('audio_url', sa.String(2048), nullable=False),
        sa.Column('duration', sa.Integer, nullable=False, server_default='0'),
        sa.Column('cover_image_url', sa.String(2048), nullable=True),
        sa.Column('publication_date', sa.DateTime, nullable=True),
        sa.Column('episode_number', sa.Integer, nullable=True),
        sa.Column('season_number', sa.Integer, nullable=True),
        sa.Column('transcript', sa.Text, nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('podcast_id', 'guid', name='uq_episode_podcast_guid'),
    )
    op.create_index('ix_episodes_podcast_id', 'episodes', ['podcast_id'])
    op.create_index('ix_episodes_publication_date', 'episodes', ['publication_date'])


def downgrade() -> None:
    op.drop_table('episodes')
    op.drop_table('podcasts')

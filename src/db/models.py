"""SQLAlchemy ORM models for podcasts, episodes and feed sync history."""

import uuid
from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Podcast(Base):
    """Podcast model.

    Stores podcast-level metadata from the RSS feed plus ownership and
    lifecycle data. Feed sync only touches the feed-sourced metadata
    columns and ``last_synced_at``.
    """

    __tablename__ = "podcasts"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Podcaster account that owns the show, never changed by sync
    owner_id: Mapped[Optional[str]] = mapped_column(String(36))

    # Feed location
    rss_url: Mapped[Optional[str]] = mapped_column(String(2048), unique=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(2048))

    # Metadata from RSS feed
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    author: Mapped[Optional[str]] = mapped_column(String(512))
    language: Mapped[Optional[str]] = mapped_column(String(32))
    category: Mapped[Optional[str]] = mapped_column(String(256))
    subcategory: Mapped[Optional[str]] = mapped_column(String(256))
    explicit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(2048))

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active, pending, rejected, archived

    # Timestamps; updated_at tracks metadata edits only, so a sync that
    # changes nothing but last_synced_at leaves it alone
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    episodes: Mapped[List["Episode"]] = relationship(
        "Episode", back_populates="podcast", cascade="all, delete-orphan"
    )
    sync_logs: Mapped[List["SyncLog"]] = relationship(
        "SyncLog", back_populates="podcast", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_podcasts_status", "status"),)

    def __repr__(self) -> str:
        return f"<Podcast(id={self.id}, title={self.title!r})>"


class Episode(Base):
    """Episode model.

    Created the first time its GUID appears in the podcast's feed and
    updated in place when the GUID reappears with different values.
    """

    __tablename__ = "episodes"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    podcast_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("podcasts.id", ondelete="CASCADE"), nullable=False
    )

    # Core identifiers - GUID is unique per podcast
    guid: Mapped[str] = mapped_column(String(2048), nullable=False)

    # Metadata from RSS feed
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    audio_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # seconds
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(2048))
    publication_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    episode_number: Mapped[Optional[int]] = mapped_column(Integer)
    season_number: Mapped[Optional[int]] = mapped_column(Integer)

    transcript: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active, archived

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    podcast: Mapped["Podcast"] = relationship("Podcast", back_populates="episodes")

    __table_args__ = (
        UniqueConstraint("podcast_id", "guid", name="uq_episode_podcast_guid"),
        Index("ix_episodes_podcast_id", "podcast_id"),
        Index("ix_episodes_publication_date", "publication_date"),
    )

    def __repr__(self) -> str:
        return f"<Episode(id={self.id}, title={self.title!r})>"


class SyncLog(Base):
    """Append-only record of one feed sync attempt."""

    __tablename__ = "rss_sync_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    podcast_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("podcasts.id", ondelete="CASCADE"), nullable=False
    )

    status: Mapped[str] = mapped_column(String(16), nullable=False)  # success, failure
    episodes_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    episodes_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    podcast: Mapped["Podcast"] = relationship("Podcast", back_populates="sync_logs")

    __table_args__ = (
        Index("ix_rss_sync_logs_podcast_id", "podcast_id"),
        Index("ix_rss_sync_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SyncLog(podcast_id={self.podcast_id}, status={self.status!r})>"

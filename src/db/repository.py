"""Repository pattern implementation for podcast data persistence.

Provides an abstract interface and SQLAlchemy implementation for database operations.
Supports both SQLite (local development) and PostgreSQL (production).

Two families of operations are exposed:

- Self-contained operations (``create_podcast``, ``get_podcast``, ...) that
  open and commit their own session.
- ``*_tx`` operations that run inside a session obtained from
  ``transaction()``, so that a feed sync can apply all of its changes
  atomically.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .errors import DuplicateFeedURLError
from .models import Base, Episode, Podcast, SyncLog

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class PodcastRepositoryInterface(ABC):
    """Abstract interface for podcast data persistence.

    Implementations must support both SQLite and PostgreSQL backends.
    """

    # --- Podcast Operations ---

    @abstractmethod
    def create_podcast(self, title: str, rss_url: Optional[str] = None, **kwargs) -> Podcast:
        """
        Create and persist a new podcast.

        Parameters:
            title (str): Display title for the podcast.
            rss_url (Optional[str]): RSS feed URL; must not belong to another podcast.
            **kwargs: Additional Podcast attributes (owner_id, author, status, ...).

        Returns:
            Podcast: The persisted Podcast instance.

        Raises:
            DuplicateFeedURLError: If ``rss_url`` is already registered.
        """
        pass

    @abstractmethod
    def get_podcast(self, podcast_id: str) -> Optional[Podcast]:
        """
        Retrieve a podcast by its identifier.

        Returns:
            Podcast if a podcast with the given ID exists, `None` otherwise.
        """
        pass

    @abstractmethod
    def get_podcast_by_rss_url(self, rss_url: str) -> Optional[Podcast]:
        """Retrieve the podcast registered with the given feed URL, if any."""
        pass

    @abstractmethod
    def list_active_podcasts(self) -> List[Podcast]:
        """
        Return podcasts eligible for batch sync.

        Returns:
            List[Podcast]: Podcasts with status "active" and a non-empty rss_url, ordered by title.
        """
        pass

    @abstractmethod
    def update_podcast(self, podcast_id: str, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Returns:
            Optional[Podcast]: The updated Podcast, or `None` if no podcast with `podcast_id` exists.
        """
        pass

    # --- Episode Operations ---

    @abstractmethod
    def create_episode(
        self,
        podcast_id: str,
        guid: str,
        title: str,
        audio_url: str,
        **kwargs,
    ) -> Episode:
        """
        Create and persist a new Episode for the given podcast.

        Parameters:
            podcast_id (str): ID of the podcast to associate the episode with.
            guid (str): Feed-supplied identifier, unique within the podcast.
            title (str): Episode title.
            audio_url (str): URL of the episode audio file.
            **kwargs: Optional episode attributes such as `publication_date` or `duration`.

        Returns:
            Episode: The newly created and persisted Episode instance.
        """
        pass

    @abstractmethod
    def list_episodes(
        self,
        podcast_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Episode]:
        """
        List episodes, newest publication first.

        Parameters:
            podcast_id (Optional[str]): If provided, only episodes of this podcast are returned.
            limit (Optional[int]): Maximum number of episodes to return.
            offset (int): Number of episodes to skip.
        """
        pass

    # --- Transactional Operations ---

    @abstractmethod
    def transaction(self) -> Iterator[Session]:
        """
        Context manager yielding a session whose work commits as one unit.

        The session commits when the block exits normally and rolls back
        when it raises; the exception propagates.
        """
        pass

    @abstractmethod
    def get_podcast_tx(self, session: Session, podcast_id: str) -> Optional[Podcast]:
        """Load a podcast inside an open transaction."""
        pass

    @abstractmethod
    def update_podcast_tx(self, session: Session, podcast: Podcast, **kwargs) -> Podcast:
        """Apply attribute changes to a podcast inside an open transaction."""
        pass

    @abstractmethod
    def get_all_episodes_by_podcast_id_tx(
        self, session: Session, podcast_id: str
    ) -> List[Episode]:
        """Load every stored episode of a podcast inside an open transaction."""
        pass

    @abstractmethod
    def create_episode_tx(self, session: Session, podcast_id: str, **kwargs) -> Episode:
        """Insert an episode inside an open transaction and flush it."""
        pass

    @abstractmethod
    def update_episode_tx(self, session: Session, episode: Episode, **kwargs) -> Episode:
        """Apply attribute changes to an episode inside an open transaction and flush."""
        pass

    # --- Sync Log Operations ---

    @abstractmethod
    def create_sync_log(
        self,
        podcast_id: str,
        status: str,
        episodes_added: int = 0,
        episodes_updated: int = 0,
        error_message: Optional[str] = None,
    ) -> SyncLog:
        """
        Append a sync log entry in its own session.

        Parameters:
            podcast_id (str): Podcast the attempt was for.
            status (str): "success" or "failure".
            episodes_added (int): Episodes inserted by the attempt.
            episodes_updated (int): Episodes updated by the attempt.
            error_message (Optional[str]): Error text for failed attempts.
        """
        pass

    @abstractmethod
    def get_latest_sync_log(self, podcast_id: str) -> Optional[SyncLog]:
        """Return the most recent sync log entry for a podcast, if any."""
        pass

    @abstractmethod
    def get_sync_logs(
        self, podcast_id: str, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SyncLog], int]:
        """
        Return one page of a podcast's sync history, newest first.

        Returns:
            Tuple of (entries on the page, total number of entries).
        """
        pass

    # --- Connection Management ---

    @abstractmethod
    def close(self) -> None:
        """Close database connections."""
        pass


class SQLAlchemyPodcastRepository(PodcastRepositoryInterface):
    """SQLAlchemy-based implementation of the podcast repository.

    Supports SQLite for local development and PostgreSQL for production.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        create_tables: bool = False,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            create_tables (bool): Create missing tables from the ORM metadata.
                Deployed databases are managed by Alembic instead.
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_tables:
            Base.metadata.create_all(self.engine)

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def _get_session(self) -> Session:
        return self.SessionLocal()

    # --- Podcast Operations ---

    def create_podcast(self, title: str, rss_url: Optional[str] = None, **kwargs) -> Podcast:
        with self._get_session() as session:
            if rss_url:
                existing = session.scalar(select(Podcast).where(Podcast.rss_url == rss_url))
                if existing:
                    raise DuplicateFeedURLError(rss_url, existing.id)

            podcast = Podcast(title=title, rss_url=rss_url, **kwargs)
            session.add(podcast)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                # Lost a race with a concurrent insert of the same URL
                existing = session.scalar(select(Podcast).where(Podcast.rss_url == rss_url))
                if existing:
                    raise DuplicateFeedURLError(rss_url, existing.id) from e
                raise
            session.refresh(podcast)
            logger.info(f"Created podcast: {title} ({podcast.id})")
            return podcast

    def get_podcast(self, podcast_id: str) -> Optional[Podcast]:
        with self._get_session() as session:
            return session.get(Podcast, podcast_id)

    def get_podcast_by_rss_url(self, rss_url: str) -> Optional[Podcast]:
        with self._get_session() as session:
            stmt = select(Podcast).where(Podcast.rss_url == rss_url)
            return session.scalar(stmt)

    def list_active_podcasts(self) -> List[Podcast]:
        with self._get_session() as session:
            stmt = (
                select(Podcast)
                .where(Podcast.status == "active")
                .where(Podcast.rss_url.is_not(None))
                .where(Podcast.rss_url != "")
                .order_by(Podcast.title)
            )
            return list(session.scalars(stmt).all())

    def update_podcast(self, podcast_id: str, **kwargs) -> Optional[Podcast]:
        """
        Update attributes of an existing podcast.

        Only attributes that exist on the Podcast model are set from `kwargs`.
        """
        with self._get_session() as session:
            podcast = session.get(Podcast, podcast_id)
            if podcast:
                for key, value in kwargs.items():
                    if hasattr(podcast, key):
                        setattr(podcast, key, value)
                podcast.updated_at = _utcnow()
                session.commit()
                session.refresh(podcast)
                logger.debug(f"Updated podcast {podcast_id}: {list(kwargs.keys())}")
            return podcast

    # --- Episode Operations ---

    def create_episode(
        self,
        podcast_id: str,
        guid: str,
        title: str,
        audio_url: str,
        **kwargs,
    ) -> Episode:
        with self._get_session() as session:
            episode = Episode(
                podcast_id=podcast_id,
                guid=guid,
                title=title,
                audio_url=audio_url,
                **kwargs,
            )
            session.add(episode)
            session.commit()
            session.refresh(episode)
            logger.debug(f"Created episode: {title} ({episode.id})")
            return episode

    def list_episodes(
        self,
        podcast_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Episode]:
        with self._get_session() as session:
            stmt = select(Episode)

            if podcast_id:
                stmt = stmt.where(Episode.podcast_id == podcast_id)

            stmt = stmt.order_by(Episode.publication_date.desc())
            stmt = stmt.offset(offset)
            if limit:
                stmt = stmt.limit(limit)

            return list(session.scalars(stmt).all())

    # --- Transactional Operations ---

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        session = self._get_session()
        try:
            with session.begin():
                yield session
        finally:
            session.close()

    def get_podcast_tx(self, session: Session, podcast_id: str) -> Optional[Podcast]:
        return session.get(Podcast, podcast_id)

    def update_podcast_tx(self, session: Session, podcast: Podcast, **kwargs) -> Podcast:
        for key, value in kwargs.items():
            if hasattr(podcast, key):
                setattr(podcast, key, value)
        if set(kwargs) - {"last_synced_at"}:
            podcast.updated_at = _utcnow()
        session.flush()
        return podcast

    def get_all_episodes_by_podcast_id_tx(
        self, session: Session, podcast_id: str
    ) -> List[Episode]:
        stmt = select(Episode).where(Episode.podcast_id == podcast_id)
        return list(session.scalars(stmt).all())

    def create_episode_tx(self, session: Session, podcast_id: str, **kwargs) -> Episode:
        episode = Episode(podcast_id=podcast_id, **kwargs)
        session.add(episode)
        session.flush()
        logger.debug(f"Created episode: {episode.title} ({episode.id})")
        return episode

    def update_episode_tx(self, session: Session, episode: Episode, **kwargs) -> Episode:
        for key, value in kwargs.items():
            if hasattr(episode, key):
                setattr(episode, key, value)
        episode.updated_at = _utcnow()
        session.flush()
        logger.debug(f"Updated episode {episode.id}: {list(kwargs.keys())}")
        return episode

    # --- Sync Log Operations ---

    def create_sync_log(
        self,
        podcast_id: str,
        status: str,
        episodes_added: int = 0,
        episodes_updated: int = 0,
        error_message: Optional[str] = None,
    ) -> SyncLog:
        with self._get_session() as session:
            entry = SyncLog(
                podcast_id=podcast_id,
                status=status,
                episodes_added=episodes_added,
                episodes_updated=episodes_updated,
                error_message=error_message,
                created_at=_utcnow(),
            )
            session.add(entry)
            session.commit()
            session.refresh(entry)
            return entry

    def get_latest_sync_log(self, podcast_id: str) -> Optional[SyncLog]:
        with self._get_session() as session:
            stmt = (
                select(SyncLog)
                .where(SyncLog.podcast_id == podcast_id)
                .order_by(SyncLog.created_at.desc())
                .limit(1)
            )
            return session.scalar(stmt)

    def get_sync_logs(
        self, podcast_id: str, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SyncLog], int]:
        with self._get_session() as session:
            total = session.scalar(
                select(func.count())
                .select_from(SyncLog)
                .where(SyncLog.podcast_id == podcast_id)
            )
            stmt = (
                select(SyncLog)
                .where(SyncLog.podcast_id == podcast_id)
                .order_by(SyncLog.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            return list(session.scalars(stmt).all()), total or 0

    # --- Connection Management ---

    def close(self) -> None:
        """
        Dispose the SQLAlchemy engine and release database connections and resources.
        """
        self.engine.dispose()

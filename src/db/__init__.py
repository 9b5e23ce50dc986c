"""Database module for podcast data persistence.

Provides:
- SQLAlchemy ORM models (Podcast, Episode, SyncLog)
- Repository interface and implementation
- Repository exceptions
- Factory functions for creating repositories
"""

from .errors import DuplicateFeedURLError, RepositoryError
from .factory import create_repository, create_repository_from_config
from .models import Base, Episode, Podcast, SyncLog
from .repository import PodcastRepositoryInterface, SQLAlchemyPodcastRepository

__all__ = [
    "Base",
    "Podcast",
    "Episode",
    "SyncLog",
    "PodcastRepositoryInterface",
    "SQLAlchemyPodcastRepository",
    "create_repository",
    "create_repository_from_config",
    "RepositoryError",
    "DuplicateFeedURLError",
]

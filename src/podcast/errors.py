"""Exceptions raised by the feed synchronization engine."""

from ..db.errors import DuplicateFeedURLError, RepositoryError  # noqa: F401


class FeedSyncError(Exception):
    """Base exception for all feed sync errors."""

    pass


class FetchError(FeedSyncError):
    """Feed could not be retrieved (non-200 status, network error, timeout)."""

    pass


class ParseError(FeedSyncError):
    """Feed content is not a usable podcast feed."""

    pass


class SyncInProgressError(FeedSyncError):
    """A sync for the same podcast is already running."""

    def __init__(self, podcast_id: str):
        self.podcast_id = podcast_id
        super().__init__(f"sync already in progress for podcast: {podcast_id}")


class WriteError(FeedSyncError):
    """Failure while reconciling or writing inside the sync transaction."""

    pass


class SyncCancelledError(WriteError):
    """The sync deadline expired or was cancelled mid-transaction."""

    pass


class PodcastNotFoundError(FeedSyncError):
    """No podcast exists with the requested ID."""

    def __init__(self, podcast_id: str):
        self.podcast_id = podcast_id
        super().__init__(f"Podcast not found: {podcast_id}")


class MissingFeedURLError(FeedSyncError):
    """Podcast has no RSS URL configured."""

    pass


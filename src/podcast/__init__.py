"""Podcast feed synchronization.

Provides functionality for:
- Fetching and parsing RSS/Atom feeds
- Reconciling feeds against stored episodes
- Transactional, per-podcast exclusive feed synchronization
"""

from .deadline import Deadline
from .errors import (
    DuplicateFeedURLError,
    FeedSyncError,
    FetchError,
    MissingFeedURLError,
    ParseError,
    PodcastNotFoundError,
    SyncCancelledError,
    SyncInProgressError,
    WriteError,
)
from .feed_parser import FeedParser, NormalizedFeed, NormalizedFeedItem
from .feed_sync import FeedSyncService, SyncAllResult, SyncResult
from .fetcher import FeedFetcher
from .reconcile import ReconcilePlan, reconcile
from .sync_guard import SyncGuard
from .sync_log import SyncLogRecorder
from .writer import EpisodeWritePolicy, TransactionalWriter

__all__ = [
    "Deadline",
    "DuplicateFeedURLError",
    "FeedSyncError",
    "FetchError",
    "MissingFeedURLError",
    "ParseError",
    "PodcastNotFoundError",
    "SyncCancelledError",
    "SyncInProgressError",
    "WriteError",
    "FeedParser",
    "NormalizedFeed",
    "NormalizedFeedItem",
    "FeedSyncService",
    "SyncAllResult",
    "SyncResult",
    "FeedFetcher",
    "ReconcilePlan",
    "reconcile",
    "SyncGuard",
    "SyncLogRecorder",
    "EpisodeWritePolicy",
    "TransactionalWriter",
]

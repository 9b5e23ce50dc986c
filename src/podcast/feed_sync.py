"""Feed synchronization service for podcast updates.

Coordinates one sync attempt per podcast: take the per-podcast guard,
fetch and parse the feed, write the reconciled result in a single
transaction, and record the outcome in the sync log.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..db.models import Podcast, SyncLog
from ..db.repository import PodcastRepositoryInterface
from .deadline import BATCH_SYNC_TIMEOUT, INTERACTIVE_SYNC_TIMEOUT, Deadline
from .errors import (
    DuplicateFeedURLError,
    MissingFeedURLError,
    PodcastNotFoundError,
    SyncInProgressError,
)
from .feed_parser import FeedParser, NormalizedFeed
from .fetcher import FeedFetcher
from .sync_guard import SyncGuard
from .sync_log import SyncLogRecorder
from .writer import EpisodeWritePolicy, TransactionalWriter

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class SyncResult:
    """Outcome of one podcast sync attempt."""

    podcast_id: str
    success: bool = False
    episodes_added: int = 0
    episodes_updated: int = 0
    error_message: Optional[str] = None


@dataclass
class SyncAllResult:
    """Aggregated outcome of a batch sync.

    Attributes:
        results: Per-podcast results, in completion order.
    """

    results: List[SyncResult] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def episodes_added(self) -> int:
        return sum(r.episodes_added for r in self.results)

    @property
    def episodes_updated(self) -> int:
        return sum(r.episodes_updated for r in self.results)


class FeedSyncService:
    """Service for synchronizing podcast feeds with the database.

    A sync for a podcast that is already syncing is rejected immediately
    with SyncInProgressError. Every attempt that gets past the podcast
    lookup writes exactly one sync log entry, and failures are re-raised
    to the caller after being logged.

    Example:
        sync_service = FeedSyncService(repository)
        result = sync_service.sync_podcast(podcast_id)
        print(f"New episodes: {result.episodes_added}")
    """

    def __init__(
        self,
        repository: PodcastRepositoryInterface,
        fetcher: Optional[FeedFetcher] = None,
        parser: Optional[FeedParser] = None,
        write_policy: EpisodeWritePolicy = EpisodeWritePolicy.ABORT,
        sync_timeout: float = INTERACTIVE_SYNC_TIMEOUT,
        sync_all_timeout: float = BATCH_SYNC_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """
        Create a FeedSyncService bound to a repository.

        Parameters:
            repository: Store for podcasts, episodes and sync logs.
            fetcher: HTTP fetcher; a default FeedFetcher if omitted.
            parser: Feed parser; a default FeedParser if omitted.
            write_policy: How a failing episode write is handled.
            sync_timeout: Default budget in seconds for a single sync.
            sync_all_timeout: Umbrella budget in seconds for sync_all_podcasts.
            max_workers: Thread pool size for sync_all_podcasts.
        """
        self.repository = repository
        self.fetcher = fetcher or FeedFetcher()
        self.parser = parser or FeedParser(fetcher=self.fetcher)
        self.writer = TransactionalWriter(repository, policy=write_policy)
        self.recorder = SyncLogRecorder(repository)
        self.guard = SyncGuard()
        self.sync_timeout = sync_timeout
        self.sync_all_timeout = sync_all_timeout
        self.max_workers = max_workers

    def parse_feed(self, url: str, deadline: Optional[Deadline] = None) -> NormalizedFeed:
        """Fetch and parse a feed without touching the database."""
        content = self.fetcher.fetch(url, deadline=deadline)
        return self.parser.parse(content)

    def sync_podcast(
        self,
        podcast_id: str,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
    ) -> SyncResult:
        """
        Sync a single podcast from its RSS feed.

        Parameters:
            podcast_id (str): Identifier of the podcast to synchronize.
            timeout (Optional[float]): Budget in seconds; defaults to the interactive timeout.
            deadline (Optional[Deadline]): Shared deadline; takes precedence over `timeout`.

        Returns:
            SyncResult: Counts of episodes added and updated.

        Raises:
            SyncInProgressError: A sync for this podcast is already running.
            PodcastNotFoundError: No podcast has this ID.
            MissingFeedURLError, FetchError, ParseError, WriteError: The attempt
                failed; a failure entry was written to the sync log.
        """
        if deadline is None:
            deadline = Deadline(timeout if timeout is not None else self.sync_timeout)

        with self.guard.hold(podcast_id):
            return self._run_sync(podcast_id, deadline)

    def start_background_sync(self, podcast_id: str) -> threading.Thread:
        """
        Start a sync on a daemon thread and return without waiting for it.

        The guard is taken before the thread starts, so a podcast that is
        already syncing is rejected synchronously.

        Returns:
            threading.Thread: The started worker thread.

        Raises:
            SyncInProgressError: A sync for this podcast is already running.
        """
        if not self.guard.try_acquire(podcast_id):
            logger.info(f"Rejecting background sync for podcast {podcast_id}: already running")
            raise SyncInProgressError(podcast_id)

        deadline = Deadline(self.sync_timeout)

        def run() -> None:
            try:
                self._run_sync(podcast_id, deadline)
            except Exception as e:
                logger.warning(f"Background sync for podcast {podcast_id} failed: {e}")
            finally:
                self.guard.release(podcast_id)

        thread = threading.Thread(target=run, name=f"feed-sync-{podcast_id}", daemon=True)
        try:
            thread.start()
        except RuntimeError:
            self.guard.release(podcast_id)
            raise
        logger.info(f"Started background sync for podcast {podcast_id}")
        return thread

    def sync_all_podcasts(self, timeout: Optional[float] = None) -> SyncAllResult:
        """
        Synchronize every active podcast that has an RSS URL.

        Podcasts sync in parallel on a thread pool and share one deadline.
        A failing podcast does not affect the others; its error is captured
        in its SyncResult.

        Parameters:
            timeout (Optional[float]): Umbrella budget in seconds; defaults to the batch timeout.

        Returns:
            SyncAllResult: Per-podcast results and aggregate counts.
        """
        deadline = Deadline(timeout if timeout is not None else self.sync_all_timeout)
        podcasts = self.repository.list_active_podcasts()
        overall = SyncAllResult()

        if not podcasts:
            logger.info("No active podcasts to sync")
            return overall

        logger.info(f"Syncing {len(podcasts)} podcasts with {self.max_workers} workers")

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="feed-sync"
        ) as executor:
            futures = {
                executor.submit(self._sync_isolated, podcast.id, deadline): podcast.id
                for podcast in podcasts
            }
            for future in as_completed(futures):
                overall.results.append(future.result())

        logger.info(
            f"Sync complete: {overall.synced} synced, {overall.failed} failed, "
            f"{overall.episodes_added} new episodes, {overall.episodes_updated} updated"
        )
        return overall

    def add_podcast(self, rss_url: str, owner_id: Optional[str] = None) -> Tuple[Podcast, SyncResult]:
        """
        Register a podcast from its feed and run the initial sync.

        Parameters:
            rss_url (str): Feed URL of the new podcast.
            owner_id (Optional[str]): Podcaster account that owns the show.

        Returns:
            Tuple of the created Podcast and the initial SyncResult.

        Raises:
            DuplicateFeedURLError: The URL is already registered.
            FetchError, ParseError: The feed could not be validated; nothing is created.
        """
        existing = self.repository.get_podcast_by_rss_url(rss_url)
        if existing:
            raise DuplicateFeedURLError(rss_url, existing.id)

        deadline = Deadline(self.sync_timeout)
        feed = self.parse_feed(rss_url, deadline=deadline)

        podcast = self.repository.create_podcast(
            title=feed.title,
            rss_url=rss_url,
            owner_id=owner_id,
            description=feed.description,
            author=feed.author,
            language=feed.language,
            category=feed.category,
            subcategory=feed.subcategory,
            explicit=feed.explicit,
            cover_image_url=feed.cover_image_url,
            website_url=feed.website_url,
        )

        # The initial sync writes the feed already fetched for validation
        with self.guard.hold(podcast.id):
            result = self._run_sync(podcast.id, deadline, feed=feed)
        logger.info(f"Added podcast '{podcast.title}' with {result.episodes_added} episodes")
        return podcast, result

    def get_sync_status(self, podcast_id: str) -> Optional[SyncLog]:
        """Latest sync log entry for a podcast, or None if it never synced."""
        return self.recorder.latest(podcast_id)

    def get_sync_history(
        self, podcast_id: str, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SyncLog], int]:
        """Paginated sync history for a podcast, newest first."""
        return self.recorder.history(podcast_id, page=page, page_size=page_size)

    def close(self) -> None:
        self.fetcher.close()

    def _run_sync(
        self, podcast_id: str, deadline: Deadline, feed: Optional[NormalizedFeed] = None
    ) -> SyncResult:
        """Run one attempt with the guard already held.

        When ``feed`` is given it is written as is and the RSS URL is not fetched.
        """
        podcast = self.repository.get_podcast(podcast_id)
        if podcast is None:
            raise PodcastNotFoundError(podcast_id)

        logger.info(f"Syncing podcast: {podcast.title}")

        try:
            if not podcast.rss_url:
                raise MissingFeedURLError(f"podcast has no RSS URL: {podcast_id}")

            if feed is None:
                feed = self.parse_feed(podcast.rss_url, deadline=deadline)
            written = self.writer.write(podcast_id, feed, deadline=deadline)
        except PodcastNotFoundError:
            # Deleted mid-sync; there is no parent row to log against
            raise
        except Exception as e:
            self._record_failure(podcast_id, e)
            raise

        self._record_success(podcast_id, written.episodes_added, written.episodes_updated)
        return SyncResult(
            podcast_id=podcast_id,
            success=True,
            episodes_added=written.episodes_added,
            episodes_updated=written.episodes_updated,
        )

    def _sync_isolated(self, podcast_id: str, deadline: Deadline) -> SyncResult:
        """sync_podcast with every error folded into the result."""
        try:
            return self.sync_podcast(podcast_id, deadline=deadline)
        except Exception as e:
            return SyncResult(podcast_id=podcast_id, success=False, error_message=str(e))

    def _record_success(self, podcast_id: str, added: int, updated: int) -> None:
        try:
            self.recorder.record_success(podcast_id, added, updated)
        except Exception:
            logger.exception(f"Failed to record sync success for podcast {podcast_id}")

    def _record_failure(self, podcast_id: str, error: BaseException) -> None:
        try:
            self.recorder.record_failure(podcast_id, error)
        except Exception:
            logger.exception(f"Failed to record sync failure for podcast {podcast_id}")


def create_sync_service(repository: PodcastRepositoryInterface, config) -> FeedSyncService:
    """Build a FeedSyncService from a Config object's fetch and sync settings."""
    fetcher = FeedFetcher(
        timeout=config.FEED_FETCH_TIMEOUT,
        user_agent=config.FEED_USER_AGENT,
    )
    return FeedSyncService(
        repository=repository,
        fetcher=fetcher,
        write_policy=EpisodeWritePolicy(config.SYNC_EPISODE_WRITE_POLICY),
        sync_timeout=config.SYNC_TIMEOUT_SECONDS,
        sync_all_timeout=config.SYNC_ALL_TIMEOUT_SECONDS,
        max_workers=config.SYNC_MAX_WORKERS,
    )

"""Transactional application of a reconciled feed to the database."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..db.repository import PodcastRepositoryInterface
from .deadline import Deadline
from .errors import FeedSyncError, PodcastNotFoundError, WriteError
from .feed_parser import NormalizedFeed, utcnow
from .reconcile import reconcile

logger = logging.getLogger(__name__)


class EpisodeWritePolicy(str, Enum):
    """What happens when a single episode write fails.

    ABORT: the whole sync fails and every change of the attempt is rolled back.
    SAVEPOINT: each episode write runs in its own savepoint; a failing
        episode is rolled back and skipped while the rest commit.
    """

    ABORT = "abort"
    SAVEPOINT = "savepoint"


@dataclass
class WriteResult:
    """Counts of rows actually written by one transaction."""

    episodes_added: int = 0
    episodes_updated: int = 0
    episodes_failed: int = 0
    metadata_changed: bool = False


class TransactionalWriter:
    """Applies a NormalizedFeed to one podcast inside a single transaction.

    Loading the stored episodes, reconciling, and every insert/update
    happen in the same session. The deadline is checked before each
    statement so that a cancelled or expired sync rolls back instead of
    committing a partial result.

    Example:
        writer = TransactionalWriter(repository)
        result = writer.write(podcast_id, feed, deadline=Deadline(300))
    """

    def __init__(
        self,
        repository: PodcastRepositoryInterface,
        policy: EpisodeWritePolicy = EpisodeWritePolicy.ABORT,
    ):
        self.repository = repository
        self.policy = EpisodeWritePolicy(policy)

    def write(
        self,
        podcast_id: str,
        feed: NormalizedFeed,
        deadline: Optional[Deadline] = None,
        now: Optional[datetime] = None,
    ) -> WriteResult:
        """Reconcile and persist a feed for a podcast.

        Args:
            podcast_id: Podcast to write to
            feed: Parsed feed
            deadline: Checked before every statement
            now: Sync timestamp, defaults to the current UTC time

        Returns:
            WriteResult with the committed counts

        Raises:
            SyncCancelledError: If the deadline expires mid-transaction
            PodcastNotFoundError: If the podcast vanished before the write
            WriteError: For any other failure; the cause is chained
        """
        deadline = deadline or Deadline()
        now = now or utcnow()
        result = WriteResult()

        try:
            with self.repository.transaction() as session:
                deadline.check("loading stored episodes")
                podcast = self.repository.get_podcast_tx(session, podcast_id)
                if podcast is None:
                    raise PodcastNotFoundError(podcast_id)
                existing = self.repository.get_all_episodes_by_podcast_id_tx(
                    session, podcast_id
                )

                plan = reconcile(feed, podcast, existing, now)
                logger.debug(
                    f"Plan for podcast {podcast_id}: {plan.episodes_added} inserts, "
                    f"{plan.episodes_updated} updates"
                )

                deadline.check("updating podcast metadata")
                self.repository.update_podcast_tx(session, podcast, **plan.podcast_changes)
                result.metadata_changed = plan.metadata_changed

                for values in plan.inserts:
                    deadline.check("inserting episode")
                    ok = self._run_episode_write(
                        session,
                        values["guid"],
                        lambda values=values: self.repository.create_episode_tx(
                            session, podcast_id, **values
                        ),
                    )
                    if ok:
                        result.episodes_added += 1
                    else:
                        result.episodes_failed += 1

                for update in plan.updates:
                    deadline.check("updating episode")
                    ok = self._run_episode_write(
                        session,
                        update.episode.guid,
                        lambda update=update: self.repository.update_episode_tx(
                            session, update.episode, **update.changes
                        ),
                    )
                    if ok:
                        result.episodes_updated += 1
                    else:
                        result.episodes_failed += 1

                deadline.check("commit")
        except FeedSyncError:
            raise
        except Exception as e:
            raise WriteError(f"failed to write feed for podcast {podcast_id}: {e}") from e

        logger.info(
            f"Committed podcast {podcast_id}: {result.episodes_added} added, "
            f"{result.episodes_updated} updated"
        )
        return result

    def _run_episode_write(
        self, session: Session, guid: str, operation: Callable[[], object]
    ) -> bool:
        """Run one episode write under the configured policy.

        Returns:
            True if the write succeeded, False if it was rolled back and skipped.
        """
        if self.policy is EpisodeWritePolicy.ABORT:
            operation()
            return True

        try:
            with session.begin_nested():
                operation()
            return True
        except FeedSyncError:
            raise
        except Exception as e:
            logger.warning(f"Skipping episode {guid} after failed write: {e}")
            return False

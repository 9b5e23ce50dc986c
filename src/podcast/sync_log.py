"""Audit trail of feed sync attempts."""

import logging
from typing import List, Optional, Tuple

from ..db.models import SyncLog
from ..db.repository import PodcastRepositoryInterface

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"


class SyncLogRecorder:
    """Writes and reads sync log entries.

    Entries are written through the repository's own sessions, never the
    sync transaction, so a failure is still recorded after a rollback.
    """

    def __init__(self, repository: PodcastRepositoryInterface):
        self.repository = repository

    def record_success(self, podcast_id: str, added: int, updated: int) -> SyncLog:
        logger.info(
            f"Sync succeeded for podcast {podcast_id}: {added} added, {updated} updated"
        )
        return self.repository.create_sync_log(
            podcast_id=podcast_id,
            status=STATUS_SUCCESS,
            episodes_added=added,
            episodes_updated=updated,
        )

    def record_failure(
        self,
        podcast_id: str,
        error: BaseException,
        added: int = 0,
        updated: int = 0,
    ) -> SyncLog:
        """Record a failed attempt with the error text."""
        logger.error(f"Sync failed for podcast {podcast_id}: {error}")
        return self.repository.create_sync_log(
            podcast_id=podcast_id,
            status=STATUS_FAILURE,
            episodes_added=added,
            episodes_updated=updated,
            error_message=str(error),
        )

    def latest(self, podcast_id: str) -> Optional[SyncLog]:
        return self.repository.get_latest_sync_log(podcast_id)

    def history(
        self, podcast_id: str, page: int = 1, page_size: int = 20
    ) -> Tuple[List[SyncLog], int]:
        """One page of entries, newest first, plus the total count.

        Raises:
            ValueError: If page or page_size is less than 1
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        return self.repository.get_sync_logs(podcast_id, page=page, page_size=page_size)

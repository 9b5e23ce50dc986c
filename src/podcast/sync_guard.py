"""Per-podcast exclusion for feed syncs.

A second sync request for a podcast that is already syncing is rejected
right away instead of queueing behind the first one. Syncs for different
podcasts never contend beyond the brief registry lock.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set

from .errors import SyncInProgressError

logger = logging.getLogger(__name__)


class SyncGuard:
    """Registry of podcast IDs with a sync currently running."""

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()

    def try_acquire(self, podcast_id: str) -> bool:
        """Mark a podcast as syncing.

        Returns:
            True if the podcast was idle and is now held, False if it was already held.
        """
        with self._lock:
            if podcast_id in self._in_flight:
                return False
            self._in_flight.add(podcast_id)
            return True

    def release(self, podcast_id: str) -> None:
        with self._lock:
            self._in_flight.discard(podcast_id)

    def is_running(self, podcast_id: str) -> bool:
        with self._lock:
            return podcast_id in self._in_flight

    @property
    def running(self) -> Set[str]:
        """Snapshot of the podcast IDs currently syncing."""
        with self._lock:
            return set(self._in_flight)

    @contextmanager
    def hold(self, podcast_id: str) -> Iterator[None]:
        """Hold the guard for the duration of a ``with`` block.

        Raises:
            SyncInProgressError: If a sync for the podcast is already running.
        """
        if not self.try_acquire(podcast_id):
            logger.info(f"Rejecting sync for podcast {podcast_id}: already running")
            raise SyncInProgressError(podcast_id)
        try:
            yield
        finally:
            self.release(podcast_id)

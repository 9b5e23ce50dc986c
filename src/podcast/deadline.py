"""Timeout and cancellation budget for a single sync attempt."""

import threading
import time
from typing import Optional

from .errors import SyncCancelledError

# Observed defaults for interactive and batch syncs
INTERACTIVE_SYNC_TIMEOUT = 5 * 60
BATCH_SYNC_TIMEOUT = 60 * 60


class Deadline:
    """A monotonic deadline that can also be cancelled explicitly.

    One Deadline bounds an entire fetch + parse + write sequence. It is
    safe to share between threads, which is how ``sync_all_podcasts``
    applies one umbrella budget to every podcast in the batch.

    Example:
        deadline = Deadline(300)
        response = session.get(url, timeout=deadline.remaining())
        deadline.check("write")
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        """Initialize the deadline.

        Args:
            timeout_seconds: Seconds from now until expiry, or None for no limit.
        """
        self.timeout_seconds = timeout_seconds
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Cancel the deadline immediately."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        """True once cancelled or past the expiry time."""
        if self._cancelled.is_set():
            return True
        if self._expires_at is None:
            return False
        return time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left before expiry, 0.0 when expired, None when unbounded."""
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def bound(self, timeout: Optional[float]) -> Optional[float]:
        """Clamp a per-operation timeout to the time left on this deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if timeout is None:
            return remaining
        return min(timeout, remaining)

    def check(self, stage: str = "sync") -> None:
        """Raise SyncCancelledError if the deadline has passed.

        Args:
            stage: Name of the step about to run, used in the error message.
        """
        if self._cancelled.is_set():
            raise SyncCancelledError(f"sync cancelled before {stage}")
        if self.expired:
            raise SyncCancelledError(
                f"sync deadline of {self.timeout_seconds}s exceeded before {stage}"
            )

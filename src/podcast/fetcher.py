"""HTTP retrieval of raw podcast feed documents."""

import logging
import socket
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import requests

from .deadline import Deadline
from .errors import FetchError

logger = logging.getLogger(__name__)


class FeedFetcher:
    """Fetches raw feed bytes with a single bounded GET request.

    There are no retries: a failed fetch fails the sync attempt and the
    caller decides whether to try again later.

    When a deadline is given it bounds the whole transfer, not just each
    socket read. The body is streamed in chunks and a watchdog thread shuts
    the connection down once the deadline expires or is cancelled, so a
    server trickling bytes cannot hold a sync past its budget.

    Example:
        fetcher = FeedFetcher(timeout=30)
        content = fetcher.fetch("https://example.com/feed.xml")
    """

    USER_AGENT = "PodcastFeedSync/1.0"
    ACCEPT = "application/rss+xml, application/xml, text/xml"
    DEFAULT_TIMEOUT = 30
    CHUNK_SIZE = 8192
    # How often the watchdog looks at the deadline, in seconds
    WATCH_INTERVAL = 0.1

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
    ):
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds
            user_agent: Custom user agent string for requests
        """
        self.timeout = timeout
        self.user_agent = user_agent or self.USER_AGENT
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session carrying the identifying headers."""
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": self.user_agent,
                "Accept": self.ACCEPT,
            }
        )
        return session

    def fetch(self, url: str, deadline: Optional[Deadline] = None) -> bytes:
        """Download a feed.

        Args:
            url: Feed URL
            deadline: Optional budget for the whole sync; bounds the request
                timeout and the total time spent reading the body

        Returns:
            Raw response body

        Raises:
            FetchError: On non-200 status, network failure, timeout or expired deadline
        """
        timeout = self.timeout
        if deadline is not None:
            if deadline.expired:
                raise FetchError(f"deadline exceeded before fetching feed: {url}")
            timeout = deadline.bound(timeout)

        logger.info(f"Fetching feed: {url}")

        try:
            response = self._session.get(url, timeout=timeout, stream=True)
        except requests.Timeout as e:
            raise FetchError(f"timed out fetching feed {url}: {e}") from e
        except requests.RequestException as e:
            raise FetchError(f"failed to fetch RSS feed {url}: {e}") from e

        try:
            if response.status_code != 200:
                raise FetchError(
                    f"feed request failed with status: {response.status_code} {response.reason}"
                )
            content = self._read_body(url, response, deadline)
        finally:
            response.close()

        logger.debug(f"Fetched {len(content)} bytes from {url}")
        return content

    def _read_body(
        self, url: str, response: requests.Response, deadline: Optional[Deadline]
    ) -> bytes:
        """Read the streamed body, checking the deadline between chunks."""
        chunks = []
        try:
            with self._abort_on_expiry(response, deadline):
                for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                    if deadline is not None and deadline.expired:
                        break
                    chunks.append(chunk)
        except (requests.RequestException, OSError) as e:
            if deadline is not None and deadline.expired:
                raise FetchError(f"deadline exceeded while reading feed {url}") from e
            raise FetchError(f"failed to read RSS feed {url}: {e}") from e

        if deadline is not None and deadline.expired:
            raise FetchError(f"deadline exceeded while reading feed {url}")
        return b"".join(chunks)

    @contextmanager
    def _abort_on_expiry(
        self, response: requests.Response, deadline: Optional[Deadline]
    ) -> Iterator[None]:
        """Run a watchdog that cuts the connection when the deadline runs out."""
        if deadline is None:
            yield
            return

        done = threading.Event()
        watcher = threading.Thread(
            target=self._watch,
            args=(response, deadline, done),
            name="feed-fetch-watchdog",
            daemon=True,
        )
        watcher.start()
        try:
            yield
        finally:
            done.set()
            watcher.join()

    def _watch(
        self, response: requests.Response, deadline: Deadline, done: threading.Event
    ) -> None:
        while not done.is_set():
            if deadline.expired:
                self._shutdown_connection(response)
                return
            remaining = deadline.remaining()
            interval = self.WATCH_INTERVAL
            if remaining is not None:
                interval = min(interval, remaining)
            done.wait(interval)

    @staticmethod
    def _shutdown_connection(response: requests.Response) -> None:
        """Shut the socket down so a read blocked in another thread returns."""
        connection = getattr(response.raw, "connection", None)
        sock = getattr(connection, "sock", None)
        if sock is None:
            return
        logger.debug("Deadline reached, shutting down feed connection")
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # Already closed by the reading side
            logger.debug(f"Feed connection already closed: {e}")

    def close(self) -> None:
        self._session.close()

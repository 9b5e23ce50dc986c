"""Exceptions raised by the podcast repository."""


class RepositoryError(Exception):
    """Base exception for repository errors the caller can act on."""

    pass


class DuplicateFeedURLError(RepositoryError):
    """RSS URL is already registered to another podcast."""

    def __init__(self, rss_url: str, existing_podcast_id: str):
        self.rss_url = rss_url
        self.existing_podcast_id = existing_podcast_id
        super().__init__(
            f"RSS URL already registered to podcast {existing_podcast_id}: {rss_url}"
        )

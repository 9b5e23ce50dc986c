"""
Pytest configuration and fixtures for podcast-feed-sync tests.

Environment variables read by Config are cleared before each test so that a
developer's shell or .env file cannot change test behavior.
"""

import pytest

from src.db.factory import create_repository

_CONFIG_ENV_VARS = (
    "DATABASE_URL",
    "DB_POOL_SIZE",
    "DB_MAX_OVERFLOW",
    "DB_ECHO",
    "FEED_USER_AGENT",
    "FEED_FETCH_TIMEOUT",
    "SYNC_TIMEOUT_SECONDS",
    "SYNC_ALL_TIMEOUT_SECONDS",
    "SYNC_MAX_WORKERS",
    "SYNC_INTERVAL_HOURS",
    "SYNC_INITIAL_DELAY_SECONDS",
    "SYNC_EPISODE_WRITE_POLICY",
)


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch):
    """Remove sync configuration variables from the environment."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def repository(tmp_path):
    """
    Create a temporary SQLite-backed repository for tests.

    Yields a repository using a SQLite file under the test's temporary path and
    closes it when the fixture is torn down.
    """
    db_path = tmp_path / "test.db"
    repo = create_repository(f"sqlite:///{db_path}", create_tables=True)
    yield repo
    repo.close()


def build_rss(items: str = "", channel_extra: str = "", title: str = "Test Podcast") -> bytes:
    """Wrap item markup in a minimal iTunes-namespaced RSS document."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>{title}</title>
    {channel_extra}
    {items}
  </channel>
</rss>""".encode("utf-8")


def build_item(
    guid: str,
    title: str = "Episode",
    audio_url: str = None,
    pub_date: str = "Mon, 01 Jan 2024 12:00:00 +0000",
    extra: str = "",
) -> str:
    """Markup for one <item> with a GUID and enclosure."""
    audio_url = audio_url or f"https://example.com/{guid}.mp3"
    return f"""
    <item>
      <title>{title}</title>
      <guid>{guid}</guid>
      <pubDate>{pub_date}</pubDate>
      <enclosure url="{audio_url}" type="audio/mpeg" length="1000"/>
      {extra}
    </item>"""

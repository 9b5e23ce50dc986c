"""Reconciliation of a parsed feed against stored podcast data.

Pure functions only: given the feed, the stored podcast and its stored
episodes, work out which metadata fields change, which episodes are new and
which existing episodes need updating. Nothing here touches the database.

A stored value is only ever overwritten by a feed value that is non-empty
(or non-default) and different, so re-running a sync against an unchanged
feed produces an empty plan apart from ``last_synced_at``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..db.models import Episode, Podcast
from .feed_parser import NormalizedFeed, NormalizedFeedItem

logger = logging.getLogger(__name__)

# Feed-sourced podcast columns compared as "non-empty and different"
PODCAST_TEXT_FIELDS = (
    "title",
    "description",
    "language",
    "author",
    "cover_image_url",
    "website_url",
    "category",
    "subcategory",
)

EPISODE_TEXT_FIELDS = (
    "title",
    "description",
    "audio_url",
    "cover_image_url",
)

EPISODE_NUMBER_FIELDS = (
    "episode_number",
    "season_number",
)


@dataclass
class EpisodeUpdate:
    """Changed fields for one stored episode."""

    episode: Episode
    changes: Dict[str, Any]


@dataclass
class ReconcilePlan:
    """Everything one sync attempt will write."""

    podcast_changes: Dict[str, Any] = field(default_factory=dict)
    inserts: List[Dict[str, Any]] = field(default_factory=list)
    updates: List[EpisodeUpdate] = field(default_factory=list)

    @property
    def episodes_added(self) -> int:
        return len(self.inserts)

    @property
    def episodes_updated(self) -> int:
        return len(self.updates)

    @property
    def metadata_changed(self) -> bool:
        return any(key != "last_synced_at" for key in self.podcast_changes)


def _changed(stored: Any, incoming: Any) -> bool:
    """True if ``incoming`` is a real value that differs from ``stored``."""
    if incoming is None or incoming == "":
        return False
    return incoming != stored


def diff_podcast(feed: NormalizedFeed, podcast: Podcast, now: datetime) -> Dict[str, Any]:
    """Metadata changes for a podcast, always including ``last_synced_at``."""
    changes: Dict[str, Any] = {}

    for name in PODCAST_TEXT_FIELDS:
        incoming = getattr(feed, name)
        if _changed(getattr(podcast, name), incoming):
            changes[name] = incoming

    # A feed that omits the flag does not clear an explicit podcast
    if feed.explicit and not podcast.explicit:
        changes["explicit"] = True

    changes["last_synced_at"] = now
    return changes


def diff_episode(item: NormalizedFeedItem, episode: Episode) -> Dict[str, Any]:
    """Changed fields between a feed item and its stored episode."""
    changes: Dict[str, Any] = {}

    for name in EPISODE_TEXT_FIELDS:
        incoming = getattr(item, name)
        if _changed(getattr(episode, name), incoming):
            changes[name] = incoming

    if item.duration > 0 and item.duration != episode.duration:
        changes["duration"] = item.duration

    if not item.publication_date_defaulted and _changed(
        episode.publication_date, item.publication_date
    ):
        changes["publication_date"] = item.publication_date

    for name in EPISODE_NUMBER_FIELDS:
        incoming = getattr(item, name)
        if _changed(getattr(episode, name), incoming):
            changes[name] = incoming

    return changes


def new_episode_values(item: NormalizedFeedItem) -> Dict[str, Any]:
    """Column values for an episode seen for the first time."""
    return {
        "guid": item.guid,
        "title": item.title,
        "description": item.description,
        "audio_url": item.audio_url,
        "duration": item.duration,
        "cover_image_url": item.cover_image_url,
        "publication_date": item.publication_date,
        "episode_number": item.episode_number,
        "season_number": item.season_number,
        "status": "active",
    }


def unique_items(items: Iterable[NormalizedFeedItem]) -> List[NormalizedFeedItem]:
    """Drop repeated GUIDs, keeping the first occurrence."""
    seen = set()
    unique = []
    for item in items:
        if item.guid in seen:
            logger.debug(f"Ignoring duplicate GUID in feed: {item.guid}")
            continue
        seen.add(item.guid)
        unique.append(item)
    return unique


def reconcile(
    feed: NormalizedFeed,
    podcast: Podcast,
    existing_episodes: Iterable[Episode],
    now: datetime,
) -> ReconcilePlan:
    """Compare a parsed feed with stored data.

    Args:
        feed: Parsed feed
        podcast: Stored podcast the feed belongs to
        existing_episodes: All stored episodes of the podcast
        now: Sync timestamp written to ``last_synced_at``

    Returns:
        ReconcilePlan with metadata changes, inserts and updates. Stored
        episodes absent from the feed are left out of the plan entirely.
    """
    by_guid: Dict[str, Episode] = {episode.guid: episode for episode in existing_episodes}
    plan = ReconcilePlan(podcast_changes=diff_podcast(feed, podcast, now))

    for item in unique_items(feed.items):
        existing: Optional[Episode] = by_guid.get(item.guid)
        if existing is None:
            plan.inserts.append(new_episode_values(item))
            continue

        changes = diff_episode(item, existing)
        if changes:
            plan.updates.append(EpisodeUpdate(episode=existing, changes=changes))

    return plan

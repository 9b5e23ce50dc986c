"""RSS/Atom feed parser for podcast metadata and episodes.

Decodes raw feed bytes into a NormalizedFeed. RSS documents go through
BeautifulSoup's lxml-backed "xml" builder, which recovers from malformed
markup instead of aborting, so that the iTunes fallback chains can be
resolved against the exact elements present. Atom documents are handed to
feedparser and mapped onto the same shape.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import List, Optional, Tuple

import feedparser
from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from .deadline import Deadline
from .errors import ParseError
from .fetcher import FeedFetcher

logger = logging.getLogger(__name__)

NOT_A_FEED = "feed has no content or is not a valid podcast feed"

# Tried after the RFC 2822 family handled by email.utils
_ISO_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
)

# Prefixes podcast feeds commonly use without declaring them
_WELL_KNOWN_NAMESPACES = {
    "itunes": "http://www.itunes.com/dtds/podcast-1.0.dtd",
    "content": "http://purl.org/rss/1.0/modules/content/",
}
_RSS_OPEN_RE = re.compile(rb"<rss\b")

_BR_TAGS = ("<br>", "<br/>", "<br />")
_TAG_RE = re.compile(r"<[^>]*>")
_HTML_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
}


@dataclass
class NormalizedFeedItem:
    """One episode extracted from a feed. GUID and audio URL are always set."""

    guid: str
    audio_url: str
    title: str = ""
    description: Optional[str] = None
    duration: int = 0
    publication_date: Optional[datetime] = None
    # True when pubDate was missing or unparseable and "now" was substituted
    publication_date_defaulted: bool = False
    cover_image_url: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None


@dataclass
class NormalizedFeed:
    """Podcast-level data from one fetch of a feed. Never persisted."""

    title: str
    description: Optional[str] = None
    language: Optional[str] = None
    author: Optional[str] = None
    cover_image_url: Optional[str] = None
    website_url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    explicit: bool = False
    items: List[NormalizedFeedItem] = field(default_factory=list)


# --- Value parsing -----------------------------------------------------------


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching the stored column type."""
    return datetime.now(UTC).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_duration(value: Optional[str]) -> int:
    """Parse an itunes:duration value into seconds.

    Accepts plain seconds ("90"), "HH:MM:SS" and "MM:SS". Anything else is 0.
    """
    if not value:
        return 0

    value_str = value.strip()

    try:
        return int(value_str)
    except ValueError:
        pass

    parts = value_str.split(":")
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        pass

    return 0


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a publication date into a naive UTC datetime.

    RFC 1123/822 variants (numeric or named zones, one or two digit days)
    are handled by ``email.utils.parsedate_to_datetime``; ISO-8601 with an
    offset and "YYYY-MM-DD HH:MM:SS" are tried next.

    Returns:
        The parsed datetime, or None if no format matched.
    """
    if not value or not value.strip():
        return None

    value_str = value.strip()

    try:
        return _to_naive_utc(parsedate_to_datetime(value_str))
    except (TypeError, ValueError, IndexError):
        pass

    for fmt in _ISO_DATE_FORMATS:
        try:
            return _to_naive_utc(datetime.strptime(value_str, fmt))
        except ValueError:
            continue

    return None


def parse_bool(value: Optional[str]) -> bool:
    """Case-insensitive yes/true/1 flag."""
    if value is None:
        return False
    return str(value).strip().lower() in ("yes", "true", "1")


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def clean_html(text: Optional[str]) -> Optional[str]:
    """Reduce an HTML fragment to plain text.

    Line breaks become newlines, tags are stripped and a fixed set of
    entities is decoded before trimming.
    """
    if not text:
        return None

    clean = text
    for br in _BR_TAGS:
        clean = clean.replace(br, "\n")
    clean = _TAG_RE.sub("", clean)
    for entity, replacement in _HTML_ENTITIES.items():
        clean = clean.replace(entity, replacement)
    clean = clean.strip()

    return clean or None


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


# --- Tree helpers ------------------------------------------------------------


def declare_missing_namespaces(content):
    """Add xmlns declarations for well-known prefixes a feed uses but never declares.

    The XML builder drops the prefix of an undeclared element, which would
    make <itunes:duration> indistinguishable from a plain <duration>.
    """
    if isinstance(content, str):
        return declare_missing_namespaces(content.encode("utf-8")).decode("utf-8")

    declarations = b"".join(
        f' xmlns:{prefix}="{uri}"'.encode("ascii")
        for prefix, uri in _WELL_KNOWN_NAMESPACES.items()
        if f"<{prefix}:".encode("ascii") in content
        and f"xmlns:{prefix}=".encode("ascii") not in content
    )
    if not declarations:
        return content
    return _RSS_OPEN_RE.sub(lambda m: m.group(0) + declarations, content, count=1)


def _qualified_name(tag: Tag) -> str:
    if tag.prefix:
        return f"{tag.prefix}:{tag.name}"
    return tag.name


def _child(parent: Optional[Tag], name: str) -> Optional[Tag]:
    """First direct child whose qualified name is exactly ``name``.

    Matching on the qualified name keeps <author> and <itunes:author> apart.
    """
    if parent is None:
        return None
    for child in parent.children:
        if isinstance(child, Tag) and _qualified_name(child) == name:
            return child
    return None


def _children(parent: Optional[Tag], name: str) -> List[Tag]:
    if parent is None:
        return []
    return [
        child
        for child in parent.children
        if isinstance(child, Tag) and _qualified_name(child) == name
    ]


def _text(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return tag.get_text().strip()


def _own_text(tag: Optional[Tag]) -> str:
    """Character data directly inside ``tag``, ignoring nested elements."""
    if tag is None:
        return ""
    return "".join(
        str(node) for node in tag.children if not isinstance(node, Tag)
    ).strip()


def _attr(tag: Optional[Tag], name: str) -> str:
    if tag is None:
        return ""
    value = tag.get(name)
    return value.strip() if isinstance(value, str) else ""


# --- Fallback chains ---------------------------------------------------------


def resolve_author(channel: Tag, title: str) -> str:
    """author -> itunes:author -> itunes:owner name -> podcast title."""
    owner = _child(channel, "itunes:owner")
    return (
        _first(
            _text(_child(channel, "author")),
            _text(_child(channel, "itunes:author")),
            _text(_child(owner, "itunes:name")),
        )
        or title
    )


def resolve_cover_image(channel: Tag) -> Optional[str]:
    """itunes:image href -> image/url."""
    return _first(
        _attr(_child(channel, "itunes:image"), "href"),
        _text(_child(_child(channel, "image"), "url")),
    )


def resolve_category(channel: Tag) -> Tuple[Optional[str], Optional[str]]:
    """Category and subcategory from the first itunes:category entry."""
    categories = _children(channel, "itunes:category")
    if not categories:
        return None, None

    main = categories[0]
    category = _first(_attr(main, "text"), _own_text(main))
    subcategory = _attr(_child(main, "itunes:category"), "text") or None
    return category, subcategory


def resolve_description(item: Tag) -> Optional[str]:
    """itunes:summary -> description -> content:encoded, HTML-cleaned."""
    raw = _first(
        _text(_child(item, "itunes:summary")),
        _text(_child(item, "description")),
        _text(_child(item, "content:encoded")),
    )
    return clean_html(raw)


def resolve_publication_date(value: Optional[str]) -> Tuple[datetime, bool]:
    """Parsed date, or (now, True) when the value cannot be parsed."""
    parsed = parse_pub_date(value)
    if parsed is None:
        return utcnow(), True
    return parsed, False


class FeedParser:
    """Parser for podcast RSS/Atom feeds.

    Extracts podcast and episode metadata, including iTunes namespace
    extensions, into a NormalizedFeed. Malformed items degrade to defaults
    rather than failing the feed; items without a GUID or enclosure URL are
    dropped.

    Example:
        parser = FeedParser()
        feed = parser.parse_url("https://example.com/feed.xml")
        print(f"Podcast: {feed.title}")
        for item in feed.items:
            print(f"  - {item.title}")
    """

    def __init__(self, fetcher: Optional[FeedFetcher] = None):
        """Initialize the feed parser.

        Args:
            fetcher: Fetcher used by parse_url; a default FeedFetcher if omitted
        """
        self.fetcher = fetcher or FeedFetcher()

    def parse_url(self, feed_url: str, deadline: Optional[Deadline] = None) -> NormalizedFeed:
        """Fetch and parse a feed.

        Raises:
            FetchError: If the feed cannot be retrieved
            ParseError: If the content is not a usable podcast feed
        """
        content = self.fetcher.fetch(feed_url, deadline=deadline)
        return self.parse(content)

    def parse(self, content: bytes) -> NormalizedFeed:
        """Parse raw feed content.

        Args:
            content: Feed document as bytes (str is accepted too)

        Returns:
            NormalizedFeed with podcast metadata and valid items

        Raises:
            ParseError: If there is no channel, the channel has no title,
                or the markup is rejected outright
        """
        if not content:
            raise ParseError(NOT_A_FEED)

        content = declare_missing_namespaces(content)
        try:
            soup = BeautifulSoup(content, "xml")
        except ParserRejectedMarkup as e:
            raise ParseError(f"failed to parse feed XML: {e}") from e

        root = soup.find(True)
        if root is not None and root.name == "feed":
            return self._parse_atom(content)

        channel = soup.find("channel")
        title = _text(_child(channel, "title"))
        if channel is None or not title:
            raise ParseError(NOT_A_FEED)

        return self._parse_channel(channel, title)

    def _parse_channel(self, channel: Tag, title: str) -> NormalizedFeed:
        category, subcategory = resolve_category(channel)

        feed = NormalizedFeed(
            title=title,
            description=_text(_child(channel, "description")) or None,
            language=_text(_child(channel, "language")) or None,
            website_url=_text(_child(channel, "link")) or None,
            author=resolve_author(channel, title),
            cover_image_url=resolve_cover_image(channel),
            category=category,
            subcategory=subcategory,
            explicit=parse_bool(_text(_child(channel, "itunes:explicit"))),
        )

        skipped = 0
        for item_tag in _children(channel, "item"):
            item = self._parse_item(item_tag, feed.cover_image_url)
            if item is None:
                skipped += 1
                continue
            feed.items.append(item)

        if skipped:
            logger.debug(f"Skipped {skipped} items without enclosure URL or GUID")
        logger.info(f"Parsed feed '{feed.title}' with {len(feed.items)} items")
        return feed

    def _parse_item(
        self, item: Tag, podcast_cover: Optional[str]
    ) -> Optional[NormalizedFeedItem]:
        """Parse one <item>, or None when GUID or enclosure URL is missing."""
        audio_url = _attr(_child(item, "enclosure"), "url")
        guid = _text(_child(item, "guid"))
        if not audio_url or not guid:
            return None

        publication_date, defaulted = resolve_publication_date(
            _text(_child(item, "pubDate"))
        )

        return NormalizedFeedItem(
            guid=guid,
            audio_url=audio_url,
            title=_text(_child(item, "title")),
            description=resolve_description(item),
            duration=parse_duration(_text(_child(item, "itunes:duration"))),
            publication_date=publication_date,
            publication_date_defaulted=defaulted,
            cover_image_url=_attr(_child(item, "itunes:image"), "href") or podcast_cover,
            episode_number=parse_int(_text(_child(item, "itunes:episode")) or None),
            season_number=parse_int(_text(_child(item, "itunes:season")) or None),
        )

    def _parse_atom(self, content: bytes) -> NormalizedFeed:
        """Map an Atom document parsed by feedparser onto a NormalizedFeed."""
        parsed = feedparser.parse(content)
        if parsed.bozo and parsed.get("bozo_exception"):
            logger.warning(f"Feed parsing warning: {parsed.bozo_exception}")

        f = parsed.feed
        title = (f.get("title") or "").strip()
        if not title:
            raise ParseError(NOT_A_FEED)

        publisher = f.get("publisher_detail") or {}
        image = f.get("image") or {}
        tags = f.get("tags") or []

        feed = NormalizedFeed(
            title=title,
            description=clean_html(f.get("subtitle")),
            language=f.get("language") or None,
            website_url=f.get("link") or None,
            author=_first(f.get("author"), publisher.get("name")) or title,
            cover_image_url=_first(image.get("href"), f.get("logo"), f.get("icon")),
            category=tags[0].get("term") if tags else None,
            explicit=parse_bool(f.get("itunes_explicit")),
        )

        for entry in parsed.entries:
            audio_url = None
            for enclosure in entry.get("enclosures", []):
                audio_url = enclosure.get("href")
                if audio_url:
                    break
            guid = (entry.get("id") or "").strip()
            if not audio_url or not guid:
                continue

            content_value = (entry.get("content") or [{}])[0].get("value")
            publication_date, defaulted = resolve_publication_date(
                entry.get("published") or entry.get("updated")
            )
            entry_image = entry.get("image") or {}

            feed.items.append(
                NormalizedFeedItem(
                    guid=guid,
                    audio_url=audio_url,
                    title=entry.get("title", ""),
                    description=clean_html(_first(entry.get("summary"), content_value)),
                    duration=parse_duration(entry.get("itunes_duration")),
                    publication_date=publication_date,
                    publication_date_defaulted=defaulted,
                    cover_image_url=entry_image.get("href") or feed.cover_image_url,
                    episode_number=parse_int(entry.get("itunes_episode")),
                    season_number=parse_int(entry.get("itunes_season")),
                )
            )

        logger.info(f"Parsed Atom feed '{feed.title}' with {len(feed.items)} items")
        return feed

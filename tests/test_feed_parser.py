"""Tests for the RSS feed parser."""

import pytest
from datetime import datetime
from unittest.mock import Mock, patch

from conftest import build_item, build_rss
from src.podcast.errors import FetchError, ParseError
from src.podcast.feed_parser import (
    FeedParser,
    clean_html,
    declare_missing_namespaces,
    parse_bool,
    parse_duration,
    parse_int,
    parse_pub_date,
    utcnow,
)


@pytest.fixture
def parser():
    """Provide a new FeedParser instance for tests."""
    return FeedParser()


# Sample RSS feed for testing
SAMPLE_RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Test Podcast</title>
    <description>A podcast for testing</description>
    <link>https://example.com</link>
    <language>en-us</language>
    <itunes:author>Test Author</itunes:author>
    <itunes:category text="Technology">
      <itunes:category text="Tech News"/>
    </itunes:category>
    <itunes:explicit>no</itunes:explicit>
    <itunes:image href="https://example.com/artwork.jpg"/>

    <item>
      <title>Episode 1: Introduction</title>
      <description>The first episode of our podcast.</description>
      <guid>episode-1-guid</guid>
      <pubDate>Mon, 01 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:episode>1</itunes:episode>
      <itunes:duration>01:30:00</itunes:duration>
      <enclosure url="https://example.com/ep1.mp3"
                 length="54000000"
                 type="audio/mpeg"/>
    </item>

    <item>
      <title>Episode 2: Deep Dive</title>
      <description><![CDATA[<p>A deeper look at the topic.</p>]]></description>
      <guid>episode-2-guid</guid>
      <pubDate>Mon, 08 Jan 2024 12:00:00 +0000</pubDate>
      <itunes:episode>2</itunes:episode>
      <itunes:season>1</itunes:season>
      <itunes:duration>45:30</itunes:duration>
      <itunes:image href="https://example.com/ep2.jpg"/>
      <enclosure url="https://example.com/ep2.mp3"
                 length="27000000"
                 type="audio/mpeg"/>
    </item>
  </channel>
</rss>"""


class TestFeedParser:
    """Tests for RSS feed parsing functionality."""

    def test_parse_channel_metadata(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        assert feed.title == "Test Podcast"
        assert feed.description == "A podcast for testing"
        assert feed.website_url == "https://example.com"
        assert feed.language == "en-us"
        assert feed.author == "Test Author"
        assert feed.cover_image_url == "https://example.com/artwork.jpg"
        assert feed.explicit is False

    def test_parse_category_and_subcategory(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        assert feed.category == "Technology"
        assert feed.subcategory == "Tech News"

    def test_parse_items(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        assert len(feed.items) == 2

        ep1 = feed.items[0]
        assert ep1.title == "Episode 1: Introduction"
        assert ep1.guid == "episode-1-guid"
        assert ep1.audio_url == "https://example.com/ep1.mp3"
        assert ep1.description == "The first episode of our podcast."
        assert ep1.episode_number == 1
        assert ep1.season_number is None

    def test_parse_item_duration(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        assert feed.items[0].duration == 5400
        assert feed.items[1].duration == 2730

    def test_parse_item_publication_date(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        ep1 = feed.items[0]
        assert ep1.publication_date == datetime(2024, 1, 1, 12, 0, 0)
        assert ep1.publication_date_defaulted is False

    def test_cdata_description_is_cleaned(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        assert feed.items[1].description == "A deeper look at the topic."

    def test_item_cover_image(self, parser):
        feed = parser.parse(SAMPLE_RSS_FEED)

        # Own image wins, otherwise the podcast artwork is used
        assert feed.items[1].cover_image_url == "https://example.com/ep2.jpg"
        assert feed.items[0].cover_image_url == "https://example.com/artwork.jpg"


class TestRequiredFields:
    """Items and channels missing required fields."""

    def test_item_without_enclosure_is_skipped(self, parser):
        items = (
            """
            <item>
              <title>No audio</title>
              <guid>no-audio</guid>
            </item>"""
            + build_item("with-audio")
        )
        feed = parser.parse(build_rss(items))

        assert [item.guid for item in feed.items] == ["with-audio"]

    def test_item_without_guid_is_skipped(self, parser):
        items = (
            """
            <item>
              <title>No GUID</title>
              <enclosure url="https://example.com/x.mp3" type="audio/mpeg"/>
            </item>"""
            + build_item("has-guid")
        )
        feed = parser.parse(build_rss(items))

        assert [item.guid for item in feed.items] == ["has-guid"]

    def test_blank_guid_and_enclosure_url_are_skipped(self, parser):
        items = """
            <item>
              <guid>   </guid>
              <enclosure url="https://example.com/x.mp3"/>
            </item>
            <item>
              <guid>blank-url</guid>
              <enclosure url=""/>
            </item>"""
        feed = parser.parse(build_rss(items))

        assert feed.items == []

    def test_missing_channel_raises(self, parser):
        content = b"""<?xml version="1.0"?><rss version="2.0"></rss>"""

        with pytest.raises(ParseError) as exc_info:
            parser.parse(content)

        assert "not a valid podcast feed" in str(exc_info.value)

    def test_empty_title_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse(build_rss(build_item("a"), title=""))

    def test_empty_content_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse(b"")

    def test_not_xml_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse(b"not xml at all - just random text")

    def test_malformed_markup_keeps_well_formed_elements(self, parser):
        # Unclosed <b> inside a title and a stray closing tag
        content = build_rss(
            build_item("ok-1", title="First")
            + """
            <item>
              <title>Broken <b>markup</title>
              <guid>ok-2</guid>
              <enclosure url="https://example.com/ok-2.mp3"/>
            </item></bogus>"""
        )
        feed = parser.parse(content)

        assert feed.title == "Test Podcast"
        assert "ok-1" in [item.guid for item in feed.items]


class TestFallbackChains:
    """First non-empty value wins."""

    def test_plain_author_beats_itunes_author(self, parser):
        extra = """
            <author>Plain Author</author>
            <itunes:author>iTunes Author</itunes:author>"""
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.author == "Plain Author"

    def test_owner_name_used_when_no_author(self, parser):
        extra = """
            <itunes:owner>
              <itunes:name>Owner Name</itunes:name>
              <itunes:email>owner@example.com</itunes:email>
            </itunes:owner>"""
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.author == "Owner Name"

    def test_title_used_when_no_author_at_all(self, parser):
        feed = parser.parse(build_rss(title="Lonely Show"))

        assert feed.author == "Lonely Show"

    def test_image_url_used_without_itunes_image(self, parser):
        extra = """
            <image>
              <url>https://example.com/rss-image.png</url>
              <title>Test Podcast</title>
            </image>"""
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.cover_image_url == "https://example.com/rss-image.png"

    def test_itunes_image_beats_image_url(self, parser):
        extra = """
            <image><url>https://example.com/rss-image.png</url></image>
            <itunes:image href="https://example.com/itunes.png"/>"""
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.cover_image_url == "https://example.com/itunes.png"

    def test_category_from_element_text(self, parser):
        extra = "<itunes:category>Comedy</itunes:category>"
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.category == "Comedy"
        assert feed.subcategory is None

    def test_only_first_category_counts(self, parser):
        extra = """
            <itunes:category text="Arts"/>
            <itunes:category text="News"><itunes:category text="Politics"/></itunes:category>"""
        feed = parser.parse(build_rss(channel_extra=extra))

        assert feed.category == "Arts"
        assert feed.subcategory is None

    def test_summary_beats_description(self, parser):
        extra = """
            <itunes:summary>Summary text</itunes:summary>
            <description>Description text</description>"""
        feed = parser.parse(build_rss(build_item("a", extra=extra)))

        assert feed.items[0].description == "Summary text"

    def test_content_encoded_used_last(self, parser):
        extra = "<content:encoded><![CDATA[<p>Line one<br/>Line two</p>]]></content:encoded>"
        feed = parser.parse(build_rss(build_item("a", extra=extra)))

        assert feed.items[0].description == "Line one\nLine two"

    def test_explicit_channel_flag(self, parser):
        feed = parser.parse(build_rss(channel_extra="<itunes:explicit>Yes</itunes:explicit>"))

        assert feed.explicit is True


class TestItemValues:
    """Lenient per-item value parsing."""

    def test_unparseable_date_defaults_to_now(self, parser):
        before = utcnow().replace(microsecond=0)
        feed = parser.parse(build_rss(build_item("a", pub_date="sometime last week")))

        item = feed.items[0]
        assert item.publication_date_defaulted is True
        assert item.publication_date >= before

    def test_missing_date_defaults_to_now(self, parser):
        feed = parser.parse(build_rss(build_item("a", pub_date="")))

        assert feed.items[0].publication_date_defaulted is True
        assert feed.items[0].publication_date is not None

    def test_bad_episode_and_season_numbers_are_none(self, parser):
        extra = "<itunes:episode>one</itunes:episode><itunes:season>S2</itunes:season>"
        feed = parser.parse(build_rss(build_item("a", extra=extra)))

        assert feed.items[0].episode_number is None
        assert feed.items[0].season_number is None

    def test_bad_duration_is_zero(self, parser):
        extra = "<itunes:duration>about an hour</itunes:duration>"
        feed = parser.parse(build_rss(build_item("a", extra=extra)))

        assert feed.items[0].duration == 0


UNDECLARED_ITUNES_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Loose Feed</title>
    <itunes:author>Jane Host</itunes:author>
    <itunes:category text="Technology">
      <itunes:category text="Podcasting"/>
    </itunes:category>
    <item>
      <title>Episode Four</title>
      <guid>ep-4</guid>
      <enclosure url="https://example.com/ep4.mp3" type="audio/mpeg" length="1000"/>
      <itunes:duration>1:30:00</itunes:duration>
      <itunes:episode>4</itunes:episode>
      <itunes:image href="https://example.com/ep4.jpg"/>
      <content:encoded><![CDATA[<p>Show notes</p>]]></content:encoded>
    </item>
  </channel>
</rss>"""


class TestUndeclaredNamespaces:
    """Feeds that use itunes: or content: elements without declaring them."""

    def test_itunes_fields_survive(self, parser):
        feed = parser.parse(UNDECLARED_ITUNES_FEED)

        assert feed.author == "Jane Host"
        assert feed.category == "Technology"
        assert feed.subcategory == "Podcasting"
        item = feed.items[0]
        assert item.duration == 5400
        assert item.episode_number == 4
        assert item.cover_image_url == "https://example.com/ep4.jpg"
        assert item.description == "Show notes"

    def test_str_content(self, parser):
        feed = parser.parse(UNDECLARED_ITUNES_FEED.decode("utf-8"))

        assert feed.items[0].duration == 5400

    def test_declares_only_missing_prefixes(self):
        content = declare_missing_namespaces(UNDECLARED_ITUNES_FEED)

        assert b'xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"' in content
        assert b'xmlns:content="http://purl.org/rss/1.0/modules/content/"' in content

    def test_declared_feed_unchanged(self):
        content = build_rss(build_item("a", extra="<itunes:episode>1</itunes:episode>"))

        assert declare_missing_namespaces(content) == content

class TestDurationParsing:
    """Tests for duration parsing."""

    def test_parse_duration_seconds(self):
        assert parse_duration("90") == 90
        assert parse_duration(" 3600 ") == 3600

    def test_parse_duration_hh_mm_ss(self):
        assert parse_duration("01:30:00") == 5400
        assert parse_duration("2:30:45") == 9045

    def test_parse_duration_mm_ss(self):
        assert parse_duration("05:30") == 330
        assert parse_duration("60:00") == 3600

    def test_parse_duration_invalid(self):
        assert parse_duration("garbage") == 0
        assert parse_duration("1:2:3:4") == 0
        assert parse_duration("aa:bb") == 0
        assert parse_duration("") == 0
        assert parse_duration(None) == 0


class TestDateParsing:
    """Tests for publication date parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Mon, 02 Jan 2006 15:04:05 -0700", datetime(2006, 1, 2, 22, 4, 5)),
            ("Mon, 2 Jan 2006 15:04:05 -0700", datetime(2006, 1, 2, 22, 4, 5)),
            ("Mon, 02 Jan 2006 15:04:05 GMT", datetime(2006, 1, 2, 15, 4, 5)),
            ("Mon, 02 Jan 2006 15:04:05 MST", datetime(2006, 1, 2, 22, 4, 5)),
            ("02 Jan 06 15:04 +0000", datetime(2006, 1, 2, 15, 4, 0)),
            ("2006-01-02T15:04:05-07:00", datetime(2006, 1, 2, 22, 4, 5)),
            ("2024-01-15T10:30:00Z", datetime(2024, 1, 15, 10, 30, 0)),
            ("2006-01-02 15:04:05", datetime(2006, 1, 2, 15, 4, 5)),
        ],
    )
    def test_supported_formats(self, value, expected):
        assert parse_pub_date(value) == expected

    def test_result_is_naive_utc(self):
        parsed = parse_pub_date("Mon, 02 Jan 2006 15:04:05 +0200")

        assert parsed.tzinfo is None
        assert parsed == datetime(2006, 1, 2, 13, 4, 5)

    def test_unrecognized_returns_none(self):
        assert parse_pub_date("garbage") is None
        assert parse_pub_date("") is None
        assert parse_pub_date(None) is None


class TestHTMLCleaning:
    """Tests for HTML cleaning."""

    def test_remove_html_tags(self):
        assert clean_html("<p>Hello</p>") == "Hello"
        assert clean_html("<b>Bold</b> text") == "Bold text"

    def test_line_breaks_become_newlines(self):
        assert clean_html("one<br>two<br/>three<br />four") == "one\ntwo\nthree\nfour"

    def test_decode_html_entities(self):
        assert clean_html("Tom &amp; Jerry") == "Tom & Jerry"
        assert clean_html("&lt;not a tag&gt;") == "<not a tag>"
        assert clean_html("&quot;quoted&quot; &#39;single&#39;") == "\"quoted\" 'single'"
        assert clean_html("a&nbsp;b") == "a b"

    def test_trims_but_keeps_inner_whitespace(self):
        assert clean_html("  multiple   spaces  ") == "multiple   spaces"

    def test_handle_none(self):
        assert clean_html(None) is None
        assert clean_html("") is None
        assert clean_html("<p> </p>") is None


class TestFlagParsing:
    def test_parse_bool(self):
        assert parse_bool("yes") is True
        assert parse_bool("TRUE") is True
        assert parse_bool("1") is True
        assert parse_bool("no") is False
        assert parse_bool("clean") is False
        assert parse_bool("explicit") is False
        assert parse_bool(None) is False

    def test_parse_int(self):
        assert parse_int("12") == 12
        assert parse_int(" 3 ") == 3
        assert parse_int("1.5") is None
        assert parse_int(None) is None


class TestAtomFeeds:
    """Atom documents are mapped onto the same shape."""

    ATOM_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Cast</title>
  <link href="https://atom.example.com/"/>
  <id>urn:uuid:feed</id>
  <updated>2024-01-15T10:30:00Z</updated>
  <entry>
    <title>First Entry</title>
    <id>urn:uuid:entry-1</id>
    <updated>2024-01-15T10:30:00Z</updated>
    <summary>Hello &amp; welcome</summary>
    <link rel="enclosure" type="audio/mpeg" length="1000" href="https://atom.example.com/1.mp3"/>
  </entry>
  <entry>
    <title>No Audio</title>
    <id>urn:uuid:entry-2</id>
    <updated>2024-01-16T10:30:00Z</updated>
  </entry>
</feed>"""

    def test_parse_atom(self, parser):
        feed = parser.parse(self.ATOM_FEED)

        assert feed.title == "Atom Cast"
        assert feed.author == "Atom Cast"
        assert len(feed.items) == 1

        item = feed.items[0]
        assert item.guid == "urn:uuid:entry-1"
        assert item.audio_url == "https://atom.example.com/1.mp3"
        assert item.publication_date == datetime(2024, 1, 15, 10, 30, 0)


class TestParseUrl:
    """Tests for parse_url method."""

    def test_parse_url_success(self, parser):
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.iter_content.return_value = [SAMPLE_RSS_FEED]

        with patch.object(parser.fetcher._session, "get", return_value=mock_response):
            feed = parser.parse_url("https://example.com/feed.xml")

        assert feed.title == "Test Podcast"
        assert len(feed.items) == 2

    def test_parse_url_http_error(self, parser):
        mock_response = Mock()
        mock_response.status_code = 500
        mock_response.reason = "Internal Server Error"

        with patch.object(parser.fetcher._session, "get", return_value=mock_response):
            with pytest.raises(FetchError):
                parser.parse_url("https://example.com/feed.xml")

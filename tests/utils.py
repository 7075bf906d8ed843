"""
Builders for test episodes, feed documents and HTTP responses.
"""

from email.utils import formatdate
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import MagicMock
from xml.sax.saxutils import escape

from requests.structures import CaseInsensitiveDict

from podsync.models import Channel, Episode

DAY = 86400
# 2024-01-01T00:00:00Z
BASE_TIME = 1704067200


def create_test_episode(**overrides: Any) -> Episode:
    """Create an Episode with sensible defaults."""
    index = overrides.get("index", 0)
    values: Dict[str, Any] = {
        "title": f"Episode {index}",
        "url": f"http://test.com/ep{index}.mp3",
        "id": f"guid-{index}",
        "published": BASE_TIME + index * DAY,
        "index": index,
    }
    values.update(overrides)
    if "raw" not in values:
        values["raw"] = {"title": values["title"], "id": values["id"]}
    return Episode(**values)


def create_test_channel(title: str = "Test Podcast", **raw: Any) -> Channel:
    """Create a Channel whose raw metadata includes its title."""
    return Channel(title=title, raw={"title": title, **raw})


def create_rss_item(
    index: int,
    published: Optional[int] = None,
    title: Optional[str] = None,
    guid: Optional[str] = None,
    url: Optional[str] = None,
    media_type: str = "audio/mpeg",
) -> Dict[str, Any]:
    """Describe one RSS item for build_rss()."""
    return {
        "title": f"Episode {index}" if title is None else title,
        "guid": f"guid-{index}" if guid is None else guid,
        "url": f"http://test.com/ep{index}.mp3" if url is None else url,
        "published": BASE_TIME + index * DAY if published is None else published,
        "type": media_type,
    }


def build_rss(
    items: Iterable[Dict[str, Any]], channel_title: str = "Test Podcast"
) -> bytes:
    """Build an RSS 2.0 document.

    Item keys set to an empty string are left out of the item.
    """
    parts: List[str] = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{escape(channel_title)}</title>",
        "<link>http://test.com</link>",
        "<description>A podcast for tests</description>",
    ]
    for item in items:
        parts.append("<item>")
        if item.get("title"):
            parts.append(f"<title>{escape(item['title'])}</title>")
        if item.get("guid"):
            parts.append(
                f'<guid isPermaLink="false">{escape(item["guid"])}</guid>'
            )
        if item.get("published"):
            parts.append(
                f"<pubDate>{formatdate(item['published'], usegmt=True)}</pubDate>"
            )
        if item.get("url"):
            parts.append(
                f'<enclosure url="{escape(item["url"])}" '
                f'type="{item.get("type", "audio/mpeg")}" length="0"/>'
            )
        parts.append("</item>")
    parts.extend(["</channel>", "</rss>"])
    return "\n".join(parts).encode("utf-8")


def create_mock_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    piece_size: int = 4,
) -> MagicMock:
    """Mock of a (streamed) requests response usable as a context manager.

    The body is streamed in ``piece_size`` byte chunks.
    """
    pieces = [
        content[i : i + piece_size] for i in range(0, len(content), piece_size)
    ]
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = CaseInsensitiveDict(headers or {})
    response.iter_content.side_effect = lambda chunk_size=None: iter(pieces)
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response

"""
Feed parsing into Channel and Episode models.
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple

import feedparser

from .errors import FeedParseError
from .models import Channel, Episode
from .utils import struct_time_to_unix


class FeedParser:
    """Parses feed documents into episodes ready for selection."""

    def __init__(self) -> None:
        """Initialize parser."""
        self.logger = logging.getLogger(__name__)

    def parse(self, content: bytes) -> Tuple[Channel, List[Episode]]:
        """Parse a feed document.

        Entries are sorted by publish date (oldest first) and indexed in
        that order before entries missing a required field are dropped,
        so a dropped entry leaves a gap in the indices.

        Raises:
            FeedParseError: If the document has no channel and no entries
        """
        parsed = feedparser.parse(content)

        if parsed.bozo and not parsed.entries and not parsed.feed:
            raise FeedParseError(
                f"Failed to parse feed: {parsed.get('bozo_exception')}"
            )

        channel = Channel(
            title=parsed.feed.get("title", ""),
            raw=parsed.feed,
        )

        entries = sorted(
            parsed.entries,
            key=lambda entry: self._published(entry) or 0,
        )

        episodes: List[Episode] = []
        for index, entry in enumerate(entries):
            episode = self.episode_from_entry(entry, index)
            if episode is None:
                continue
            episodes.append(episode)

        self.logger.info(
            "Parsed %d episodes from '%s' (%d entries skipped)",
            len(episodes),
            channel.title,
            len(entries) - len(episodes),
        )
        return channel, episodes

    def episode_from_entry(
        self, entry: Mapping[str, Any], index: int
    ) -> Optional[Episode]:
        """Build an Episode, or None if a required field is missing."""
        title = entry.get("title")
        url = self._enclosure_url(entry)
        guid = entry.get("id")
        published = self._published(entry)

        if not title or not url or not guid or published is None:
            self.logger.debug(
                "Skipping entry %d with missing fields "
                "(title=%r, url=%r, id=%r, published=%r)",
                index,
                title,
                url,
                guid,
                published,
            )
            return None

        return Episode(
            title=title,
            url=url,
            id=guid,
            published=published,
            index=index,
            raw=entry,
        )

    @staticmethod
    def _enclosure_url(entry: Mapping[str, Any]) -> Optional[str]:
        for enclosure in entry.get("enclosures") or []:
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                return href
        return None

    @staticmethod
    def _published(entry: Mapping[str, Any]) -> Optional[int]:
        return struct_time_to_unix(entry.get("published_parsed"))

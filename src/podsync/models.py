"""
Data models for feeds, episodes, retention policies and ledger entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union


class FeedFiles:
    """Reserved file names inside a feed's download directory."""

    LEDGER = ".downloaded"
    PARTIAL_SUFFIX = ".partial"


@dataclass
class Episode:
    """A single downloadable entry from a feed listing.

    ``index`` is the entry's position in the listing after sorting by
    publish date, 0 being the oldest. ``raw`` is the parsed feed entry and
    backs ``rss::episode::`` lookups when naming files.
    """

    title: str
    url: str
    id: str
    published: int
    index: int
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class Channel:
    """Channel-level metadata of a feed."""

    title: str
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class StandardPolicy:
    """Keep episodes that pass every configured bound.

    A bound left as None always passes.
    """

    max_age_days: Optional[int] = None
    max_episode_count: Optional[int] = None
    earliest_date: Optional[int] = None


@dataclass(frozen=True)
class BacklogPolicy:
    """Release one more episode, oldest first, every ``interval_days``."""

    start: int
    interval_days: int

    def __post_init__(self) -> None:
        if self.interval_days <= 0:
            raise ValueError("interval_days must be positive")


RetentionPolicy = Union[StandardPolicy, BacklogPolicy]


@dataclass(frozen=True)
class LedgerEntry:
    """One line of a feed's download ledger."""

    episode_id: str
    recorded_at: int
    title: str = ""

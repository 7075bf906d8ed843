"""
Episode selection under a feed's retention policy.

Standard feeds download the newest eligible episodes first. Backlog feeds
work through the archive from the oldest episode, releasing one more
every ``interval_days``.
"""

from typing import AbstractSet, List, Optional, Sequence

from .models import BacklogPolicy, Episode, RetentionPolicy, StandardPolicy
from .utils import current_unix

SECONDS_PER_DAY = 86400


def passes_standard_policy(
    policy: StandardPolicy, episode: Episode, total_count: int, now: int
) -> bool:
    """True if the episode passes every configured bound."""
    if policy.max_age_days is not None:
        if now - episode.published > policy.max_age_days * SECONDS_PER_DAY:
            return False

    if policy.max_episode_count is not None:
        if total_count - policy.max_episode_count > episode.index:
            return False

    if policy.earliest_date is not None:
        if episode.published < policy.earliest_date:
            return False

    return True


def current_backlog_bucket(policy: BacklogPolicy, now: int) -> int:
    """Highest episode index whose release slot has arrived."""
    days_passed = (now - policy.start) // SECONDS_PER_DAY
    return days_passed // policy.interval_days


def select_episodes(
    policy: RetentionPolicy,
    episodes: Sequence[Episode],
    already_retrieved: AbstractSet[str],
    total_count: int,
    now: Optional[int] = None,
) -> List[Episode]:
    """Pick the episodes to download, in download order.

    Args:
        policy: Resolved retention policy of the feed
        episodes: Feed episodes ordered by ascending index
        already_retrieved: Episode ids recorded in the feed's ledger
        total_count: Number of episodes in the listing
        now: Current unix time (defaults to the wall clock)

    Returns:
        Episodes to fetch, newest first for standard feeds and oldest
        first for backlog feeds.
    """
    now = current_unix() if now is None else now
    candidates = [ep for ep in episodes if ep.id not in already_retrieved]

    if isinstance(policy, BacklogPolicy):
        bucket = current_backlog_bucket(policy, now)
        selected = [ep for ep in candidates if ep.index <= bucket]
        return sorted(selected, key=lambda ep: ep.index)

    selected = [
        ep
        for ep in candidates
        if passes_standard_policy(policy, ep, total_count, now)
    ]
    return sorted(selected, key=lambda ep: ep.index, reverse=True)

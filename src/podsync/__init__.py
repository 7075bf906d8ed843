"""
podsync - Keeps local folders in sync with podcast feeds.

Fetches each configured feed, picks new episodes under the feed's
retention or backlog policy, downloads them with resumable transfers,
records them in a per-feed ledger and names the files from a template.
"""

from .factory import create_manager, create_managers_from_config
from .manager import PodcastManager, SyncResult, SyncState
from .models import BacklogPolicy, Channel, Episode, StandardPolicy
from .runner import SyncSummary, sync_all

__all__ = [
    "create_manager",
    "create_managers_from_config",
    "PodcastManager",
    "SyncResult",
    "SyncState",
    "SyncSummary",
    "sync_all",
    "BacklogPolicy",
    "Channel",
    "Episode",
    "StandardPolicy",
]

"""
Per-feed synchronization.

A PodcastManager runs one feed's sync: fetch the listing, select the
episodes to download, then push them one at a time through the episode
pipeline. The first failure ends the feed's run; everything completed
before it stays recorded and renamed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from tqdm import tqdm

from .config import FeedSettings
from .downloader import download_feed
from .episode_downloader import EpisodeDownloader
from .ledger import DownloadLedger
from .models import Channel, Episode
from .parser import FeedParser
from .retry import RetryConfig
from .selector import select_episodes
from .storage import Storage
from .utils import fit_text

TITLE_WIDTH = 30


class SyncState(Enum):
    """Where a feed's sync is, or where it stopped."""

    PENDING = "pending"
    FETCHING = "fetching"
    SELECTING = "selecting"
    TRANSFERRING = "transferring"
    RECORDING = "recording"
    TAGGING = "tagging"
    NAMING = "naming"
    HOOKING = "hooking"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of one feed's sync."""

    feed: str
    state: SyncState
    file_paths: List[Path] = field(default_factory=list)
    error: Optional[str] = None
    failed_step: Optional[SyncState] = None

    @property
    def success(self) -> bool:
        """True if the feed finished without errors."""
        return self.state is SyncState.DONE


class PodcastManager:
    """
    Orchestrates the listing fetch, episode selection and downloads of a
    single feed.
    """

    def __init__(
        self,
        settings: FeedSettings,
        ledger: Optional[DownloadLedger] = None,
        downloader: Optional[EpisodeDownloader] = None,
        parser: Optional[FeedParser] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize with the feed's settings; collaborators are optional."""
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.storage = Storage()
        self.retry_config = retry_config
        self.ledger = ledger or DownloadLedger(settings.feed_dir, self.storage)
        self.downloader = downloader or EpisodeDownloader(
            settings, self.ledger, self.storage, retry_config
        )
        self.parser = parser or FeedParser()
        self.state = SyncState.PENDING

    @property
    def name(self) -> str:
        """The feed's configured name."""
        return self.settings.name

    def fetch_episodes(self) -> Tuple[Channel, List[Episode]]:
        """Download and parse the feed listing."""
        content = download_feed(self.settings.url, self.retry_config)
        return self.parser.parse(content)

    def get_new_episodes(
        self, episodes: List[Episode], now: Optional[int] = None
    ) -> List[Episode]:
        """Episodes to download this run, in download order."""
        already_retrieved = self.ledger.load_ids()
        selected = select_episodes(
            self.settings.policy,
            episodes,
            already_retrieved,
            total_count=len(episodes),
            now=now,
        )
        self.logger.info(
            "%s: %d new episodes out of %d total episodes",
            self.name,
            len(selected),
            len(episodes),
        )
        return selected

    def sync(
        self,
        show_progress: bool = True,
        position: int = 0,
        now: Optional[int] = None,
    ) -> SyncResult:
        """Run one sync of this feed.

        Never raises for feed-level failures; the error is returned in the
        result along with any files produced before it.
        """
        result = SyncResult(feed=self.name, state=SyncState.PENDING)
        progress_bar: Optional[tqdm] = None

        try:
            progress_bar = tqdm(
                total=None,
                unit="B",
                unit_scale=True,
                desc=self.name,
                position=position,
                leave=True,
                disable=not show_progress,
            )

            self._set_state(SyncState.FETCHING)
            channel, episodes = self.fetch_episodes()

            self._set_state(SyncState.SELECTING)
            selected = self.get_new_episodes(episodes, now=now)

            for i, episode in enumerate(selected, 1):
                progress_bar.set_description(
                    f"{self.name} {i}/{len(selected)} "
                    f"{fit_text(episode.title, TITLE_WIDTH)}"
                )
                file_path = self.downloader.process(
                    episode,
                    channel,
                    progress_callback=_bar_callback(progress_bar),
                    on_step=lambda step: self._set_state(SyncState(step)),
                )
                result.file_paths.append(file_path)
        except Exception as e:  # pylint: disable=broad-except
            self.logger.error(
                "%s: sync failed while %s: %s",
                self.name,
                self.state.value,
                e,
            )
            result.failed_step = self.state
            result.error = f"{type(e).__name__}: {e}"
            self._set_state(SyncState.FAILED)
            if progress_bar is not None:
                progress_bar.set_description(f"FAILED {self.name}")
        else:
            self._set_state(SyncState.DONE)
            progress_bar.set_description(f"done {self.name}")
        finally:
            if progress_bar is not None:
                progress_bar.close()

        result.state = self.state
        return result

    def _set_state(self, state: SyncState) -> None:
        self.logger.debug("%s: %s -> %s", self.name, self.state.value, state.value)
        self.state = state


def _bar_callback(progress_bar: tqdm):
    """Progress callback that mirrors a transfer onto a tqdm bar."""

    def update(downloaded: int, total: Optional[int]) -> None:
        if progress_bar.total != total:
            progress_bar.total = total
        progress_bar.n = downloaded
        progress_bar.refresh()

    return update

"""
Per-episode download pipeline.

Each selected episode goes through the same steps, strictly in order:
transfer, ledger append, ID3 tags, rename, post-download hook. Any step
raising stops the pipeline; the caller decides what that means for the
rest of the feed.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional

from .config import FeedSettings
from .downloader import ProgressCallback, download_episode_file
from .ledger import DownloadLedger
from .models import Channel, Episode
from .namer import rename_file
from .retry import RetryConfig
from .storage import Storage
from .tags import is_taggable, write_mp3_tags

# Called with the step name before each step starts.
StepCallback = Callable[[str], None]


class EpisodeDownloader:
    """Runs the download pipeline for episodes of one feed."""

    def __init__(
        self,
        settings: FeedSettings,
        ledger: DownloadLedger,
        storage: Optional[Storage] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize with the feed's settings and ledger."""
        self.settings = settings
        self.ledger = ledger
        self.storage = storage or Storage()
        self.retry_config = retry_config
        self.logger = logging.getLogger(__name__)

    def process(
        self,
        episode: Episode,
        channel: Channel,
        progress_callback: Optional[ProgressCallback] = None,
        on_step: Optional[StepCallback] = None,
    ) -> Path:
        """Download, record, tag, rename and hook one episode.

        Returns:
            Final path of the episode file
        """

        def step(name: str) -> None:
            if on_step:
                on_step(name)

        step("transferring")
        file_path = download_episode_file(
            episode.url,
            self.settings.feed_dir,
            episode.id,
            progress_callback=progress_callback,
            retry_config=self.retry_config,
            storage=self.storage,
        )

        step("recording")
        self.ledger.append(episode.id, episode.title)

        step("tagging")
        tags = None
        if is_taggable(file_path):
            tags = write_mp3_tags(
                file_path, episode, channel, self.settings.custom_tags
            )

        step("naming")
        file_path = rename_file(
            file_path,
            self.settings.name_pattern,
            episode,
            channel,
            tags,
            storage=self.storage,
        )

        if self.settings.download_hook:
            step("hooking")
            self.run_hook(file_path)

        self.logger.info("Downloaded: %s", episode.title)
        return file_path

    def run_hook(self, file_path: Path) -> None:
        """Run the post-download hook with the file path as its argument.

        The hook's exit status does not affect the download. Failing to
        launch it at all raises OSError.
        """
        hook = self.settings.download_hook
        self.logger.debug("Running download hook %s %s", hook, file_path)
        result = subprocess.run(
            [str(hook), str(file_path)],
            capture_output=True,
            check=False,
        )
        if result.returncode != 0:
            self.logger.warning(
                "Download hook %s exited with %d for %s",
                hook,
                result.returncode,
                file_path.name,
            )

"""
Factory functions for creating PodcastManager instances.

This module wires each feed's settings to its ledger and episode pipeline.
"""

import logging
from pathlib import Path
from typing import List, Optional

from .config import ConfigManager, FeedSettings
from .episode_downloader import EpisodeDownloader
from .ledger import DownloadLedger
from .manager import PodcastManager
from .parser import FeedParser
from .retry import RetryConfig
from .storage import Storage


def create_manager(
    settings: FeedSettings, retry_config: Optional[RetryConfig] = None
) -> PodcastManager:
    """Create a PodcastManager with its own ledger and pipeline."""
    storage = Storage()
    ledger = DownloadLedger(settings.feed_dir, storage)
    downloader = EpisodeDownloader(settings, ledger, storage, retry_config)
    return PodcastManager(
        settings,
        ledger=ledger,
        downloader=downloader,
        parser=FeedParser(),
        retry_config=retry_config,
    )


def create_managers_from_config(
    config_dir: Optional[Path] = None,
    retry_config: Optional[RetryConfig] = None,
) -> List[PodcastManager]:
    """Create one PodcastManager per configured feed, sorted by name.

    Raises:
        ConfigError: If the configuration is missing or invalid
    """
    logger = logging.getLogger(__name__)
    config_manager = ConfigManager(config_dir)
    logger.info("Loading configuration from %s", config_manager.config_dir)

    managers = [
        create_manager(settings, retry_config)
        for settings in config_manager.load_feed_settings()
    ]
    logger.info("Created %d feed managers", len(managers))
    return managers

"""
Base test class for podsync tests.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from podsync.config import FeedSettings
from podsync.models import RetentionPolicy, StandardPolicy
from podsync.retry import TEST_RETRY_CONFIG


class PodsyncTestBase(unittest.TestCase):
    """Base test class with a temporary download directory."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.test_dir = Path(tempfile.mkdtemp(prefix="podsync_test_"))

        retry_patch = patch(
            "podsync.retry.DEFAULT_RETRY_CONFIG", TEST_RETRY_CONFIG
        )
        retry_patch.start()
        self.addCleanup(retry_patch.stop)

    def tearDown(self) -> None:
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def create_settings(
        self,
        name: str = "Test Podcast",
        policy: RetentionPolicy = StandardPolicy(),
        **overrides,
    ) -> FeedSettings:
        """Create FeedSettings rooted in the temporary directory."""
        values = {
            "name": name,
            "url": "http://test.com/rss",
            "download_path": self.test_dir,
            "policy": policy,
        }
        values.update(overrides)
        return FeedSettings(**values)

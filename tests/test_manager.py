"""
End-to-end tests for syncing a single feed with PodcastManager.
"""

from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import Mock, patch

from podsync.factory import create_manager
from podsync.manager import PodcastManager, SyncState
from podsync.models import BacklogPolicy, StandardPolicy

from tests.base import PodsyncTestBase
from tests.utils import (
    BASE_TIME,
    DAY,
    build_rss,
    create_mock_response,
    create_rss_item,
)

FEED_URL = "http://test.com/rss"
MP3_HEADERS = {"content-type": "audio/mpeg"}


class FakeServer:
    """Serves a feed document and its enclosures to a patched requests.get."""

    def __init__(self, items: List[Dict], failing: Optional[Dict[str, int]] = None):
        self.feed = build_rss(items)
        self.failing = failing or {}
        self.feed_status = 200
        self.episode_requests: List[str] = []

    def get(self, url, headers=None, stream=False, timeout=None):
        """Answer one GET request."""
        if url == FEED_URL:
            return create_mock_response(
                status_code=self.feed_status, content=self.feed
            )

        self.episode_requests.append(url)
        if url in self.failing:
            return create_mock_response(status_code=self.failing[url])
        return create_mock_response(
            content=b"audio:" + url.encode("utf-8"), headers=MP3_HEADERS
        )


class TestPodcastManagerSync(PodsyncTestBase):
    """Test suite for PodcastManager.sync."""

    def make_manager(self, policy=StandardPolicy(), **overrides) -> PodcastManager:
        """Create a manager for a feed in the temporary directory."""
        return create_manager(self.create_settings(policy=policy, **overrides))

    def sync(self, manager: PodcastManager, server: FakeServer, now=None):
        """Run a sync against the fake server."""
        with patch("requests.get", side_effect=server.get):
            return manager.sync(show_progress=False, now=now)

    def test_max_episode_count_downloads_newest_first(self) -> None:
        """Three episodes, keep two: episode 2 then episode 1."""
        server = FakeServer([create_rss_item(i) for i in range(3)])
        manager = self.make_manager(StandardPolicy(max_episode_count=2))

        result = self.sync(manager, server, now=BASE_TIME + 10 * DAY)

        self.assertTrue(result.success)
        self.assertEqual(
            server.episode_requests,
            ["http://test.com/ep2.mp3", "http://test.com/ep1.mp3"],
        )
        self.assertEqual(manager.ledger.load_ids(), {"guid-1", "guid-2"})
        self.assertEqual(
            [path.name for path in result.file_paths],
            ["2024-01-03 Episode 2.mp3", "2024-01-02 Episode 1.mp3"],
        )
        for path in result.file_paths:
            self.assertEqual(path.parent, self.test_dir / "Test Podcast")
            self.assertTrue(path.exists())

    def test_second_sync_downloads_nothing(self) -> None:
        """Ledger entries are never downloaded again."""
        server = FakeServer([create_rss_item(i) for i in range(3)])
        manager = self.make_manager()
        self.sync(manager, server, now=BASE_TIME)
        server.episode_requests.clear()

        result = self.sync(manager, server, now=BASE_TIME)

        self.assertTrue(result.success)
        self.assertEqual(result.file_paths, [])
        self.assertEqual(server.episode_requests, [])

    def test_backlog_downloads_oldest_first(self) -> None:
        """Daily backlog started two days ago: episodes 0, 1 and 2."""
        now = BASE_TIME + 30 * DAY
        server = FakeServer([create_rss_item(i) for i in range(5)])
        manager = self.make_manager(
            BacklogPolicy(start=now - 2 * DAY, interval_days=1)
        )

        result = self.sync(manager, server, now=now)

        self.assertTrue(result.success)
        self.assertEqual(
            server.episode_requests,
            [f"http://test.com/ep{i}.mp3" for i in range(3)],
        )
        self.assertEqual(
            manager.ledger.load_ids(), {"guid-0", "guid-1", "guid-2"}
        )

    def test_failure_stops_feed_and_keeps_earlier_episodes(self) -> None:
        """A failing episode ends the run; earlier ones stay recorded."""
        server = FakeServer(
            [create_rss_item(i) for i in range(3)],
            failing={"http://test.com/ep1.mp3": 404},
        )
        manager = self.make_manager()

        result = self.sync(manager, server, now=BASE_TIME)

        self.assertFalse(result.success)
        self.assertIs(result.state, SyncState.FAILED)
        self.assertIs(result.failed_step, SyncState.TRANSFERRING)
        self.assertIn("InvalidRequestError", result.error)
        self.assertEqual(
            server.episode_requests,
            ["http://test.com/ep2.mp3", "http://test.com/ep1.mp3"],
        )
        self.assertEqual(len(result.file_paths), 1)
        self.assertEqual(manager.ledger.load_ids(), {"guid-2"})

    def test_feed_fetch_failure(self) -> None:
        """A feed that can't be fetched fails before any transfer."""
        server = FakeServer([create_rss_item(0)])
        server.feed_status = 404
        manager = self.make_manager()

        result = self.sync(manager, server)

        self.assertIs(result.state, SyncState.FAILED)
        self.assertIs(result.failed_step, SyncState.FETCHING)
        self.assertEqual(server.episode_requests, [])

    def test_episode_ids_recorded_before_rename(self) -> None:
        """The ledger holds the episode even though its file was renamed."""
        server = FakeServer([create_rss_item(0)])
        manager = self.make_manager()

        result = self.sync(manager, server, now=BASE_TIME)

        (entry,) = manager.ledger.load_entries()
        self.assertEqual(entry.episode_id, "guid-0")
        self.assertEqual(entry.title, "Episode 0")
        self.assertEqual(result.file_paths[0].name, "2024-01-01 Episode 0.mp3")

    def test_custom_name_pattern(self) -> None:
        """The feed's pattern names the file; channel fields are available."""
        server = FakeServer([create_rss_item(0)])
        manager = self.make_manager(
            name_pattern="{rss::channel::title} - {id3::TIT2}"
        )

        result = self.sync(manager, server, now=BASE_TIME)

        self.assertEqual(
            result.file_paths[0].name, "Test Podcast - Episode 0.mp3"
        )

    def test_non_mp3_is_not_tagged(self) -> None:
        """Other media types are renamed but keep their bytes untouched."""
        server = FakeServer([create_rss_item(0, url="http://test.com/ep0.ogg")])
        manager = self.make_manager()

        with patch("podsync.episode_downloader.write_mp3_tags") as mock_tags:
            with patch(
                "requests.get",
                side_effect=lambda url, **kwargs: (
                    create_mock_response(content=server.feed)
                    if url == FEED_URL
                    else create_mock_response(content=b"ogg-bytes")
                ),
            ):
                result = manager.sync(show_progress=False, now=BASE_TIME)

        mock_tags.assert_not_called()
        path = result.file_paths[0]
        self.assertEqual(path.name, "2024-01-01 Episode 0.ogg")
        self.assertEqual(path.read_bytes(), b"ogg-bytes")

    @patch("podsync.episode_downloader.subprocess.run")
    def test_hook_runs_with_final_path(self, mock_run: Mock) -> None:
        """The hook gets the renamed file as its only argument."""
        mock_run.return_value = Mock(returncode=0)
        server = FakeServer([create_rss_item(0)])
        manager = self.make_manager(download_hook=Path("/opt/hooks/on-download"))

        result = self.sync(manager, server, now=BASE_TIME)

        self.assertTrue(result.success)
        args, _ = mock_run.call_args
        self.assertEqual(
            args[0], ["/opt/hooks/on-download", str(result.file_paths[0])]
        )

    @patch("podsync.episode_downloader.subprocess.run")
    def test_hook_exit_status_is_not_a_failure(self, mock_run: Mock) -> None:
        """A hook exiting non-zero only produces a warning."""
        mock_run.return_value = Mock(returncode=3)
        server = FakeServer([create_rss_item(0), create_rss_item(1)])
        manager = self.make_manager(download_hook=Path("/opt/hooks/on-download"))

        with self.assertLogs("podsync.episode_downloader", level="WARNING"):
            result = self.sync(manager, server, now=BASE_TIME)

        self.assertTrue(result.success)
        self.assertEqual(mock_run.call_count, 2)

    @patch("podsync.episode_downloader.subprocess.run")
    def test_hook_launch_failure_fails_feed(self, mock_run: Mock) -> None:
        """A hook that can't be started stops the feed at the hook step."""
        mock_run.side_effect = FileNotFoundError("no such hook")
        server = FakeServer([create_rss_item(0)])
        manager = self.make_manager(download_hook=Path("/missing/hook"))

        result = self.sync(manager, server, now=BASE_TIME)

        self.assertIs(result.failed_step, SyncState.HOOKING)
        self.assertEqual(manager.ledger.load_ids(), {"guid-0"})

    @patch("podsync.manager.tqdm")
    def test_progress_bar_failure_is_captured(self, mock_tqdm: Mock) -> None:
        """A progress bar that can't be created fails only this feed."""
        mock_tqdm.side_effect = OSError("no terminal")
        server = FakeServer([create_rss_item(0)])
        manager = self.make_manager()

        result = self.sync(manager, server)

        self.assertIs(result.state, SyncState.FAILED)
        self.assertIn("no terminal", result.error)
        self.assertEqual(server.episode_requests, [])

    def test_no_new_episodes(self) -> None:
        """An empty feed completes without transfers."""
        server = FakeServer([])
        manager = self.make_manager()

        result = self.sync(manager, server)

        self.assertIs(result.state, SyncState.DONE)
        self.assertEqual(result.file_paths, [])

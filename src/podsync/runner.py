"""
Runs every configured feed concurrently, one worker thread per feed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .manager import PodcastManager, SyncResult


@dataclass
class SyncSummary:
    """Summary of a sync across all feeds."""

    downloaded: int
    failed_feeds: List[SyncResult]
    results: List[SyncResult]

    @classmethod
    def from_results(cls, results: List[SyncResult]) -> "SyncSummary":
        """Create summary from per-feed results."""
        return cls(
            downloaded=sum(len(r.file_paths) for r in results),
            failed_feeds=[r for r in results if not r.success],
            results=results,
        )

    @property
    def file_paths(self) -> List[Path]:
        """Every file produced, in feed order."""
        return [path for result in self.results for path in result.file_paths]


def sync_all(
    managers: Sequence[PodcastManager],
    show_progress: bool = True,
    now: Optional[int] = None,
) -> SyncSummary:
    """Sync every feed in parallel and wait for all of them.

    A failing feed is reported in the summary and never affects the
    others. Results are returned in the order of ``managers``.
    """
    logger = logging.getLogger(__name__)

    if not managers:
        logger.info("No feeds to sync")
        return SyncSummary.from_results([])

    logger.info("Syncing %d feeds", len(managers))

    with ThreadPoolExecutor(max_workers=len(managers)) as executor:
        futures = [
            executor.submit(
                manager.sync,
                show_progress=show_progress,
                position=position,
                now=now,
            )
            for position, manager in enumerate(managers)
        ]
        results = [future.result() for future in futures]

    summary = SyncSummary.from_results(results)
    logger.info(
        "Sync completed: %d episodes downloaded, %d feeds failed",
        summary.downloaded,
        len(summary.failed_feeds),
    )
    return summary

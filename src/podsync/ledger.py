"""
Per-feed ledger of episodes that have already been downloaded.

The ledger is a plain text file, one line per episode::

    <episode_id> <unix_timestamp> "<title>"

It is only ever appended to. Lines that cannot be parsed are skipped when
loading so a single corrupt line does not hide the rest of the history.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

from .models import FeedFiles, LedgerEntry
from .storage import PathLike, Storage
from .utils import current_unix


class DownloadLedger:
    """Append-only record of retrieved episode ids for one feed."""

    def __init__(self, feed_dir: PathLike, storage: Optional[Storage] = None):
        """Initialize with the feed's download directory."""
        self.path = Path(feed_dir) / FeedFiles.LEDGER
        self.storage = storage or Storage()
        self.logger = logging.getLogger(__name__)

    def load_entries(self) -> List[LedgerEntry]:
        """Parse every well-formed line of the ledger."""
        entries: List[LedgerEntry] = []
        for line_number, line in enumerate(
            self.storage.read_text_lines(self.path), 1
        ):
            entry = self._parse_line(line)
            if entry is None:
                if line.strip():
                    self.logger.debug(
                        "Skipping malformed ledger line %d in %s",
                        line_number,
                        self.path,
                    )
                continue
            entries.append(entry)
        return entries

    def load_ids(self) -> Set[str]:
        """Membership set of episode ids already downloaded."""
        ids = {entry.episode_id for entry in self.load_entries()}
        self.logger.debug("Loaded %d ledger entries from %s", len(ids), self.path)
        return ids

    def append(
        self,
        episode_id: str,
        title: str,
        recorded_at: Optional[int] = None,
    ) -> LedgerEntry:
        """Record one downloaded episode.

        Must only be called once the episode's bytes are fully on disk.
        """
        entry = LedgerEntry(
            episode_id=episode_id,
            recorded_at=current_unix() if recorded_at is None else recorded_at,
            title=" ".join(title.splitlines()),
        )
        self.storage.append_line(
            self.path,
            f'{entry.episode_id} {entry.recorded_at} "{entry.title}"',
        )
        return entry

    @staticmethod
    def _parse_line(line: str) -> Optional[LedgerEntry]:
        parts = line.split(maxsplit=2)
        if len(parts) < 2:
            return None

        try:
            recorded_at = int(parts[1])
        except ValueError:
            return None

        title = parts[2].strip() if len(parts) > 2 else ""
        if len(title) >= 2 and title.startswith('"') and title.endswith('"'):
            title = title[1:-1]

        return LedgerEntry(
            episode_id=parts[0], recorded_at=recorded_at, title=title
        )

"""
Pure storage layer for file operations.

This module provides low-level file operations without any business logic.
Unlike a cache, failures here propagate: a feed's run must stop when its
files cannot be written.
"""

import os
from pathlib import Path
from typing import List, Union

PathLike = Union[str, Path]


class Storage:
    """Pure file operations without business logic."""

    def ensure_directory(self, path: PathLike) -> None:
        """Create directory if it doesn't exist."""
        os.makedirs(path, exist_ok=True)

    def file_size(self, path: PathLike) -> int:
        """Size of a file in bytes, 0 if it doesn't exist."""
        try:
            return os.path.getsize(path)
        except FileNotFoundError:
            return 0

    def append_line(self, path: PathLike, line: str) -> None:
        """Append one line to a text file, creating it if absent."""
        directory = os.path.dirname(path)
        if directory:
            self.ensure_directory(directory)

        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def read_text_lines(self, path: PathLike) -> List[str]:
        """Read lines from a text file; a missing file has no lines."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return [line.rstrip("\n") for line in f]
        except FileNotFoundError:
            return []

    def rename(self, source: PathLike, target: PathLike) -> Path:
        """Atomically move ``source`` to ``target``, replacing it."""
        os.replace(source, target)
        return Path(target)

    def truncate(self, path: PathLike) -> None:
        """Empty a file, creating it if absent."""
        with open(path, "wb"):
            pass

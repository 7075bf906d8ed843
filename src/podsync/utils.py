"""
Small helpers shared across modules.
"""

import calendar
import os
import time
from typing import Optional


def current_unix() -> int:
    """Current time as whole seconds since the epoch."""
    return int(time.time())


def struct_time_to_unix(value: Optional[time.struct_time]) -> Optional[int]:
    """Convert a UTC struct_time (as produced by feedparser) to unix seconds."""
    if value is None:
        return None
    return calendar.timegm(value)


def safe_file_name(name: str) -> str:
    """Make rendered text usable as a single path component."""
    for separator in {os.sep, os.altsep, "/"}:
        if separator:
            name = name.replace(separator, "_")
    return name.replace("\x00", "")


def fit_text(text: str, width: int) -> str:
    """Pad or truncate text to exactly ``width`` characters."""
    if len(text) > width:
        return text[: width - 1] + "…"
    return text.ljust(width)


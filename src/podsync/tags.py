"""
ID3 tagging for downloaded mp3 files.
"""

import logging
import time
from pathlib import Path
from typing import Mapping, Optional

from mutagen.id3 import (
    ID3,
    TALB,
    TCON,
    TDRC,
    TIT2,
    TPE1,
    TXXX,
    Frames,
    ID3NoHeaderError,
)

from .models import Channel, Episode

TAGGABLE_SUFFIXES = {".mp3"}


def is_taggable(path: Path) -> bool:
    """Only mp3 artifacts carry embedded tags."""
    return path.suffix.lower() in TAGGABLE_SUFFIXES


def write_mp3_tags(
    path: Path,
    episode: Episode,
    channel: Channel,
    custom_tags: Optional[Mapping[str, str]] = None,
) -> ID3:
    """Write episode and channel metadata into the file's ID3 tag.

    ``custom_tags`` keys that name a text frame (``TCOP``, ``TPE2`` ...)
    set that frame; anything else is stored as ``TXXX:<key>``.

    Returns:
        The tag set as written, for ``id3::`` name lookups
    """
    logger = logging.getLogger(__name__)

    try:
        tags = ID3(path)
    except ID3NoHeaderError:
        tags = ID3()

    tags.setall("TIT2", [TIT2(encoding=3, text=episode.title)])
    if channel.title:
        tags.setall("TALB", [TALB(encoding=3, text=channel.title)])

    author = episode.raw.get("author") or channel.raw.get("author")
    if author:
        tags.setall("TPE1", [TPE1(encoding=3, text=author)])

    date = time.strftime("%Y-%m-%d", time.gmtime(episode.published))
    tags.setall("TDRC", [TDRC(encoding=3, text=date)])
    tags.setall("TCON", [TCON(encoding=3, text="Podcast")])

    for key, value in (custom_tags or {}).items():
        frame_class = Frames.get(key)
        if frame_class is not None and key.startswith("T") and key != "TXXX":
            tags.setall(key, [frame_class(encoding=3, text=value)])
        else:
            tags.setall(f"TXXX:{key}", [TXXX(encoding=3, desc=key, text=value)])

    tags.save(path)
    logger.debug("Wrote %d ID3 frames to %s", len(tags), path.name)
    return tags

"""
File downloading functionality for feed listings and episode files.

Episode transfers are resumable: bytes are streamed into a partial file
named after the episode id, and an interrupted transfer continues from the
partial file's length with a ``Range`` request on the next attempt.
"""

import hashlib
import logging
import mimetypes
import os
import re
from pathlib import Path
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import requests

from .errors import TransferError
from .models import FeedFiles
from .retry import (
    RetryConfig,
    classify_http_error,
    classify_requests_error,
    with_retry,
)
from .storage import PathLike, Storage

# Some feed hosts reject the default python-requests user agent.
FEED_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64; rv:124.0) Gecko/20100101 Firefox/124.0"
)
REQUEST_TIMEOUT = 30
CHUNK_SIZE = 8192
FALLBACK_EXTENSION = "bin"
_UNSATISFIED_RANGE = re.compile(r"bytes \*/(\d+)$")

# (bytes transferred so far, total bytes if known)
ProgressCallback = Callable[[int, Optional[int]], None]


# Feed Download Functions
def download_feed(
    feed_url: str, retry_config: Optional[RetryConfig] = None
) -> bytes:
    """Download a feed document.

    Raises:
        NetworkError: On connection failures or a non-success status
    """
    logger = logging.getLogger(__name__)
    logger.info("Downloading feed from %s", feed_url)

    @with_retry(retry_config)
    def _fetch() -> bytes:
        try:
            response = requests.get(
                feed_url,
                headers={"User-Agent": FEED_USER_AGENT},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise classify_requests_error(e) from e

        if not 200 <= response.status_code < 300:
            raise classify_http_error(response.status_code, feed_url)
        return response.content

    content = _fetch()
    logger.info(
        "Successfully downloaded feed content (%d bytes)", len(content)
    )
    return content


# Episode Download Functions
def partial_file_name(resume_key: str) -> str:
    """Stable partial file name for an episode id.

    Episode ids are frequently URLs, so the name is a digest of the id.
    """
    digest = hashlib.sha1(resume_key.encode("utf-8")).hexdigest()
    return digest + FeedFiles.PARTIAL_SUFFIX


def partial_offset(
    partial_path: PathLike, storage: Optional[Storage] = None
) -> int:
    """Number of bytes already on disk for a transfer (0 if none)."""
    return (storage or Storage()).file_size(partial_path)


def build_range_headers(offset: int) -> Dict[str, str]:
    """Request headers for a transfer resuming at ``offset``."""
    if offset > 0:
        return {"Range": f"bytes={offset}-"}
    return {}


def extension_for(content_type: Optional[str], url: str = "") -> str:
    """Pick the file extension for a downloaded payload.

    The content type wins; ``mp3`` is preferred whenever it is one of the
    candidates because audio enclosures are often declared as a sibling
    MPEG type. Falls back to the URL's suffix, then to ``bin``.
    """
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        candidates = [
            ext.lstrip(".") for ext in mimetypes.guess_all_extensions(mime)
        ]
        if "mp3" in candidates:
            return "mp3"
        if candidates:
            return candidates[0]

    suffix = os.path.splitext(urlparse(url).path)[1].lstrip(".")
    if suffix:
        return suffix.lower()
    return FALLBACK_EXTENSION


def download_episode_file(
    url: str,
    destination_dir: PathLike,
    resume_key: str,
    progress_callback: Optional[ProgressCallback] = None,
    retry_config: Optional[RetryConfig] = None,
    storage: Optional[Storage] = None,
) -> Path:
    """Download one episode, resuming a previous partial transfer.

    Args:
        url: Enclosure URL
        destination_dir: Directory receiving the partial and final files
        resume_key: Episode id; names the partial file
        progress_callback: Receives cumulative bytes and the total size
        retry_config: Retry behavior for transient network failures

    Returns:
        Path of the completed file, named ``<digest>.<ext>``

    Raises:
        NetworkError: If the transfer fails after retries
        TransferError: On filesystem errors

    The partial file is left in place on any failure.
    """
    logger = logging.getLogger(__name__)
    storage = storage or Storage()
    storage.ensure_directory(destination_dir)
    partial_path = Path(destination_dir) / partial_file_name(resume_key)

    @with_retry(retry_config)
    def _attempt() -> str:
        return _stream_to_partial(
            url, partial_path, storage, progress_callback
        )

    ext = _attempt()

    final_path = partial_path.with_suffix("." + ext)
    try:
        storage.rename(partial_path, final_path)
    except OSError as e:
        raise TransferError(
            f"Could not finalize {partial_path}: {e}"
        ) from e

    logger.info("Download complete: %s", final_path.name)
    return final_path


# Helper Functions
def _stream_to_partial(
    url: str,
    partial_path: Path,
    storage: Storage,
    progress_callback: Optional[ProgressCallback],
) -> str:
    """Run one request against the partial file; return the extension."""
    logger = logging.getLogger(__name__)
    offset = partial_offset(partial_path, storage)
    headers = build_range_headers(offset)

    if offset:
        logger.info("Resuming %s at byte %d", partial_path.name, offset)
    else:
        logger.info("Downloading %s from %s", partial_path.name, url)

    remote_size: Optional[int] = None
    try:
        with requests.get(
            url, headers=headers, stream=True, timeout=REQUEST_TIMEOUT
        ) as response:
            status = response.status_code

            if status == 416 and offset > 0:
                # The body of a 416 is an error page, never the media.
                remote_size = remote_size_from_content_range(
                    response.headers.get("content-range")
                )
                if remote_size == offset:
                    logger.debug(
                        "Partial file already complete: %s", partial_path
                    )
                    if progress_callback:
                        progress_callback(offset, offset)
                    return _extension_from_head(url)
            else:
                if not 200 <= status < 300:
                    raise classify_http_error(status, url)

                _write_body(
                    response, partial_path, offset, status, progress_callback
                )
                return extension_for(response.headers.get("content-type"), url)

        logger.info(
            "Partial file %s (%d bytes) doesn't match remote size %s, "
            "restarting",
            partial_path.name,
            offset,
            remote_size,
        )
        storage.truncate(partial_path)
    except requests.exceptions.RequestException as e:
        raise classify_requests_error(e) from e
    except OSError as e:
        raise TransferError(f"Could not write {partial_path}: {e}") from e

    return _stream_to_partial(url, partial_path, storage, progress_callback)


def _write_body(
    response: requests.Response,
    partial_path: Path,
    offset: int,
    status: int,
    progress_callback: Optional[ProgressCallback],
) -> None:
    """Append (206) or write (200) a response body to the partial file."""
    logger = logging.getLogger(__name__)

    if status == 206:
        mode = "ab"
        downloaded = offset
    else:
        if offset:
            logger.info(
                "Server ignored range request, restarting %s",
                partial_path.name,
            )
        mode = "wb"
        downloaded = 0

    content_length = response.headers.get("content-length")
    total = int(content_length) + downloaded if content_length else None
    logger.debug("Content length: %s bytes", content_length)

    if progress_callback:
        progress_callback(downloaded, total)

    with open(partial_path, mode) as output_file:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:  # Filter out keep-alive chunks
                output_file.write(chunk)
                downloaded += len(chunk)
                if progress_callback:
                    progress_callback(downloaded, total)


def remote_size_from_content_range(value: Optional[str]) -> Optional[int]:
    """Full size from a 416 ``Content-Range: bytes */<size>`` header."""
    if not value:
        return None
    match = _UNSATISFIED_RANGE.match(value.strip())
    return int(match.group(1)) if match else None


def _extension_from_head(url: str) -> str:
    """Extension for a file finalized without a media response.

    Asks the server for the media's content type; the URL suffix is used
    when that fails.
    """
    logger = logging.getLogger(__name__)
    try:
        response = requests.head(
            url,
            headers={"User-Agent": FEED_USER_AGENT},
            allow_redirects=True,
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        logger.debug("HEAD %s failed, using URL suffix: %s", url, e)
        return extension_for(None, url)

    if not 200 <= response.status_code < 300:
        logger.debug("HEAD %s returned %d", url, response.status_code)
        return extension_for(None, url)
    return extension_for(response.headers.get("content-type"), url)

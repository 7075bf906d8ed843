"""
File naming from templates.

A template is plain text with ``{namespace::key}`` placeholders::

    {pubdate::%Y-%m-%d} {rss::episode::title}

Rendering is a two step process. ``tokenize`` splits the template into
literal runs and placeholders, then each placeholder is handed to the
resolver registered for its namespace. Placeholders that cannot be
resolved render as a ``<<...>>`` sentinel instead of failing, so one bad
tag never blocks a sync.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .models import Channel, Episode
from .storage import Storage
from .utils import safe_file_name

UNKNOWN_TAG = "<<unknown tag>>"
INVALID_ID3_TAG = "<<invalid id3 tag>>"
INVALID_RSS_TAG = "<<invalid rss tag>>"

DEFAULT_NAME_PATTERN = "{pubdate::%Y-%m-%d} {rss::episode::title}"

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Literal:
    """Text copied to the output verbatim."""

    text: str


@dataclass(frozen=True)
class Placeholder:
    """A ``{namespace::key}`` span."""

    namespace: str
    key: str


Token = Union[Literal, Placeholder]


@dataclass(frozen=True)
class NamingContext:
    """Metadata sources available to resolvers."""

    episode: Episode
    channel: Channel
    tags: Optional[Mapping[str, Any]] = None


Resolver = Callable[[str, NamingContext], str]


def tokenize(template: str) -> List[Token]:
    """Split a template into literal runs and placeholders."""
    tokens: List[Token] = []
    last_end = 0

    for match in _PLACEHOLDER.finditer(template):
        if match.start() > last_end:
            tokens.append(Literal(template[last_end : match.start()]))

        namespace, separator, key = match.group(1).partition("::")
        if separator:
            tokens.append(Placeholder(namespace=namespace, key=key))
        else:
            tokens.append(Literal(UNKNOWN_TAG))
        last_end = match.end()

    if last_end < len(template):
        tokens.append(Literal(template[last_end:]))

    return tokens


def resolve_pubdate(key: str, context: NamingContext) -> str:
    """``pubdate::FORMAT``: strftime of the publish time in UTC."""
    published = datetime.fromtimestamp(context.episode.published, tz=timezone.utc)
    return published.strftime(key)


def resolve_id3(key: str, context: NamingContext) -> str:
    """``id3::FRAME``: a frame of the tag set written to the file."""
    if context.tags is None:
        return ""

    frame = context.tags.get(key)
    if frame is None:
        logger.warning("ID3 frame %s not found", key)
        return INVALID_ID3_TAG
    return str(frame)


def resolve_rss(key: str, context: NamingContext) -> str:
    """``rss::episode::FIELD`` and ``rss::channel::FIELD``."""
    scope, _, field = key.partition("::")
    if scope == "episode":
        source = context.episode.raw
    elif scope == "channel":
        source = context.channel.raw
    else:
        return UNKNOWN_TAG

    value = source.get(field)
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        logger.warning("Feed field %s::%s missing or not a plain value", scope, field)
        return INVALID_RSS_TAG
    return str(value)


_RESOLVERS: Dict[str, Resolver] = {
    "pubdate": resolve_pubdate,
    "id3": resolve_id3,
    "rss": resolve_rss,
}


def register_resolver(namespace: str, resolver: Resolver) -> None:
    """Make a new placeholder namespace available to templates."""
    _RESOLVERS[namespace] = resolver


def render_name(
    template: str,
    episode: Episode,
    channel: Channel,
    tags: Optional[Mapping[str, Any]] = None,
) -> str:
    """Render a template against an episode's metadata."""
    context = NamingContext(episode=episode, channel=channel, tags=tags)
    parts: List[str] = []

    for token in tokenize(template):
        if isinstance(token, Literal):
            parts.append(token.text)
            continue

        resolver = _RESOLVERS.get(token.namespace)
        if resolver is None:
            parts.append(UNKNOWN_TAG)
        else:
            parts.append(resolver(token.key, context))

    return "".join(parts)


def rename_file(
    path: Path,
    template: str,
    episode: Episode,
    channel: Channel,
    tags: Optional[Mapping[str, Any]] = None,
    storage: Optional[Storage] = None,
) -> Path:
    """Rename a downloaded file after its rendered name.

    The file keeps its directory and its extension.
    """
    rendered = safe_file_name(render_name(template, episode, channel, tags))
    if not rendered.strip():
        rendered = path.stem
    target = path.with_name(rendered + path.suffix)
    (storage or Storage()).rename(path, target)
    logger.info("Renamed %s -> %s", path.name, target.name)
    return target

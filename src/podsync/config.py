"""
Configuration loading and per-feed policy resolution.

Two YAML files live in the config directory:

``config.yaml``
    Global defaults (download path, naming pattern, retention bounds).
``podcasts.yaml``
    One entry per feed, keyed by the feed's name.

A feed may override a global setting, inherit it, or switch it off with
``false``. These three states are resolved here into a flat
``FeedSettings``; nothing downstream ever sees the unresolved form.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

import yaml
from dateutil import parser as date_parser

from .errors import ConfigNotFoundError, InvalidConfigError
from .models import BacklogPolicy, RetentionPolicy, StandardPolicy
from .namer import DEFAULT_NAME_PATTERN

T = TypeVar("T")

APP_NAME = "podsync"
CONFIG_FILE = "config.yaml"
PODCASTS_FILE = "podcasts.yaml"


def default_config_dir() -> Path:
    """Config directory from PODSYNC_CONFIG_DIRECTORY or ~/.config/podsync."""
    configured = os.getenv("PODSYNC_CONFIG_DIRECTORY")
    if configured:
        return Path(configured).expanduser()
    return Path("~/.config").expanduser() / APP_NAME


class OptionState(Enum):
    """How a feed treats an overridable global setting."""

    USE_GLOBAL = "use_global"
    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ConfigOption(Generic[T]):
    """A feed-level setting that may defer to the global config."""

    state: OptionState = OptionState.USE_GLOBAL
    value: Optional[T] = None

    @property
    def is_enabled(self) -> bool:
        """True if the feed sets its own value."""
        return self.state is OptionState.ENABLED

    def resolve(self, global_value: Optional[T]) -> Optional[T]:
        """Collapse to the effective value."""
        if self.state is OptionState.DISABLED:
            return None
        if self.state is OptionState.ENABLED:
            return self.value
        return global_value


_MISSING = object()


def parse_option(
    raw: Any, expected: Tuple[Type[Any], ...], key: str
) -> ConfigOption[Any]:
    """Read a tri-state option: absent, ``false``, or a value."""
    if raw is _MISSING or raw is None:
        return ConfigOption()
    if raw is False:
        return ConfigOption(state=OptionState.DISABLED)
    if isinstance(raw, expected) and not isinstance(raw, bool):
        return ConfigOption(state=OptionState.ENABLED, value=raw)
    raise InvalidConfigError(f"Invalid type for configuration option '{key}'")


def parse_instant(value: Any, key: str) -> int:
    """Parse an RFC 3339 date/time (naive values are UTC) to unix seconds."""
    try:
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, date):
            moment = datetime(value.year, value.month, value.day)
        else:
            moment = date_parser.isoparse(str(value))
    except (ValueError, OverflowError) as e:
        raise InvalidConfigError(f"Invalid date for '{key}': {value}") from e

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def parse_backlog_start(value: Any) -> int:
    """Parse ``backlog_start`` (YYYY-MM-DD) to midnight UTC."""
    if isinstance(value, date) and not isinstance(value, datetime):
        day = value
    else:
        try:
            day = datetime.strptime(str(value), "%Y-%m-%d").date()
        except ValueError as e:
            raise InvalidConfigError(
                "invalid backlog_start format. Use YYYY-MM-DD"
            ) from e
    return parse_instant(day, "backlog_start")


def _check_keys(data: Dict[str, Any], allowed: set, where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise InvalidConfigError(
            f"Unknown field(s) in {where}: {', '.join(unknown)}"
        )


def _optional_int(data: Dict[str, Any], key: str, default: Any) -> Optional[int]:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(f"'{key}' must be an integer")
    return value


def _string_map(data: Dict[str, Any], key: str) -> Dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise InvalidConfigError(f"'{key}' must be a mapping")
    return {str(k): str(v) for k, v in value.items()}


@dataclass
class GlobalConfig:  # pylint: disable=too-many-instance-attributes
    """Settings shared by every feed."""

    path: Path = field(default_factory=lambda: Path("~").expanduser() / APP_NAME)
    name_pattern: str = DEFAULT_NAME_PATTERN
    max_days: Optional[int] = 120
    max_episodes: Optional[int] = 10
    earliest_date: Optional[str] = None
    custom_tags: Dict[str, str] = field(default_factory=dict)
    download_hook: Optional[Path] = None

    FIELDS = {
        "path",
        "name_pattern",
        "max_days",
        "max_episodes",
        "earliest_date",
        "custom_tags",
        "download_hook",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlobalConfig":
        """Create GlobalConfig from parsed YAML."""
        _check_keys(data, cls.FIELDS, CONFIG_FILE)
        defaults = cls()

        if "path" not in data:
            raise InvalidConfigError(f"'path' is required in {CONFIG_FILE}")

        earliest = data.get("earliest_date")
        hook = data.get("download_hook")
        return cls(
            path=Path(str(data["path"])).expanduser(),
            name_pattern=str(data.get("name_pattern", defaults.name_pattern)),
            max_days=_optional_int(data, "max_days", None),
            max_episodes=_optional_int(data, "max_episodes", None),
            earliest_date=None if earliest is None else str(earliest),
            custom_tags=_string_map(data, "custom_tags"),
            download_hook=Path(str(hook)).expanduser() if hook else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a YAML-serializable dictionary."""
        data: Dict[str, Any] = {
            "path": str(self.path),
            "name_pattern": self.name_pattern,
            "max_days": self.max_days,
            "max_episodes": self.max_episodes,
            "custom_tags": dict(self.custom_tags),
        }
        if self.earliest_date is not None:
            data["earliest_date"] = self.earliest_date
        if self.download_hook is not None:
            data["download_hook"] = str(self.download_hook)
        return data


@dataclass
class PodcastConfig:  # pylint: disable=too-many-instance-attributes
    """One feed's entry in podcasts.yaml, before resolution."""

    url: str
    path: Optional[Path] = None
    max_days: ConfigOption[int] = field(default_factory=ConfigOption)
    max_episodes: ConfigOption[int] = field(default_factory=ConfigOption)
    earliest_date: ConfigOption[Any] = field(default_factory=ConfigOption)
    download_hook: ConfigOption[str] = field(default_factory=ConfigOption)
    backlog_start: Optional[Any] = None
    backlog_interval: Optional[int] = None
    custom_tags: Dict[str, str] = field(default_factory=dict)

    FIELDS = {
        "url",
        "path",
        "max_days",
        "max_episodes",
        "earliest_date",
        "download_hook",
        "backlog_start",
        "backlog_interval",
        "custom_tags",
    }

    @classmethod
    def from_dict(cls, name: str, data: Any) -> "PodcastConfig":
        """Create PodcastConfig from one parsed YAML entry."""
        where = f"podcast '{name}'"
        if not isinstance(data, dict):
            raise InvalidConfigError(f"{where} must be a mapping")
        _check_keys(data, cls.FIELDS, where)

        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise InvalidConfigError(f"{where} needs a 'url'")

        path = data.get("path")
        return cls(
            url=url,
            path=Path(str(path)).expanduser() if path else None,
            max_days=parse_option(data.get("max_days", _MISSING), (int,), "max_days"),
            max_episodes=parse_option(
                data.get("max_episodes", _MISSING), (int,), "max_episodes"
            ),
            earliest_date=parse_option(
                data.get("earliest_date", _MISSING),
                (str, date),
                "earliest_date",
            ),
            download_hook=parse_option(
                data.get("download_hook", _MISSING), (str,), "download_hook"
            ),
            backlog_start=data.get("backlog_start"),
            backlog_interval=_optional_int(data, "backlog_interval", None),
            custom_tags=_string_map(data, "custom_tags"),
        )


@dataclass
class FeedSettings:
    """Fully resolved configuration of one feed."""

    name: str
    url: str
    download_path: Path
    policy: RetentionPolicy
    name_pattern: str = DEFAULT_NAME_PATTERN
    custom_tags: Dict[str, str] = field(default_factory=dict)
    download_hook: Optional[Path] = None

    @property
    def feed_dir(self) -> Path:
        """Directory holding this feed's downloads and ledger."""
        return self.download_path / self.name


def resolve_policy(
    global_config: GlobalConfig, podcast: PodcastConfig
) -> RetentionPolicy:
    """Pick the feed's download mode and resolve its bounds."""
    start, interval = podcast.backlog_start, podcast.backlog_interval

    if start is None and interval is None:
        earliest = podcast.earliest_date.resolve(global_config.earliest_date)
        return StandardPolicy(
            max_age_days=podcast.max_days.resolve(global_config.max_days),
            max_episode_count=podcast.max_episodes.resolve(
                global_config.max_episodes
            ),
            earliest_date=(
                None if earliest is None else parse_instant(earliest, "earliest_date")
            ),
        )

    if interval is None:
        raise InvalidConfigError("missing backlog_interval")
    if start is None:
        raise InvalidConfigError("missing backlog_start")

    if podcast.max_days.is_enabled:
        raise InvalidConfigError("'max_days' not compatible with backlog mode.")
    if podcast.max_episodes.is_enabled:
        raise InvalidConfigError(
            "'max_episodes' not compatible with backlog mode. "
            "Consider moving the backlog_start date."
        )
    if podcast.earliest_date.is_enabled:
        raise InvalidConfigError(
            "'earliest_date' not compatible with backlog mode."
        )
    if interval <= 0:
        raise InvalidConfigError("'backlog_interval' must be positive")

    return BacklogPolicy(start=parse_backlog_start(start), interval_days=interval)


def resolve_feed_settings(
    name: str, global_config: GlobalConfig, podcast: PodcastConfig
) -> FeedSettings:
    """Merge a feed's entry with the global config."""
    try:
        policy = resolve_policy(global_config, podcast)
    except InvalidConfigError as e:
        raise InvalidConfigError(f"podcast '{name}': {e}") from e

    hook = podcast.download_hook.resolve(
        None if global_config.download_hook is None
        else str(global_config.download_hook)
    )

    return FeedSettings(
        name=name,
        url=podcast.url,
        download_path=podcast.path or global_config.path,
        policy=policy,
        name_pattern=global_config.name_pattern,
        custom_tags={**global_config.custom_tags, **podcast.custom_tags},
        download_hook=Path(hook).expanduser() if hook else None,
    )


class ConfigManager:
    """Loads podsync configuration files."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize with a config directory (default_config_dir() if None)."""
        self.config_dir = config_dir or default_config_dir()
        self.config_file = self.config_dir / CONFIG_FILE
        self.podcasts_file = self.config_dir / PODCASTS_FILE
        self.logger = logging.getLogger(__name__)

    def load_global_config(self) -> GlobalConfig:
        """Load config.yaml, writing the defaults first if it is missing."""
        if not self.config_file.exists():
            default = GlobalConfig()
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(default.to_dict(), f, sort_keys=False)
            self.logger.info("Created default config at %s", self.config_file)

        return GlobalConfig.from_dict(self._read_yaml(self.config_file))

    def load_podcast_configs(self) -> Dict[str, PodcastConfig]:
        """Load podcasts.yaml.

        Raises:
            ConfigNotFoundError: If podcasts.yaml doesn't exist
        """
        if not self.podcasts_file.exists():
            raise ConfigNotFoundError(
                f"You need to create '{self.podcasts_file}' to get started"
            )

        data = self._read_yaml(self.podcasts_file)
        return {
            str(name): PodcastConfig.from_dict(str(name), entry)
            for name, entry in data.items()
        }

    def load_feed_settings(self) -> List[FeedSettings]:
        """Resolve every configured feed, sorted by name."""
        global_config = self.load_global_config()
        podcasts = self.load_podcast_configs()
        return [
            resolve_feed_settings(name, global_config, podcasts[name])
            for name in sorted(podcasts)
        ]

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidConfigError(f"{path} must contain a mapping")
        return data

"""Configuration management for beesync."""

import json
import logging
import tomllib
import typing
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

from platformdirs import user_config_dir, user_log_dir

from .errors import ConfigInvalid
from .keys import CmdSecret, EnvSecret, SecretSpec, parse_secret_spec

__all__ = [
    "Config",
    "FocusmateSettings",
    "FatebookSettings",
    "CleanTubeSettings",
    "CleanViewSettings",
    "CategorySettings",
    "GitHubSettings",
    "MODULE_SECTIONS",
    "setup_logging",
]

logger = logging.getLogger(__name__)

APP_NAME = "beesync"
APP_AUTHOR = "beesync"

DEFAULT_BEEMINDER_URL = "https://www.beeminder.com/api/v1"
DEFAULT_AW_URL = "http://localhost:5600"
CONFIG_FILENAME = "config.toml"


@dataclass
class FocusmateSettings:
    goal_name: str
    key: SecretSpec
    auto_tags: list[str] = field(default_factory=list)
    name: Optional[str] = None


@dataclass
class FatebookSettings:
    key: SecretSpec
    goal_name: str = "fatebook"
    name: Optional[str] = None


@dataclass
class CleanTubeSettings:
    """Videos watched in the browser, read from ActivityWatch window events."""

    window_bucket: str
    goal_name: str
    activity_watch_base_url: str = DEFAULT_AW_URL
    lookback_days: int = 7
    min_video_duration_seconds: float = 60.0
    max_datapoints: Optional[int] = None
    title_marker: str = " - YouTube"
    name: Optional[str] = None


@dataclass
class CleanViewSettings:
    """Daily browser-title review by a language model."""

    window_bucket: str
    goal_name: str
    openai_key: SecretSpec
    prompt_template: str
    activity_watch_base_url: str = DEFAULT_AW_URL
    openai_model: str = "gpt-4o-mini"
    lookback_days: int = 3
    min_window_duration_seconds: float = 10.0
    browser_markers: list[str] = field(default_factory=lambda: ["firefox", "brave", "chromium"])
    name: Optional[str] = None


@dataclass
class CategorySettings:
    """Tasks completed in one Amazing Marvin category."""

    uri: SecretSpec
    username: SecretSpec
    password: SecretSpec
    database_name: SecretSpec
    category: str
    goal_name: str
    lookback_days: int = 14
    name: Optional[str] = None


@dataclass
class GitHubSettings:
    goal_name: str
    username: str
    key: Optional[SecretSpec] = None
    name: Optional[str] = None


MODULE_SECTIONS: dict[str, type] = {
    "focusmate": FocusmateSettings,
    "fatebook": FatebookSettings,
    "clean_tube": CleanTubeSettings,
    "clean_view": CleanViewSettings,
    "category": CategorySettings,
    "github": GitHubSettings,
}

ModuleSettings = Union[
    FocusmateSettings,
    FatebookSettings,
    CleanTubeSettings,
    CleanViewSettings,
    CategorySettings,
    GitHubSettings,
]


def _check_value(value: Any, hint: Any, key: str) -> Any:
    """Validate one config value against a field's type hint."""
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin is Union and set(args) >= {EnvSecret, CmdSecret}:
        if value is None and type(None) in args:
            return None
        return parse_secret_spec(value, key)

    if origin is Union:
        # Optional[X]
        inner = [a for a in args if a is not type(None)]
        if value is None:
            return None
        return _check_value(value, inner[0] if len(inner) == 1 else Union[tuple(inner)], key)

    if origin is list:
        if not isinstance(value, list):
            raise ConfigInvalid(f"'{key}' must be a list")
        return [_check_value(item, args[0], f"{key}[{i}]") for i, item in enumerate(value)]

    if hint is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigInvalid(f"'{key}' must be a number")
        return float(value)

    if hint is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigInvalid(f"'{key}' must be an integer")
        return value

    if hint in (str, bool) and not isinstance(value, hint):
        raise ConfigInvalid(f"'{key}' must be a {hint.__name__}")

    return value


def _build(cls: type, data: Any, section: str):
    """Instantiate a settings dataclass from a config table."""
    if not isinstance(data, dict):
        raise ConfigInvalid(f"[{section}] must be a table")

    hints = typing.get_type_hints(cls)
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigInvalid(f"[{section or 'top level'}] has unknown key(s): {', '.join(unknown)}")

    kwargs = {}
    for f in fields(cls):
        key = f"{section}.{f.name}" if section else f.name
        if f.name not in data:
            if f.default is MISSING and f.default_factory is MISSING:
                raise ConfigInvalid(f"Missing required key '{key}'")
            continue
        kwargs[f.name] = _check_value(data[f.name], hints[f.name], key)

    return cls(**kwargs)


@dataclass
class Config:
    """Main configuration object."""

    beeminder_username: str
    beeminder_key: SecretSpec
    beeminder_url: str = DEFAULT_BEEMINDER_URL
    debug: bool = False
    modules: list[tuple[str, ModuleSettings]] = field(default_factory=list)

    @classmethod
    def get_config_dir(cls) -> Path:
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def find_config_file(cls, path: Optional[Union[str, Path]] = None) -> Path:
        """Explicit path, else ./config.toml, else the user config directory."""
        if path:
            return Path(path)
        local = Path.cwd() / CONFIG_FILENAME
        if local.exists():
            return local
        return cls.get_config_dir() / CONFIG_FILENAME

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Config":
        """Read and validate the config file.

        Raises:
            ConfigInvalid: the file is missing, unparsable or fails validation
        """
        config_file = cls.find_config_file(path)
        try:
            text = config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigInvalid(f"Cannot read config file {config_file}: {e}") from e

        try:
            if config_file.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = tomllib.loads(text)
        except (ValueError, tomllib.TOMLDecodeError) as e:
            raise ConfigInvalid(f"Cannot parse config file {config_file}: {e}") from e

        config = cls.from_dict(data)
        logger.debug(f"Loaded config from {config_file} ({len(config.modules)} module(s))")
        return config

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        if not isinstance(data, dict):
            raise ConfigInvalid("Config document must be a table")

        data = dict(data)
        modules: list[tuple[str, ModuleSettings]] = []
        top_level = {}

        for key, value in data.items():
            if key in MODULE_SECTIONS:
                # A section may be one table or an array of tables
                entries = value if isinstance(value, list) else [value]
                for i, entry in enumerate(entries):
                    section = key if len(entries) == 1 else f"{key}[{i}]"
                    modules.append((key, _build(MODULE_SECTIONS[key], entry, section)))
            elif isinstance(value, (dict, list)) and key != "beeminder_key":
                raise ConfigInvalid(f"Unknown module section [{key}]")
            else:
                top_level[key] = value

        config = _build(cls, top_level, "")
        config.modules = modules
        return config


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    """Configure logging to stderr and a log file in the user log directory."""
    if log_file is None:
        log_dir = Config.get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "beesync.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

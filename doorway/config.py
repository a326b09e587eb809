"""
doorway/config.py
Layered gateway configuration: defaults, settings file, APP_* environment, overrides.
"""
import copy
import logging
import os
import pathlib
import tomllib
from typing import Any, Dict, Mapping, Optional, Union

from .env import load_env

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "server": {"host": "0.0.0.0", "port": 2323},
    "addresses_filename": "addresses.toml",
    "relay": {"connect_timeout": 10.0},
    "limits": {"max_line_length": 4096},
    "log_level": "INFO",
}

DEFAULT_SETTINGS_FILE = "settings.toml"

ENV_PREFIX = "APP_"

# APP_<NAME> -> (section path, converter)
_ENV_KEYS = {
    "HOST": (("server", "host"), str),
    "PORT": (("server", "port"), int),
    "ADDRESSES_FILENAME": (("addresses_filename",), str),
    "CONNECT_TIMEOUT": (("relay", "connect_timeout"), float),
    "MAX_LINE_LENGTH": (("limits", "max_line_length"), int),
    "LOG_LEVEL": (("log_level",), str),
}


class ConfigError(Exception):
    """A setting is missing, unreadable, or has the wrong type."""


def merge(base: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``update`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_path(target: Dict[str, Any], path, value: Any) -> None:
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value


def _read_settings(path: pathlib.Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"cannot load settings {path}: {exc}") from exc


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for name, (path, convert) in _ENV_KEYS.items():
        raw = environ.get(ENV_PREFIX + name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigError(f"{ENV_PREFIX}{name}={raw!r}: {exc}") from exc
        _set_path(found, path, value)
    return found


def _validate(config: Dict[str, Any]) -> None:
    try:
        port = int(config["server"]["port"])
        timeout = float(config["relay"]["connect_timeout"])
        max_line = int(config["limits"]["max_line_length"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    if not 0 <= port < 65536:
        raise ConfigError(f"port out of range: {port}")
    if timeout <= 0:
        raise ConfigError(f"connect_timeout must be positive: {timeout}")
    if max_line <= 0:
        raise ConfigError(f"max_line_length must be positive: {max_line}")
    level = str(config.get("log_level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"unknown log level: {level}")
    config["server"]["port"] = port
    config["relay"]["connect_timeout"] = timeout
    config["limits"]["max_line_length"] = max_line
    config["log_level"] = level


def load_config(
    settings_path: Optional[Union[str, pathlib.Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Build the effective configuration.

    An explicit ``settings_path`` must exist; the default settings.toml is
    optional. ``environ`` defaults to os.environ after loading .env.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if settings_path is not None:
        config = merge(config, _read_settings(pathlib.Path(settings_path)))
    elif pathlib.Path(DEFAULT_SETTINGS_FILE).is_file():
        config = merge(config, _read_settings(pathlib.Path(DEFAULT_SETTINGS_FILE)))

    if environ is None:
        load_env()
        environ = os.environ
    config = merge(config, _from_env(environ))

    if overrides:
        config = merge(config, overrides)

    _validate(config)
    logger.debug("effective configuration %r", config)
    return config

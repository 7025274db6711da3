from __future__ import annotations

import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from pydantic import ValidationError

from scanner_server.schema import DEFAULT_PLUGINS, DEFAULT_SETTINGS, Settings

DEFAULT_CONFIG_NAME = "scanner.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

logger = logging.getLogger(__name__)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        logger.warning("ignoring unparseable config file %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def scanner_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("scanner", {})
    return section if isinstance(section, dict) else {}


def default_settings(
    root: Path | None = None, config_path: Path | None = None
) -> Settings:
    """Settings used whenever the client supplies none.

    Missing or invalid configuration silently yields the compiled-in defaults.
    """
    section = scanner_defaults(root=root, config_path=config_path)
    if not section:
        return DEFAULT_SETTINGS
    payload: dict[str, object] = {}
    if "max_number_of_problems" in section:
        payload["maxNumberOfProblems"] = section["max_number_of_problems"]
    plugins = section.get("plugins")
    payload["scanPluginsConf"] = plugins if plugins else [
        spec.model_dump() for spec in DEFAULT_PLUGINS
    ]
    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        logger.warning("invalid [scanner] configuration, using defaults: %s", exc)
        return DEFAULT_SETTINGS

"""Config file loading and auto-discovery for typesense-tf.

Searches for ``typesense-tf.yaml`` in the current directory and parent
directories, parses it, and resolves the output path against the config
file's location. Secrets can be given literally (``api_key``) or by naming
an environment variable (``api_key_env``); a literal value wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "typesense-tf.yaml"


class ConfigError(ValueError):
    """Raised when a config file cannot be read or has the wrong shape."""


@dataclass(frozen=True)
class TypesenseTfConfig:
    """Parsed typesense-tf project configuration."""

    config_path: Path | None = None
    host: str | None = None
    port: int | None = None
    protocol: str | None = None
    api_key: str | None = None
    cloud_api_key: str | None = None
    output: str | None = None
    timeout: float | None = None


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``typesense-tf.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> TypesenseTfConfig:
    """Load a typesense-tf config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``TypesenseTfConfig`` (all defaults).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return TypesenseTfConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> TypesenseTfConfig:
    """Read and parse a YAML config file."""
    try:
        text = config_path.read_text(encoding="utf-8")
        data = yaml.safe_load(text) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"Cannot read config file {config_path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    server = _section(data, "server", config_path)
    cloud = _section(data, "cloud", config_path)

    output = data.get("output")
    if output is not None:
        output = str((config_path.parent / str(output)).resolve())

    return TypesenseTfConfig(
        config_path=config_path,
        host=server.get("host"),
        port=_number(server.get("port"), int, "server.port", config_path),
        protocol=server.get("protocol"),
        api_key=_secret(server, "api_key"),
        cloud_api_key=_secret(cloud, "api_key"),
        output=output,
        timeout=_number(data.get("timeout"), float, "timeout", config_path),
    )


def _section(data: dict[str, Any], key: str, config_path: Path) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        msg = f"Expected '{key}' to be a mapping in {config_path}"
        raise ConfigError(msg)
    return section


def _secret(section: dict[str, Any], key: str) -> str | None:
    """Literal value, else the environment variable named by ``<key>_env``."""
    value = section.get(key)
    if value:
        return str(value)
    env_name = section.get(f"{key}_env")
    if env_name:
        return os.environ.get(str(env_name)) or None
    return None


def _number(value: Any, kind: type, key: str, config_path: Path) -> Any:
    if value is None:
        return None
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        msg = f"Invalid value for '{key}' in {config_path}: {value!r}"
        raise ConfigError(msg) from e

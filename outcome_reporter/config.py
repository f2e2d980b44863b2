"""Loading of per-backend configuration."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any


class ConfigError(Exception):
    """Raised when the backend configuration file cannot be used."""


def expand_env(value: Any) -> Any:
    """Expand ``$VAR`` and ``${VAR}`` in every string of a JSON value."""
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    return value


def parse_backend_configs(text: str) -> Mapping[str, Mapping[str, Any]]:
    """Parse a JSON object mapping backend names to their configuration.

    Raises:
        ConfigError: If the text is not valid JSON or an entry is not an object

    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid backend configuration: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Backend configuration must be a JSON object")

    configs: dict[str, Mapping[str, Any]] = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"Configuration for '{name}' must be a JSON object")
        configs[name] = expand_env(entry)
    return configs


def load_backend_configs(path: Path) -> Mapping[str, Mapping[str, Any]]:
    """Load backend configuration from a JSON file.

    Raises:
        ConfigError: If the file is missing or malformed

    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read backend configuration {path}: {exc}") from exc
    return parse_backend_configs(text)

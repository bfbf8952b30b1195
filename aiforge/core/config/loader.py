"""
Configuration file loader — optional YAML overrides for configuration values.

The file is a flat mapping of configuration-value names to strings::

    GO_VERSION: "1.25.6"
    OLLAMA_PULL_MODEL: ""        # skip the model pull

It sits between environment variables and built-in defaults in the
precedence order.  A missing file is fine; a broken one is fatal.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from aiforge.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AIFORGE_CONFIG"
CONFIG_FILE_NAME = "config.yml"


def default_config_path(home: Path | None = None, environ: dict[str, str] | None = None) -> Path:
    """Return the config file path: ``$AIFORGE_CONFIG`` or ``~/.config/ai-forge/config.yml``."""
    env = os.environ if environ is None else environ
    explicit = env.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit).expanduser()
    return (home or Path.home()) / ".config" / "ai-forge" / CONFIG_FILE_NAME


def load_config_file(path: Path | None) -> dict[str, str]:
    """Load configuration overrides from a YAML file.

    Args:
        path: File to read.  ``None`` or a missing file yields ``{}``.

    Returns:
        Mapping of value name to string value (``null`` becomes ``""``).

    Raises:
        ConfigError: If the file is unreadable, not YAML, or not a mapping.
    """
    if path is None or not path.exists():
        return {}

    if not path.is_file():
        raise ConfigError(f"Config path is not a file: {path}")

    logger.debug("Loading config overrides from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    values: dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, (dict, list)):
            raise ConfigError(f"Value for '{key}' in {path} must be a scalar")
        values[str(key)] = "" if value is None else str(value)

    logger.info("Loaded %d config override(s) from %s", len(values), path)
    return values

"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers winning:

  1. ``config/config.yaml``: defaults checked into the repo.
  2. ``.env`` file: local developer overrides (not committed).
  3. Environment variables: set at deploy time.

The YAML file groups options into sections (``embedding``, ``chunking``,
``retrieval``, ``vectors``, ``context``, ``ingestion``, ``backends``); section
keys are the flat :class:`~ragpipe.config.settings.Settings` field names::

    chunking:
      chunking_strategy: sentence
      chunk_size: 800
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ragpipe.config.settings import Settings

DEFAULT_CONFIG_PATH = "config/config.yaml"


def load_config(path: str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load the YAML config and merge explicitly-set environment values on top.

    Args:
        path: Path to the YAML configuration file.  A missing file yields an
              empty base layer.

    Returns:
        The resolved configuration as a flat dict of Settings field names.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    resolved = _flatten_sections(yaml_config)

    env_settings = Settings()
    env_overrides = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }
    _deep_merge(resolved, env_overrides)
    return resolved


def load_settings(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """Return :class:`Settings` built from YAML defaults plus environment overrides."""
    return Settings(**load_config(path))


def _flatten_sections(config: dict[str, Any]) -> dict[str, Any]:
    """Lift ``{section: {field: value}}`` into ``{field: value}``."""
    flat: dict[str, Any] = {}
    for key, value in config.items():
        if isinstance(value, dict) and key not in Settings.model_fields:
            flat.update(value)
        else:
            flat[key] = value
    return flat


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

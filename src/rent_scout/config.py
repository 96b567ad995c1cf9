"""YAML configuration loader."""

import os
from pathlib import Path
from typing import Any

import yaml

from rent_scout.models.pydantic_models import Settings

# Environment overrides for the lookup cache
CACHE_SIZE_ENV = "RENT_SCOUT_CACHE_SIZE"
CACHE_TTL_ENV = "RENT_SCOUT_CACHE_TTL"


def _get_default_config_path() -> Path:
    """Get the default config path relative to project root."""
    return Path(__file__).parent.parent.parent / "config" / "crawler.yaml"


def _load_raw_config(path: Path | None = None) -> dict[str, Any]:
    """Load raw YAML config from path.

    Args:
        path: Path to YAML config file. If None, uses default config/crawler.yaml
            and falls back to an empty config when it does not exist.

    Returns:
        Raw config dictionary.

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist.
        yaml.YAMLError: If YAML parsing fails.
    """
    if path is None:
        path = _get_default_config_path()
        if not path.exists():
            return {}

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw_config: dict[str, Any] | None = yaml.safe_load(f)

    return raw_config if raw_config is not None else {}


def _apply_env_overrides(raw_config: dict[str, Any]) -> dict[str, Any]:
    persistence = dict(raw_config.get("persistence") or {})
    if size := os.environ.get(CACHE_SIZE_ENV):
        persistence["cache_max_size"] = int(size)
    if ttl := os.environ.get(CACHE_TTL_ENV):
        persistence["cache_ttl_seconds"] = float(ttl)
    return {**raw_config, "persistence": persistence}


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings from YAML.

    Args:
        path: Path to YAML config file. If None, uses default config/crawler.yaml.

    Returns:
        Validated Settings instance.

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist.
        yaml.YAMLError: If YAML parsing fails.
        ValidationError: If config doesn't match expected schema.
    """
    raw_config = _apply_env_overrides(_load_raw_config(path))
    return Settings.model_validate(raw_config)

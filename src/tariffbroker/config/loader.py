"""Configuration loader from YAML."""

from pathlib import Path
from typing import Any, Dict

import yaml

from .schema import Config

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def _read_yaml(yaml_path) -> Dict[str, Any]:
    with open(yaml_path, 'r') as f:
        return yaml.safe_load(f) or {}


def merge_dicts(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively overlay overrides onto base without mutating either.

    Nested dicts are merged key by key; any other override value replaces
    the base value outright.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(yaml_path: str = None) -> Config:
    """
    Load configuration from YAML file.

    A game-specific file only needs the values it changes; everything else
    comes from the packaged defaults.

    Args:
        yaml_path: Path to YAML file (defaults to defaults.yaml)

    Returns:
        Config object
    """
    if yaml_path is None:
        return Config.from_dict(_read_yaml(DEFAULTS_PATH))
    return config_from_dict(_read_yaml(yaml_path))


def config_from_dict(data: Dict[str, Any]) -> Config:
    """
    Create config from a partial dictionary layered over the packaged defaults.

    Args:
        data: Configuration overrides, e.g. {"pricing": {"entry_budget": 5}}

    Returns:
        Config object
    """
    return Config.from_dict(merge_dicts(_read_yaml(DEFAULTS_PATH), data))

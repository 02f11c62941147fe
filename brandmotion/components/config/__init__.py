"""Configuration utilities for brandmotion."""

from .defaults import DEFAULT_CONFIG
from .io import load_config
from .merge import merge_configs
from .validate import validate_config

__all__ = ["DEFAULT_CONFIG", "load_config", "merge_configs", "resolve_config", "validate_config"]


def resolve_config(config_path=None, overrides=None):
    """Merge defaults, an optional YAML file and in-code overrides, then validate."""
    config = merge_configs(DEFAULT_CONFIG, {})
    if config_path:
        config = merge_configs(config, load_config(config_path) or {})
    if overrides:
        config = merge_configs(config, overrides)
    validate_config(config)
    return config

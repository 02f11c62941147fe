from typing import Any, Dict


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries where ``override`` has precedence.

    Nested dicts are merged; every other value is replaced. Neither input is
    mutated.
    """
    merged = {
        key: merge_configs(value, {}) if isinstance(value, dict) else value
        for key, value in base.items()
    }
    for key, value in override.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        elif isinstance(value, dict):
            merged[key] = merge_configs(value, {})
        else:
            merged[key] = value
    return merged

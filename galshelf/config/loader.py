"""Configuration loading and parsing."""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


DEFAULT_CONFIG: Dict[str, Any] = {
    'paths': {
        'database': '~/.galshelf/galshelf.db',
        'media': '~/.galshelf/media',
    },
    'catalog': {
        'base_url': 'https://api.vndb.org/kana',
        'request_timeout': 30,
        'requests_per_window': 200,
        'window_seconds': 300,
        'page_size': 10,
    },
    'translation': {
        'base_url': 'https://api.deepseek.com/v1',
        'model': 'deepseek-chat',
        'request_timeout': 60,
        'target_language': 'Simplified Chinese',
    },
    'media': {
        'request_timeout': 30,
        'max_retries': 2,
        'validation_mode': 'normal',
        'max_concurrent_downloads': 4,
    },
    'import': {
        'inter_item_delay': 0.5,
        'max_screenshots': 4,
        'max_tags': 8,
        'max_spoiler': 0,
        'description_limit': 3000,
    },
    'logging': {
        'level': 'INFO',
        'console': True,
        'file': None,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and parse configuration file, filling in defaults.

    Args:
        config_path: Path to config.yaml file. If None, uses ./config.yaml
            when present and the built-in defaults otherwise.

    Returns:
        Parsed configuration dictionary

    Raises:
        ConfigError: If config file cannot be loaded or parsed
    """
    if config_path is None:
        config_path = Path.cwd() / "config.yaml"
        if not config_path.exists():
            return copy.deepcopy(DEFAULT_CONFIG)
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}\n"
            f"Copy config.yaml.example to config.yaml and configure it."
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}")

    # An empty file means "all defaults"
    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise ConfigError("Configuration file must contain a YAML dictionary")

    return _merge(DEFAULT_CONFIG, config)


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., 'import.max_screenshots')
        default: Default value if path not found

    Returns:
        Configuration value or default

    Example:
        >>> get_config_value(config, 'catalog.page_size')
        10
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value

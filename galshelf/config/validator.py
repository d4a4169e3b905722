"""Configuration validation."""

import logging
from typing import Dict, Any, List

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Configuration validation errors."""
    pass


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    All problems are collected and reported together.

    Args:
        config: Configuration dictionary from loader

    Raises:
        ValidationError: If configuration is invalid
    """
    errors = []

    errors.extend(_validate_paths(config.get('paths', {})))
    errors.extend(_validate_catalog(config.get('catalog', {})))
    errors.extend(_validate_translation(config.get('translation', {})))
    errors.extend(_validate_media(config.get('media', {})))
    errors.extend(_validate_import(config.get('import', {})))
    errors.extend(_validate_logging(config.get('logging', {})))

    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_paths(section: Dict[str, Any]) -> List[str]:
    """Validate paths section."""
    errors = []

    for path_key in ('database', 'media'):
        value = section.get(path_key)
        if not value:
            errors.append(f"paths.{path_key} is required")
        elif not isinstance(value, str):
            errors.append(f"paths.{path_key} must be a string path")

    return errors


def _validate_url(section: Dict[str, Any], name: str) -> List[str]:
    base_url = section.get('base_url', '')
    if not isinstance(base_url, str) or not base_url.startswith(('http://', 'https://')):
        return [f"{name}.base_url must be an http(s) URL"]
    return []


def _validate_catalog(section: Dict[str, Any]) -> List[str]:
    """Validate catalog API section."""
    errors = _validate_url(section, 'catalog')

    timeout = section.get('request_timeout', 30)
    if not _is_number(timeout) or timeout <= 0:
        errors.append("catalog.request_timeout must be a positive number")

    calls = section.get('requests_per_window', 200)
    if not _is_int(calls) or calls < 1:
        errors.append("catalog.requests_per_window must be a positive integer")

    window = section.get('window_seconds', 300)
    if not _is_number(window) or window <= 0:
        errors.append("catalog.window_seconds must be a positive number")

    # VNDB caps results per page at 100
    page_size = section.get('page_size', 10)
    if not _is_int(page_size) or not (1 <= page_size <= 100):
        errors.append("catalog.page_size must be between 1 and 100")

    return errors


def _validate_translation(section: Dict[str, Any]) -> List[str]:
    """Validate translation API section."""
    errors = _validate_url(section, 'translation')

    model = section.get('model', 'deepseek-chat')
    if not isinstance(model, str) or not model.strip():
        errors.append("translation.model must be a non-empty string")

    timeout = section.get('request_timeout', 60)
    if not _is_number(timeout) or timeout <= 0:
        errors.append("translation.request_timeout must be a positive number")

    if 'api_key' in section:
        errors.append(
            "translation.api_key is not read from the config file; "
            "store it with 'galshelf set-key'"
        )

    return errors


def _validate_media(section: Dict[str, Any]) -> List[str]:
    """Validate media download section."""
    errors = []

    timeout = section.get('request_timeout', 30)
    if not _is_number(timeout) or timeout <= 0:
        errors.append("media.request_timeout must be a positive number")

    retries = section.get('max_retries', 2)
    if not _is_int(retries) or not (1 <= retries <= 10):
        errors.append("media.max_retries must be between 1 and 10")

    mode = section.get('validation_mode', 'normal')
    valid_modes = ['disabled', 'normal']
    if mode not in valid_modes:
        errors.append(f"media.validation_mode must be one of: {', '.join(valid_modes)}")

    concurrent = section.get('max_concurrent_downloads', 4)
    if not _is_int(concurrent) or concurrent < 1:
        errors.append("media.max_concurrent_downloads must be a positive integer")

    return errors


def _validate_import(section: Dict[str, Any]) -> List[str]:
    """Validate import pipeline section."""
    errors = []

    delay = section.get('inter_item_delay', 0.5)
    if not _is_number(delay) or delay < 0:
        errors.append("import.inter_item_delay must be a non-negative number")

    for key, default in (('max_screenshots', 4), ('max_tags', 8)):
        value = section.get(key, default)
        if not _is_int(value) or value < 0:
            errors.append(f"import.{key} must be a non-negative integer")

    spoiler = section.get('max_spoiler', 0)
    if not _is_int(spoiler) or not (0 <= spoiler <= 2):
        errors.append("import.max_spoiler must be 0, 1 or 2")

    limit = section.get('description_limit', 3000)
    if not _is_int(limit) or limit < 1:
        errors.append("import.description_limit must be a positive integer")

    return errors


def _validate_logging(section: Dict[str, Any]) -> List[str]:
    """Validate logging options section."""
    errors = []

    level = section.get('level', 'INFO')
    valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR']
    if level not in valid_levels:
        errors.append(f"logging.level must be one of: {', '.join(valid_levels)}")

    console = section.get('console', True)
    if not isinstance(console, bool):
        errors.append("logging.console must be a boolean")

    if 'file' in section and section['file'] is not None:
        if not isinstance(section['file'], str):
            errors.append("logging.file must be a string path or null")

    return errors

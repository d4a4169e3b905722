import copy

import pytest

from galshelf.config.loader import DEFAULT_CONFIG
from galshelf.config.validator import ValidationError, validate_config


@pytest.fixture
def config():
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.mark.unit
def test_defaults_are_valid(config):
    validate_config(config)


@pytest.mark.unit
def test_validate_config_collects_errors(config):
    config["paths"]["database"] = ""
    config["catalog"]["base_url"] = "ftp://api.vndb.org"
    config["catalog"]["page_size"] = 500
    config["translation"]["api_key"] = "sk-secret"
    config["media"]["validation_mode"] = "strict"
    config["import"]["max_spoiler"] = 3
    config["import"]["inter_item_delay"] = -1
    config["logging"]["level"] = "TRACE"

    with pytest.raises(ValidationError) as exc_info:
        validate_config(config)

    message = str(exc_info.value)
    for fragment in (
        "paths.database",
        "catalog.base_url",
        "catalog.page_size",
        "translation.api_key",
        "media.validation_mode",
        "import.max_spoiler",
        "import.inter_item_delay",
        "logging.level",
    ):
        assert fragment in message


@pytest.mark.unit
@pytest.mark.parametrize("section, key, value", [
    ("catalog", "requests_per_window", 0),
    ("catalog", "request_timeout", "soon"),
    ("translation", "model", " "),
    ("media", "max_retries", 0),
    ("media", "max_concurrent_downloads", True),
    ("import", "max_tags", -1),
    ("import", "description_limit", 0),
    ("logging", "console", "yes"),
    ("logging", "file", 42),
])
def test_single_bad_value_is_reported(config, section, key, value):
    config[section][key] = value

    with pytest.raises(ValidationError, match=f"{section}.{key}"):
        validate_config(config)


@pytest.mark.unit
def test_boundary_values_are_accepted(config):
    config["catalog"]["page_size"] = 100
    config["media"]["max_retries"] = 10
    config["import"]["max_spoiler"] = 2
    config["import"]["inter_item_delay"] = 0
    config["logging"]["file"] = "galshelf.log"

    validate_config(config)

"""Tests for configuration loading and bootstrapping."""

import json

import pytest

from mail_harvester import constants
from mail_harvester.config import (
    default_config,
    ensure_config,
    ensure_directories,
    load_config,
)
from mail_harvester.errors import ConfigError


def test_ensure_config_writes_default(tmp_path):
    """A missing config file is created with the placeholder defaults."""
    path = ensure_config(tmp_path / "config" / "mail.json")
    data = json.loads(path.read_text())
    assert data == default_config()
    assert data["login"]["port"] == 995
    assert load_config(path).is_placeholder is True


def test_ensure_config_keeps_existing_file(tmp_path):
    """An existing config file is never overwritten."""
    path = tmp_path / "mail.json"
    path.write_text('{"keep": "me"}')
    ensure_config(path, custom_path=tmp_path / "other.json")
    assert json.loads(path.read_text()) == {"keep": "me"}


def test_ensure_config_replaces_empty_file_with_custom(tmp_path):
    """A blank config file is replaced by the custom template."""
    custom = default_config()
    custom["login"]["hostname"] = "pop.shop.com"
    custom_path = tmp_path / "custom.json"
    custom_path.write_text(json.dumps(custom))
    path = tmp_path / "mail.json"
    path.write_text("   ")

    ensure_config(path, custom_path=custom_path)

    config = load_config(path)
    assert config.login.hostname == "pop.shop.com"
    assert config.is_placeholder is False


def test_ensure_config_missing_custom_falls_back(tmp_path, caplog):
    """A missing custom template falls back to the defaults."""
    path = ensure_config(tmp_path / "mail.json", custom_path=tmp_path / "nope.json")
    assert json.loads(path.read_text()) == default_config()
    assert "not found" in caplog.text


def test_load_config_parses_sections(tmp_path):
    """Login and whitelist sections load, with the default header list."""
    path = tmp_path / "mail.json"
    path.write_text(
        json.dumps(
            {
                "login": {"hostname": "pop.shop.com", "port": "995", "username": "u", "password": "p"},
                "whitelist": {"senders": ["a@x.com"], "receivers": ["b@y.com"]},
            }
        )
    )
    config = load_config(path)
    assert config.login.port == 995
    assert config.whitelist.senders == ["a@x.com"]
    assert config.headers_to_filter == constants.DEFAULT_HEADERS_TO_KEEP


def test_load_config_missing_section(tmp_path):
    """A config without a whitelist is invalid."""
    path = tmp_path / "mail.json"
    path.write_text(json.dumps({"login": {"hostname": "h", "port": 1, "username": "u", "password": "p"}}))
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(path)


def test_load_config_invalid_json(tmp_path):
    """Malformed JSON is a configuration error."""
    path = tmp_path / "mail.json"
    path.write_text("{oops")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    """A missing config file is a configuration error."""
    with pytest.raises(ConfigError, match="missing or empty"):
        load_config(tmp_path / "absent.json")


def test_ensure_directories(app_home):
    """Every application directory is created."""
    ensure_directories()
    for directory in ("config", "data", "emails", "excels"):
        assert (app_home / directory).is_dir()

from __future__ import annotations

from datetime import time

import pytest

from ring_to_open.config import load_config, read_settings
from ring_to_open.errors import ConfigError, PolicyError


def _env_file(tmp_path, text):
    path = tmp_path / ".env"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_applied_when_only_token_given(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\n")

    config = load_config(path, environ={})

    assert config.refresh_token == "abc123"
    assert config.window.open_time == time(8, 0)
    assert config.window.close_time == time(22, 0)
    assert config.window.enabled is False
    assert config.debug is False
    assert config.door_device_id is None
    assert config.poll_interval == 5.0
    assert config.env_path == path


def test_file_values_are_parsed(tmp_path):
    path = _env_file(
        tmp_path,
        "RING_REFRESH_TOKEN=abc123\n"
        "DOOR_OPEN_TIME=22:00\n"
        "DOOR_CLOSE_TIME=07:30\n"
        "AUTO_OPEN_ENABLED=true\n"
        "DOOR_DEVICE_ID=101\n"
        "DEBUG=yes\n"
        "RING_POLL_INTERVAL=2.5\n",
    )

    config = load_config(path, environ={})

    assert config.window.open_time == time(22, 0)
    assert config.window.close_time == time(7, 30)
    assert config.window.enabled is True
    assert config.door_device_id == "101"
    assert config.debug is True
    assert config.poll_interval == 2.5


def test_environment_overrides_file(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\nAUTO_OPEN_ENABLED=false\n")

    config = load_config(path, environ={"AUTO_OPEN_ENABLED": "true", "UNRELATED": "x"})

    assert config.refresh_token == "abc123"
    assert config.window.enabled is True


def test_empty_environment_values_do_not_override(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\n")
    settings = read_settings(path, environ={"RING_REFRESH_TOKEN": ""})
    assert settings["RING_REFRESH_TOKEN"] == "abc123"


def test_missing_token_raises_config_error(tmp_path):
    path = _env_file(tmp_path, "DEBUG=true\n")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path, environ={})
    assert "RING_REFRESH_TOKEN" in str(excinfo.value)


def test_missing_file_uses_environment(tmp_path):
    config = load_config(tmp_path / "absent.env", environ={"RING_REFRESH_TOKEN": "abc123"})
    assert config.refresh_token == "abc123"


def test_malformed_time_raises_policy_error(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\nDOOR_OPEN_TIME=8am\n")

    with pytest.raises(PolicyError):
        load_config(path, environ={})


def test_invalid_flag_raises_config_error(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\nAUTO_OPEN_ENABLED=maybe\n")

    with pytest.raises(ConfigError) as excinfo:
        load_config(path, environ={})
    assert not isinstance(excinfo.value, PolicyError)


def test_poll_interval_below_minimum_is_rejected(tmp_path):
    path = _env_file(tmp_path, "RING_REFRESH_TOKEN=abc123\nRING_POLL_INTERVAL=0.1\n")

    with pytest.raises(ConfigError):
        load_config(path, environ={})

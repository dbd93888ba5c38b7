from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import voluptuous as vol
from dotenv import dotenv_values

from .const import (
    CONF_AUTO_OPEN,
    CONF_CLOSE_TIME,
    CONF_DEBUG,
    CONF_DOOR_DEVICE,
    CONF_OPEN_TIME,
    CONF_POLL_INTERVAL,
    CONF_REFRESH_TOKEN,
    CONFIG_KEYS,
    DEFAULT_CLOSE_TIME,
    DEFAULT_ENV_FILE,
    DEFAULT_OPEN_TIME,
    DEFAULT_POLL_INTERVAL,
    MIN_POLL_INTERVAL,
)
from .errors import ConfigError
from .models import RingToOpenConfig
from .window import build_window

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_REFRESH_TOKEN): vol.All(str, vol.Strip, vol.Length(min=1)),
        vol.Optional(CONF_OPEN_TIME, default=DEFAULT_OPEN_TIME): str,
        vol.Optional(CONF_CLOSE_TIME, default=DEFAULT_CLOSE_TIME): str,
        vol.Optional(CONF_AUTO_OPEN, default=False): vol.Boolean(),
        vol.Optional(CONF_DOOR_DEVICE): vol.All(str, vol.Strip),
        vol.Optional(CONF_DEBUG, default=False): vol.Boolean(),
        vol.Optional(CONF_POLL_INTERVAL, default=DEFAULT_POLL_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=MIN_POLL_INTERVAL)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


def read_settings(
    env_file: Union[str, Path] = DEFAULT_ENV_FILE,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Merge the ``.env`` file with the process environment; environment wins."""

    path = Path(env_file)
    settings: Dict[str, Any] = {}
    if path.is_file():
        for key, value in dotenv_values(path).items():
            if value not in (None, ""):
                settings[key] = value
    else:
        _LOGGER.debug("No env file at %s, using the process environment only", path)

    env = os.environ if environ is None else environ
    for key in CONFIG_KEYS:
        value = env.get(key)
        if value not in (None, ""):
            settings[key] = value
    return settings


def load_config(
    env_file: Union[str, Path] = DEFAULT_ENV_FILE,
    environ: Optional[Mapping[str, str]] = None,
) -> RingToOpenConfig:
    """Load and validate the service configuration.

    Raises ConfigError for a missing token or an invalid option, and
    PolicyError (a ConfigError) for a malformed open/close time.
    """

    raw = read_settings(env_file, environ)
    try:
        data = CONFIG_SCHEMA(raw)
    except vol.MultipleInvalid as err:
        raise ConfigError(_describe_invalid(err)) from err
    except vol.Invalid as err:
        raise ConfigError(str(err)) from err

    window = build_window(data[CONF_OPEN_TIME], data[CONF_CLOSE_TIME], data[CONF_AUTO_OPEN])

    return RingToOpenConfig(
        refresh_token=data[CONF_REFRESH_TOKEN],
        window=window,
        door_device_id=data.get(CONF_DOOR_DEVICE) or None,
        debug=data[CONF_DEBUG],
        poll_interval=data[CONF_POLL_INTERVAL],
        env_path=Path(env_file),
    )


def _describe_invalid(err: vol.MultipleInvalid) -> str:
    parts = []
    for error in err.errors:
        key = error.path[0] if error.path else None
        if key == CONF_REFRESH_TOKEN and "required" in error.msg:
            parts.append(f"{CONF_REFRESH_TOKEN} is not set")
        elif key is not None:
            parts.append(f"invalid value for {key}: {error.msg}")
        else:
            parts.append(error.msg)
    return "; ".join(parts)

from __future__ import annotations

DOMAIN = "ring_to_open"

VERSION = "0.1.0"

# Config keys (environment / .env names)
CONF_REFRESH_TOKEN = "RING_REFRESH_TOKEN"
CONF_OPEN_TIME     = "DOOR_OPEN_TIME"     # "HH:MM"
CONF_CLOSE_TIME    = "DOOR_CLOSE_TIME"    # "HH:MM"
CONF_AUTO_OPEN     = "AUTO_OPEN_ENABLED"
CONF_DOOR_DEVICE   = "DOOR_DEVICE_ID"
CONF_DEBUG         = "DEBUG"
CONF_POLL_INTERVAL = "RING_POLL_INTERVAL"

CONFIG_KEYS = (
    CONF_REFRESH_TOKEN,
    CONF_OPEN_TIME,
    CONF_CLOSE_TIME,
    CONF_AUTO_OPEN,
    CONF_DOOR_DEVICE,
    CONF_DEBUG,
    CONF_POLL_INTERVAL,
)

# Defaults
DEFAULT_ENV_FILE         = ".env"
DEFAULT_OPEN_TIME        = "08:00"
DEFAULT_CLOSE_TIME       = "22:00"
DEFAULT_POLL_INTERVAL    = 5.0   # seconds
MIN_POLL_INTERVAL        = 1.0   # seconds
DEFAULT_SHUTDOWN_TIMEOUT = 10.0  # seconds
DEFAULT_REQUEST_TIMEOUT  = 15    # seconds

DEFAULT_ACTUATION_HISTORY_LIMIT = 100
DEFAULT_DIAGNOSTICS_HISTORY_LIMIT = 50
MIN_DIAGNOSTICS_HISTORY_LIMIT = 10
MAX_DIAGNOSTICS_HISTORY_LIMIT = 200

# Ring endpoints
OAUTH_URL        = "https://oauth.ring.com/oauth/token"
CLIENT_API_BASE  = "https://api.ring.com/clients_api/"
COMMAND_API_BASE = "https://api.ring.com/commands/v1/"

OAUTH_CLIENT_ID = "ring_official_android"
USER_AGENT      = f"{DOMAIN}/{VERSION}"

# Device kinds that can actuate a door
INTERCOM_KIND_PREFIX = "intercom"

DING_KIND_DOORBELL = "ding"
SEEN_DINGS_LIMIT   = 200

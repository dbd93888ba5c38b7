"""Open the door when the Ring intercom doorbell is pressed during configured hours."""
from __future__ import annotations

from .const import VERSION
from .errors import (
    ActuationError,
    ConfigError,
    CredentialPersistError,
    DiscoveryError,
    LifecycleError,
    PolicyError,
    RingToOpenError,
    SubscriptionError,
)
from .models import (
    AccessWindow,
    ActionOutcome,
    ActuationEvent,
    DeviceHandle,
    RingToOpenConfig,
    ServiceState,
    SubscriptionState,
)
from .service import RingToOpen

__version__ = VERSION

__all__ = [
    "AccessWindow",
    "ActionOutcome",
    "ActuationError",
    "ActuationEvent",
    "ConfigError",
    "CredentialPersistError",
    "DeviceHandle",
    "DiscoveryError",
    "LifecycleError",
    "PolicyError",
    "RingToOpen",
    "RingToOpenConfig",
    "RingToOpenError",
    "ServiceState",
    "SubscriptionError",
    "SubscriptionState",
]

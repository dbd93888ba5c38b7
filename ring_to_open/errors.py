"""Error taxonomy for the ring-to-open service."""
from __future__ import annotations


class RingToOpenError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(RingToOpenError):
    """Configuration is missing or invalid; startup must not proceed."""


class PolicyError(ConfigError):
    """The access window configuration is malformed."""


class DiscoveryError(RingToOpenError):
    """No device could be discovered from the control service."""


class SubscriptionError(RingToOpenError):
    """Subscribing or unsubscribing a single device failed."""

    def __init__(self, device_id: str, message: str) -> None:
        super().__init__(f"{device_id}: {message}")
        self.device_id = device_id


class ActuationError(RingToOpenError):
    """The unlock request for a device failed."""


class CredentialPersistError(RingToOpenError):
    """A rotated credential could not be written to durable storage."""


class LifecycleError(RingToOpenError):
    """The service was asked for an illegal state transition."""

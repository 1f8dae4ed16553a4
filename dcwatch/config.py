"""
Configuration settings for dcwatch.
"""
from typing import Literal, Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from .retry import RetryPolicy


class WatchSettings(BaseSettings):
    """
    dcwatch configuration loaded from environment variables (``DCWATCH_*``).
    """
    model_config = ConfigDict(
        env_prefix="DCWATCH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Manager connection
    manager_url: str = "http://localhost:4035"
    origin: str = "dcwatch"
    request_timeout: float = 10.0  # seconds
    manifest_shape: Literal["profile_map", "capability_list"] = "profile_map"

    # Polling
    availability_base_delay: float = 0.25  # seconds
    discovery_base_delay: float = 0.5  # seconds
    max_delay: float = 5.0  # seconds
    backoff_multiplier: float = 2.0

    # Event subscription; leave profile/attribute empty to use the watched path
    event_profile: Optional[str] = "deviceOrientation"
    event_interface: Optional[str] = None
    event_attribute: Optional[str] = "onDeviceOrientation"
    event_interval: Optional[int] = 500  # milliseconds

    # Session
    open_timeout: float = 30.0  # seconds
    restart_on_failure: bool = False
    event_queue_size: int = 1000

    def retry_policy(self, kind: Literal["availability", "discovery"]) -> RetryPolicy:
        """Backoff policy for the availability gate or the discovery loop."""
        base_delay = self.availability_base_delay if kind == "availability" else self.discovery_base_delay
        return RetryPolicy(
            base_delay=base_delay,
            max_delay=max(self.max_delay, base_delay),
            multiplier=self.backoff_multiplier,
        )

    def event_params(self) -> dict:
        """Query parameters sent with the event registration."""
        if self.event_interval is None:
            return {}
        return {"interval": str(self.event_interval)}


# Global settings instance
settings = WatchSettings()

"""
Data models for dcwatch.

Wire-facing models derive from BaseDTO so they serialize with camelCase
aliases (``serviceId``, ``supportApis``) while Python code keeps using
snake_case field names.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class BaseDTO(BaseModel):
    """
    Base configuration for all DTOs.

    - Aliases are generated in camelCase for JSON serialization.
    - Allows population by field name (snake_case) in Python code.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Capability paths and services
# =============================================================================


class PathSpec(BaseDTO):
    """
    Parsed capability path: ``/{api}/{profile}[/{interface}]/{attribute}``.

    Use ``dcwatch.path.parse()`` to build one from a string.
    """
    model_config = ConfigDict(frozen=True)

    api: str = Field(..., description="API name, e.g. 'gotapi'.")
    profile: str = Field(..., description="Profile name, e.g. 'deviceOrientation'.")
    interface: Optional[str] = Field(default=None, description="Interface name (5-segment paths only).")
    attribute: Optional[str] = Field(default=None, description="Attribute name (4- and 5-segment paths).")

    @property
    def sub_path(self) -> Optional[str]:
        """Path below the profile, as listed in a profile's ``paths`` table."""
        if self.attribute is None:
            return None
        if self.interface is not None:
            return f"/{self.interface}/{self.attribute}"
        return f"/{self.attribute}"

    @property
    def path(self) -> str:
        """The full capability path this spec was parsed from."""
        return f"/{self.api}/{self.profile}{self.sub_path or ''}"

    def __str__(self) -> str:
        return self.path


class ServiceDescriptor(BaseDTO):
    """One entry of the remote service registry."""
    id: str = Field(..., description="Service identifier.")
    name: str = Field(..., description="Human-readable service name.")


# =============================================================================
# Capability manifests
# =============================================================================


class ProfileMapManifest(BaseDTO):
    """
    Manifest keyed by profile name, each profile carrying a ``paths`` table.

    Example::

        {"deviceOrientation": {"paths": {"/onDeviceOrientation": {...}}}}
    """
    shape: Literal["profile_map"] = "profile_map"
    profiles: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def matches(self, spec: PathSpec) -> bool:
        definition = self.profiles.get(spec.profile)
        if not isinstance(definition, dict):
            return False
        if spec.sub_path is None:
            return True
        paths = definition.get("paths")
        if not isinstance(paths, dict):
            return False
        return paths.get(spec.sub_path) is not None


class CapabilityListManifest(BaseDTO):
    """Manifest listing supported profile names only."""
    shape: Literal["capability_list"] = "capability_list"
    supports: List[str] = Field(default_factory=list)

    def matches(self, spec: PathSpec) -> bool:
        # Interface and attribute cannot be checked against a flat list.
        return spec.profile in self.supports


Manifest = Annotated[
    Union[ProfileMapManifest, CapabilityListManifest],
    Field(discriminator="shape"),
]

_manifest_adapter = TypeAdapter(Manifest)


def parse_manifest(data: Any) -> Union[ProfileMapManifest, CapabilityListManifest]:
    """
    Validate a manifest instance or a dict tagged with ``shape``.

    Raises:
        pydantic.ValidationError: If ``data`` is not a known manifest variant
    """
    if isinstance(data, (ProfileMapManifest, CapabilityListManifest)):
        return data
    return _manifest_adapter.validate_python(data)


# =============================================================================
# Event channel and subscriptions
# =============================================================================


class ChannelState(str, Enum):
    """Lifecycle state of the event channel."""
    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    FAILED = "failed"


class SubscriptionTarget(BaseDTO):
    """Where an event subscription is registered: a service plus an event attribute."""
    model_config = ConfigDict(frozen=True)

    api: str = "gotapi"
    service_id: str
    profile: str
    interface: Optional[str] = None
    attribute: str

    @property
    def path(self) -> str:
        parts = [self.api, self.profile]
        if self.interface:
            parts.append(self.interface)
        parts.append(self.attribute)
        return "/" + "/".join(parts)

    def matches_event(self, payload: Dict[str, Any]) -> bool:
        """Check whether an incoming event payload belongs to this target."""
        if payload.get("serviceId") != self.service_id:
            return False
        # Managers are not consistent about the case of profile names.
        if str(payload.get("profile", "")).lower() != self.profile.lower():
            return False
        if str(payload.get("attribute", "")).lower() != self.attribute.lower():
            return False
        interface = payload.get("interface")
        if self.interface is None:
            return not interface
        return str(interface or "").lower() == self.interface.lower()


@dataclass
class SubscriptionHandle:
    """An active event registration, owned by the EventChannelManager."""
    target: SubscriptionTarget
    params: Dict[str, str] = field(default_factory=dict)
    token: str = field(default_factory=lambda: str(uuid4()))
    released: bool = False


# =============================================================================
# Consumer notifications
# =============================================================================


class NotificationKind(str, Enum):
    """Notifications a session sends to its consumers."""
    WAITING_MANAGER = "waiting_manager"
    MANAGER_AVAILABLE = "manager_available"
    WAITING_SERVICE = "waiting_service"
    SERVICE_AVAILABLE = "service_available"
    EVENT = "event"
    SESSION_FAILED = "session_failed"


class Notification(BaseDTO):
    """A message delivered to session consumers."""
    kind: NotificationKind
    payload: Any = None
    service_name: Optional[str] = None

"""Domain models for secret management."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class VersionState(Enum):
    """Lifecycle state of a secret version."""
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"
    DESTROYED = "DESTROYED"

    @classmethod
    def from_api(cls, name: str) -> "VersionState":
        """Map a Secret Manager state name (e.g. 'ENABLED') to a VersionState.

        Unspecified or unknown states are treated as DISABLED so that the
        payload is never requested for them.
        """
        try:
            return cls(name)
        except ValueError:
            return cls.DISABLED

    def can_transition_to(self, target: "VersionState") -> bool:
        # destroyed is terminal
        return target in _TRANSITIONS[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


_TRANSITIONS = {
    VersionState.ENABLED: {VersionState.DISABLED, VersionState.DESTROYED},
    VersionState.DISABLED: {VersionState.ENABLED, VersionState.DESTROYED},
    VersionState.DESTROYED: set(),
}


@dataclass
class Project:
    """A GCP project the user can browse."""
    project_id: str
    display_name: str = ""

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.project_id


@dataclass
class Secret:
    """Represents a secret with its metadata (never its payload)."""
    name: str
    project_id: str
    create_time: Optional[datetime] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    replication: str = "Automatic"
    version_aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return f"projects/{self.project_id}/secrets/{self.name}"


@dataclass
class Version:
    """A single revision of a secret."""
    secret_name: str
    version_id: str
    state: VersionState
    create_time: Optional[datetime] = None
    destroy_time: Optional[datetime] = None


def format_timestamp(value: Optional[datetime]) -> str:
    """Render an API timestamp as 'YYYY-MM-DD HH:MM', or 'Unknown'."""
    if value is None:
        return "Unknown"
    return value.strftime("%Y-%m-%d %H:%M")


def short_name(resource_name: str) -> str:
    """Return the last path segment of a resource name."""
    return resource_name.rsplit("/", 1)[-1]

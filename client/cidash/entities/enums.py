"""Shared enums for the image builder workflow and registry monitoring."""

from enum import Enum


class ComparisonMode(str, Enum):
    """Which pair of references drives change detection."""

    BRANCH = "branch"
    COMMIT = "commit"


class ConnectivityState(str, Enum):
    """Live status of one registry's connectivity monitor."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class NotificationType(str, Enum):
    """Severity of a transient notification."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"

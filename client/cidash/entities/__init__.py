"""Domain records shared by the workflow, the API client and the views."""

from .enums import ComparisonMode, ConnectivityState, NotificationType
from .notification import Notification
from .registry import ConnectivityStatus, Registry
from .repository import Branch, Commit, Repository
from .service import ChangedService

__all__ = [
    "Branch",
    "ChangedService",
    "Commit",
    "ComparisonMode",
    "ConnectivityState",
    "ConnectivityStatus",
    "Notification",
    "NotificationType",
    "Registry",
    "Repository",
]

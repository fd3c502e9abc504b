"""
In-app notifications for the workflow and the registry monitors.

Every notification is logged at a level matching its type, kept in a bounded
in-memory list for display, and forwarded to an optional listener (a
terminal printer, a UI toast).
"""

import logging
from typing import Callable, List, Optional

from cidash.entities import Notification, NotificationType

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    NotificationType.INFO: logging.INFO,
    NotificationType.SUCCESS: logging.INFO,
    NotificationType.ERROR: logging.WARNING,
}


class Notifier:
    def __init__(
        self,
        listener: Optional[Callable[[Notification], None]] = None,
        max_items: int = 50,
    ):
        self.listener = listener
        self.max_items = max_items
        self._items: List[Notification] = []

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    @property
    def latest(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None

    def notify(self, type: NotificationType, title: str, message: str = "") -> Notification:
        notification = Notification(type=type, title=title, message=message)
        logger.log(_LOG_LEVELS[type], f"{title}: {message}" if message else title)

        self._items.append(notification)
        if len(self._items) > self.max_items:
            del self._items[: len(self._items) - self.max_items]

        if self.listener is not None:
            self.listener(notification)
        return notification

    def info(self, title: str, message: str = "") -> Notification:
        return self.notify(NotificationType.INFO, title, message)

    def success(self, title: str, message: str = "") -> Notification:
        return self.notify(NotificationType.SUCCESS, title, message)

    def error(self, title: str, message: str = "") -> Notification:
        return self.notify(NotificationType.ERROR, title, message)

    def clear(self) -> None:
        self._items = []

"""
Notifications

Collects toasts for the render layer. Posting never blocks and never
raises; the render layer drains or reads the queue at its own pace.
"""

from itertools import count
from typing import Callable, List, Optional

from frontend.presentation.viewmodels import Notification, NotificationLevel


class Notifier:
    """Queue of user-visible notifications, newest last."""

    def __init__(self, listener: Optional[Callable[[Notification], None]] = None, max_items: int = 50):
        self._items: List[Notification] = []
        self._ids = count(1)
        self._listener = listener
        self._max_items = max_items

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.INFO) -> Notification:
        notification = Notification(next(self._ids), level, message)
        self._items.append(notification)
        del self._items[:-self._max_items]
        if self._listener is not None:
            self._listener(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.ERROR)

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    @property
    def last(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None

    def drain(self) -> List[Notification]:
        items, self._items = self._items, []
        return items

"""Short-lived user-facing messages (import summaries, failures)."""

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, List

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    type: NotificationType
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationCenter:
    """Keeps the most recent notifications for the client to poll."""

    def __init__(self, max_items: int = 50):
        self._items: Deque[Notification] = deque(maxlen=max_items)

    def notify(self, message: str, type: NotificationType = NotificationType.SUCCESS) -> Notification:
        notification = Notification(type=type, message=message)
        self._items.appendleft(notification)
        logger.info("[%s] %s", type.value, message)
        return notification

    def recent(self) -> List[Notification]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

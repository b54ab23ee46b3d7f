"""
Notification outbox.

The worker cannot draw on the user's screen from a server process, so
notifications are queued here and the page drains them.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from shared.logging import get_logger


DEFAULT_ICON = "/icons/icon-192x192.png"
DEFAULT_BADGE = "/icons/icon-72x72.png"


@dataclass
class Notification:
    title: str
    options: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "options": self.options, "created_at": self.created_at}


class NotificationCenter:
    """Bounded FIFO of notifications waiting to be shown."""

    def __init__(self, max_pending: int = 100):
        self.logger = get_logger("offline.notifications")
        self._pending: Deque[Notification] = deque(maxlen=max_pending)

    async def show_notification(self, title: str, options: Optional[Dict[str, Any]] = None) -> Notification:
        notification = Notification(title=title, options=dict(options or {}))
        self._pending.append(notification)
        self.logger.info("Notification queued", title=title, pending=len(self._pending))
        return notification

    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        drained = list(self._pending)
        self._pending.clear()
        return drained

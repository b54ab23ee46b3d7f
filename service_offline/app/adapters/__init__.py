"""
Adapters for the offline cache service.

- NetworkClient: httpx client for the blog origin.
- NotificationCenter: outbox for notifications the page displays.
"""

from .network_client import NetworkClient
from .notifications import Notification, NotificationCenter

__all__ = ["NetworkClient", "Notification", "NotificationCenter"]

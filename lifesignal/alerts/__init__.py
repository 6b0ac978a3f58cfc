"""
Manual alert trigger and the notification collaborator it reports to.

File: alerts/__init__.py
Created: 2026-10-15
Last Modified: 2026-10-15
"""

from .manual_alert import AlertTrigger
from .notifications import ConsoleNotificationClient, NotificationClient

__all__ = [
    "AlertTrigger",
    "ConsoleNotificationClient",
    "NotificationClient",
]

"""
Notification delivery collaborator.

Push transport lives outside this package; the core only needs something
that can tell a user's responders an alert started or ended.

File: alerts/notifications.py
Created: 2026-10-15
Last Modified: 2026-10-17
"""

import logging
from typing import List, Optional, Protocol, Tuple

from rich.console import Console

log = logging.getLogger(__name__)


class NotificationClient(Protocol):
    async def send_manual_alert(self, user_id: str) -> None:
        ...

    async def cancel_manual_alert(self, user_id: str) -> None:
        ...


class ConsoleNotificationClient:
    """Prints alert fan-out to the terminal. Used by the CLI harness."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.sent: List[Tuple[str, str]] = []

    async def send_manual_alert(self, user_id: str) -> None:
        log.info(f"Manual alert sent for {user_id}")
        self.sent.append(("alert", user_id))
        self.console.print(f"[bold red]Alert sent to responders of {user_id}[/bold red]")

    async def cancel_manual_alert(self, user_id: str) -> None:
        log.info(f"Manual alert cancelled for {user_id}")
        self.sent.append(("cancel", user_id))
        self.console.print(f"[green]Alert cancelled for responders of {user_id}[/green]")

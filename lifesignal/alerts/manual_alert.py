"""
Manual alert trigger.

Unlike contact edits, the alert flag is rolled back when it cannot be
persisted, and responders are only notified after the write commits.

File: alerts/manual_alert.py
Created: 2026-10-15
Last Modified: 2026-10-19
"""

import logging
from datetime import datetime
from typing import Optional

from ..documents import DocumentStore, RelationshipFunctions, user_doc
from ..errors import NotFound, ServerError, from_exception
from ..liveness import Clock, utc_now
from ..models import format_timestamp, parse_timestamp
from ..user.session import Session
from .notifications import NotificationClient

log = logging.getLogger(__name__)


class AlertTrigger:
    """Holds the signed-in user's manual alert state and keeps it persisted."""

    def __init__(
        self,
        session: Session,
        documents: DocumentStore,
        notifier: NotificationClient,
        functions: RelationshipFunctions,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.documents = documents
        self.notifier = notifier
        self.functions = functions
        self._clock = clock or utc_now

        self._active = False
        self._timestamp: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def timestamp(self) -> Optional[datetime]:
        return self._timestamp

    async def refresh(self) -> bool:
        """Load the persisted alert state."""
        user_id = self.session.require_user_id()
        data = await self.documents.get(user_doc(user_id))
        if data is None:
            raise NotFound(f"User {user_id} not found")
        self._active = bool(data.get("manualAlertActive", False))
        self._timestamp = parse_timestamp(data.get("manualAlertTimestamp"))
        return self._active

    async def set_alert(self, active: bool) -> bool:
        """
        Turn the manual alert on or off.

        Activation stamps a fresh timestamp; deactivation clears it. The
        user document and every counterpart's mirror are written together,
        then responders are notified.

        Raises:
            LifeSignalError: Persisting failed (local state reverted, nobody notified)
            ServerError: Persisted, but the notification could not be sent
        """
        user_id = self.session.require_user_id()
        # Compare against the stored state, which another device may have changed
        await self.refresh()
        if active == self._active:
            log.info(f"Manual alert already {'active' if active else 'inactive'} for {user_id}")
            return self._active

        previous = (self._active, self._timestamp)
        self._active = active
        self._timestamp = self._clock() if active else None

        fields = {
            "manualAlertActive": self._active,
            "manualAlertTimestamp": format_timestamp(self._timestamp),
        }
        try:
            await self.functions.update_user_fields(user_id, fields, fields)
        except Exception as e:
            self._active, self._timestamp = previous
            error = from_exception(e, "set_alert")
            log.error(f"Could not persist manual alert for {user_id}, reverted: {error}")
            if error is e:
                raise
            raise error from e

        try:
            if active:
                await self.notifier.send_manual_alert(user_id)
            else:
                await self.notifier.cancel_manual_alert(user_id)
        except Exception as e:
            log.error(f"Manual alert saved for {user_id} but notification failed: {e}")
            raise ServerError(f"Alert saved, but responders could not be notified: {e}") from e

        log.info(f"Manual alert {'activated' if active else 'cancelled'} for {user_id}")
        return self._active

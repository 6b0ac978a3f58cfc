"""
Ping request/response protocol.

Each edge carries two independent ping directions. Outgoing is "I asked
this contact to check in"; incoming is "this contact asked me". Every
operation flips the local flag first, then pushes only the direction it
touched, so a stale flag for the other direction is never written back.

File: contacts/ping.py
Created: 2026-10-15
Last Modified: 2026-10-18
"""

import logging
from typing import Optional, Union

from ..errors import LifeSignalError, PermissionDenied
from ..liveness import Clock, utc_now
from ..models import ContactReference
from .store import LocalContactStore
from .sync import ContactSyncEngine, PingDirection

log = logging.getLogger(__name__)

ContactLike = Union[ContactReference, str]


def _contact_id(contact: ContactLike) -> str:
    return contact if isinstance(contact, str) else contact.id


class PingHandler:
    """Send, answer and clear pings for the signed-in user's contacts."""

    def __init__(self, sync_engine: ContactSyncEngine, store: LocalContactStore, clock: Optional[Clock] = None):
        self.sync_engine = sync_engine
        self.store = store
        self._clock = clock or utc_now

    async def send_ping(self, target: ContactLike) -> ContactReference:
        """
        Ask a contact to check in.

        Re-sending refreshes the timestamp. The incoming direction is never
        touched.

        Raises:
            NotFound: Not one of the user's contacts
            PermissionDenied: Pinging this contact is turned off
        """
        contact = self.store.require(_contact_id(target))
        if not contact.send_pings:
            raise PermissionDenied(f"Pings to {contact.name} are turned off")

        _, updated = await self.store.update(
            contact.id,
            has_outgoing_ping=True,
            outgoing_ping_timestamp=self._clock(),
        )
        await self.sync_engine.update_contact_relationship(
            updated, update_pings=True, ping_direction=PingDirection.OUTGOING,
        )
        log.info(f"Sent ping to {contact.id}")
        return updated

    async def respond_to_ping(self, source: ContactLike) -> ContactReference:
        """Acknowledge a contact's ping by clearing the incoming flag."""
        contact = self.store.require(_contact_id(source))

        _, updated = await self.store.update(
            contact.id,
            has_incoming_ping=False,
            incoming_ping_timestamp=None,
        )
        await self.sync_engine.update_contact_relationship(
            updated, update_pings=True, ping_direction=PingDirection.INCOMING,
        )
        log.info(f"Responded to ping from {contact.id}")
        return updated

    async def clear_outgoing_ping(self, target: ContactLike) -> ContactReference:
        """Withdraw the user's own ping to a contact."""
        contact = self.store.require(_contact_id(target))

        _, updated = await self.store.update(
            contact.id,
            has_outgoing_ping=False,
            outgoing_ping_timestamp=None,
        )
        await self.sync_engine.update_contact_relationship(
            updated, update_pings=True, ping_direction=PingDirection.OUTGOING,
        )
        log.info(f"Cleared outgoing ping to {contact.id}")
        return updated

    async def respond_to_all_pings(self) -> int:
        """
        Clear every responder's incoming ping.

        The local store is cleared in one critical section, so the pending
        counter drops to zero at once. Remote updates are then sent one per
        contact; all are attempted, and the first failure is raised after
        the rest have run. Cleared local state is kept either way.

        Returns:
            Number of pings cleared
        """
        cleared = await self.store.update_where(
            lambda contact: contact.is_responder and contact.has_incoming_ping,
            has_incoming_ping=False,
            incoming_ping_timestamp=None,
        )

        first_error: Optional[LifeSignalError] = None
        failures = 0
        for contact in cleared:
            try:
                await self.sync_engine.update_contact_relationship(
                    contact, update_pings=True, ping_direction=PingDirection.INCOMING,
                )
            except LifeSignalError as e:
                failures += 1
                if first_error is None:
                    first_error = e

        if first_error is not None:
            log.warning(f"Cleared {len(cleared)} pings locally, {failures} remote update(s) failed")
            raise first_error

        log.info(f"Responded to {len(cleared)} pings")
        return len(cleared)

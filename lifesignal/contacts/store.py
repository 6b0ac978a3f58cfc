"""
In-memory contact store for the signed-in user.

Holds the user's contact references in display order with an id index, and
keeps the two badge counters in step with every mutation. All mutations run
under one asyncio lock and apply their list/index/counter changes without
yielding, so readers never see a torn state.

File: contacts/store.py
Created: 2026-10-13
Last Modified: 2026-10-18
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import InvalidArgument, NotFound
from ..liveness import Clock, utc_now
from ..models import ContactReference

log = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    UPSERT = "upsert"
    REMOVE = "remove"
    RELOAD = "reload"
    REFRESH = "refresh"


@dataclass(frozen=True)
class ContactStoreChange:
    """Sent to listeners after each committed mutation."""

    kind: ChangeKind
    ids: Tuple[str, ...]
    non_responsive_dependents_count: int
    pending_pings_count: int


ChangeListener = Callable[[ContactStoreChange], None]


def count_non_responsive_dependents(contacts: Iterable[ContactReference], now) -> int:
    return sum(1 for contact in contacts if contact.needs_attention(now))


def count_pending_pings(contacts: Iterable[ContactReference]) -> int:
    return sum(1 for contact in contacts if contact.is_responder and contact.has_incoming_ping)


class LocalContactStore:
    """
    Indexed collection of ContactReference records.

    Only the sync engine and the ping handler write to it, and only through
    these methods. Entries are immutable from the outside: updates replace
    the stored record with a validated copy.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self._contacts: List[ContactReference] = []
        self._by_id: Dict[str, ContactReference] = {}
        self._lock = asyncio.Lock()
        self._listeners: List[ChangeListener] = []

        self.non_responsive_dependents_count = 0
        self.pending_pings_count = 0

    # Reads

    def get(self, contact_id: str) -> Optional[ContactReference]:
        return self._by_id.get(contact_id)

    def require(self, contact_id: str) -> ContactReference:
        contact = self._by_id.get(contact_id)
        if contact is None:
            raise NotFound(f"Contact {contact_id} not found")
        return contact

    def all(self) -> Tuple[ContactReference, ...]:
        return tuple(self._contacts)

    def responders(self) -> Iterator[ContactReference]:
        return (contact for contact in tuple(self._contacts) if contact.is_responder)

    def dependents(self) -> Iterator[ContactReference]:
        return (contact for contact in tuple(self._contacts) if contact.is_dependent)

    def __len__(self) -> int:
        return len(self._contacts)

    def __contains__(self, contact_id: object) -> bool:
        return contact_id in self._by_id

    def __iter__(self) -> Iterator[ContactReference]:
        return iter(tuple(self._contacts))

    def recount(self, now=None) -> Tuple[int, int]:
        """Counters computed from scratch: (non-responsive dependents, pending pings)."""
        now = now or self._clock()
        contacts = tuple(self._contacts)
        return count_non_responsive_dependents(contacts, now), count_pending_pings(contacts)

    # Observers

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it (idempotent)."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, kind: ChangeKind, ids: Iterable[str]) -> None:
        # Called with the lock held, after the list and index are updated
        self.non_responsive_dependents_count, self.pending_pings_count = self.recount()

        change = ContactStoreChange(
            kind=kind,
            ids=tuple(ids),
            non_responsive_dependents_count=self.non_responsive_dependents_count,
            pending_pings_count=self.pending_pings_count,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                log.error(f"Contact store listener failed on {kind.value}: {e}")

    def _put(self, contact: ContactReference) -> None:
        if contact.is_degenerate:
            raise InvalidArgument(f"Contact {contact.id} has neither the responder nor the dependent role")

        if contact.id in self._by_id:
            for index, existing in enumerate(self._contacts):
                if existing.id == contact.id:
                    self._contacts[index] = contact
                    break
        else:
            self._contacts.append(contact)
        self._by_id[contact.id] = contact

    # Writes

    async def upsert(self, contact: ContactReference) -> ContactReference:
        """Insert or replace by id."""
        async with self._lock:
            self._put(contact)
            self._commit(ChangeKind.UPSERT, [contact.id])
        return contact

    async def remove(self, contact_id: str) -> Optional[ContactReference]:
        """Remove by id. Absent ids are a no-op and return None."""
        async with self._lock:
            removed = self._by_id.pop(contact_id, None)
            if removed is None:
                return None
            self._contacts = [contact for contact in self._contacts if contact.id != contact_id]
            self._commit(ChangeKind.REMOVE, [contact_id])
        return removed

    async def replace_all(self, contacts: Iterable[ContactReference]) -> None:
        """Swap in a freshly loaded contact set. Later duplicates of an id win."""
        contacts = list(contacts)
        async with self._lock:
            previous = (self._contacts, self._by_id)
            self._contacts, self._by_id = [], {}
            try:
                for contact in contacts:
                    self._put(contact)
            except InvalidArgument:
                self._contacts, self._by_id = previous
                raise
            self._commit(ChangeKind.RELOAD, self._by_id.keys())

    async def update(self, contact_id: str, **fields: Any) -> Tuple[ContactReference, ContactReference]:
        """
        Replace fields on one stored contact.

        Returns:
            (previous, updated) records

        Raises:
            NotFound: No contact with this id
        """
        async with self._lock:
            previous = self.require(contact_id)
            updated = previous.with_changes(**fields)
            self._put(updated)
            self._commit(ChangeKind.UPSERT, [contact_id])
        return previous, updated

    async def update_where(
        self,
        predicate: Callable[[ContactReference], bool],
        **fields: Any,
    ) -> List[ContactReference]:
        """Apply the same field changes to every matching contact in one critical section."""
        async with self._lock:
            updated = [contact.with_changes(**fields) for contact in self._contacts if predicate(contact)]
            for contact in updated:
                self._put(contact)
            if updated:
                self._commit(ChangeKind.UPSERT, [contact.id for contact in updated])
        return updated

    async def refresh_counters(self) -> Tuple[int, int]:
        """Re-evaluate time-dependent state (check-ins expire without any write)."""
        async with self._lock:
            before = (self.non_responsive_dependents_count, self.pending_pings_count)
            self._commit(ChangeKind.REFRESH, [])
            after = (self.non_responsive_dependents_count, self.pending_pings_count)
        if before != after:
            log.info(f"Counters changed on refresh: {before} -> {after}")
        return after

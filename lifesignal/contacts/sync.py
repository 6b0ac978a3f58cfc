"""
Synchronization between the local contact store and the document store.

The engine owns every remote contact operation. Relationship writes go
through the atomic `RelationshipFunctions`; reads go through a
`ContactRepository` so callers never see which storage shape answered.
Nothing here retries. Remote failures are mapped onto the error taxonomy,
logged, and raised to the caller.

File: contacts/sync.py
Created: 2026-10-14
Last Modified: 2026-10-18
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from ..documents import (
    DocumentChange,
    DocumentStore,
    RelationshipFunctions,
    Subscription,
    contacts_collection,
    user_doc,
)
from ..errors import AlreadyExists, InvalidArgument, LifeSignalError, NotFound, from_exception
from ..liveness import Clock, utc_now
from ..models import ContactReference, user_id_from_path, user_reference_path
from ..user.session import Session
from .repository import ContactRepository, FallbackContactRepository
from .store import LocalContactStore

log = logging.getLogger(__name__)

T = TypeVar("T")


class PingDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class AddContactOutcome:
    """Result of add_contact. `already_existed` is a notice, not a failure."""

    contact: Optional[ContactReference]
    already_existed: bool = False

    @property
    def message(self) -> str:
        if self.already_existed:
            return "This person is already in your contacts."
        name = self.contact.name if self.contact else "Contact"
        return f"{name} was added to your contacts."


@dataclass(frozen=True)
class UserSummary:
    """What the add-contact confirmation shows about a scanned user."""

    user_id: str
    name: str
    phone: str
    note: str


class ContactSyncEngine:
    """
    Loads, persists and relays contact mutations for the signed-in user.

    Local writes are optimistic: the store is updated first so the view stays
    responsive, and a remote failure is raised without reverting it. A later
    `load_contacts` reconciles.
    """

    def __init__(
        self,
        session: Session,
        documents: DocumentStore,
        functions: RelationshipFunctions,
        store: LocalContactStore,
        repository: Optional[ContactRepository] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.documents = documents
        self.functions = functions
        self.store = store
        self.repository = repository or FallbackContactRepository.for_documents(documents)
        self._clock = clock or utc_now

    async def _remote(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except AlreadyExists:
            raise
        except Exception as e:
            error = from_exception(e, operation)
            log.error(f"{operation} failed ({error.kind.value}): {error}")
            if error is e:
                raise
            raise error from e

    # Loading

    async def load_contacts(self, user_id: Optional[str] = None) -> List[ContactReference]:
        """
        Replace the local store with the user's stored contacts.

        Raises:
            Unauthenticated: No user id given and no active session
            NotFound: The user document does not exist
        """
        user_id = user_id or self.session.require_user_id()
        contacts = await self._remote("load_contacts", self.repository.load(user_id))
        await self.store.replace_all(contacts)
        log.info(f"Loaded {len(contacts)} contacts for {user_id}")
        return contacts

    # Adding

    async def lookup_user_by_qr_code(self, qr_code: str) -> UserSummary:
        """Resolve a scanned code to the user it belongs to, without changing anything."""
        self.session.require_user_id()
        target_id = await self._remote("lookup_user_by_qr_code", self.functions.lookup_user_by_qr_code(qr_code))

        data = await self._remote("get_user", self.documents.get(user_doc(target_id)))
        if data is None:
            raise NotFound("No user found with this QR code")
        return UserSummary(
            user_id=target_id,
            name=data.get("name") or "Unknown User",
            phone=data.get("phoneNumber") or "",
            note=data.get("note") or "",
        )

    async def add_contact(self, qr_code: str, is_responder: bool, is_dependent: bool) -> AddContactOutcome:
        """
        Add the user behind a QR code with the given roles.

        An unresolvable code raises NotFound before any write. If the
        relationship already exists the contacts are reloaded and the outcome
        reports `already_existed` instead of raising.
        """
        user_id = self.session.require_user_id()
        if not is_responder and not is_dependent:
            raise InvalidArgument("A contact must be a responder, a dependent, or both")

        target_id = await self._remote("lookup_user_by_qr_code", self.functions.lookup_user_by_qr_code(qr_code))

        try:
            await self._remote(
                "add_contact_relation",
                self.functions.add_contact_relation(user_id, target_id, is_responder, is_dependent),
            )
        except AlreadyExists as e:
            log.info(f"Contact {target_id} already linked to {user_id}: {e}")
            await self.load_contacts(user_id)
            return AddContactOutcome(contact=self.store.get(target_id), already_existed=True)

        await self.load_contacts(user_id)
        contact = self.store.get(target_id)
        if contact is None:
            log.warning(f"Added {target_id} but it is missing after reload")
        log.info(f"Added contact {target_id} for {user_id}")
        return AddContactOutcome(contact=contact)

    # Updating

    async def update_contact_role(self, contact: ContactReference, is_responder: bool, is_dependent: bool) -> None:
        """
        Change a contact's roles locally, then on both remote edges.

        Raises:
            InvalidArgument: Both roles false (nothing is changed)
        """
        user_id = self.session.require_user_id()
        if not is_responder and not is_dependent:
            raise InvalidArgument("A contact must be a responder, a dependent, or both")

        if contact.id in self.store:
            await self.store.update(
                contact.id,
                is_responder=is_responder,
                is_dependent=is_dependent,
                last_updated=self._clock(),
            )
        else:
            await self.store.upsert(contact.with_changes(is_responder=is_responder, is_dependent=is_dependent))

        await self._remote(
            "update_contact_roles",
            self.functions.update_contact_roles(
                user_reference_path(user_id),
                contact.reference_path,
                is_responder,
                is_dependent,
            ),
        )
        log.info(f"Updated roles for {contact.id}: responder={is_responder}, dependent={is_dependent}")

    async def update_contact_relationship(
        self,
        contact: ContactReference,
        update_roles: bool = False,
        update_pings: bool = False,
        update_notifications: bool = False,
        ping_direction: Optional[PingDirection] = None,
    ) -> None:
        """
        Push the selected field groups of `contact` in one remote call.

        Args:
            contact: The contact's current (local) state
            update_roles: Send isResponder / isDependent
            update_pings: Send ping flags and timestamps
            update_notifications: Send sendPings / receivePings
            ping_direction: Limit update_pings to one direction so a stale
                flag for the other direction is never written back
        """
        user_id = self.session.require_user_id()

        roles: Optional[Dict[str, Any]] = None
        pings: Optional[Dict[str, Any]] = None
        notifications: Optional[Dict[str, Any]] = None

        if update_roles:
            roles = {"isResponder": contact.is_responder, "isDependent": contact.is_dependent}
        if update_pings:
            record = contact.to_db_dict()
            pings = {}
            if ping_direction in (None, PingDirection.OUTGOING):
                pings["hasOutgoingPing"] = record["hasOutgoingPing"]
                pings["outgoingPingTimestamp"] = record["outgoingPingTimestamp"]
            if ping_direction in (None, PingDirection.INCOMING):
                pings["hasIncomingPing"] = record["hasIncomingPing"]
                pings["incomingPingTimestamp"] = record["incomingPingTimestamp"]
        if update_notifications:
            notifications = {"sendPings": contact.send_pings, "receivePings": contact.receive_pings}

        if roles is None and pings is None and notifications is None:
            return

        await self._remote(
            "update_contact_relation",
            self.functions.update_contact_relation(
                user_reference_path(user_id),
                contact.reference_path,
                roles=roles,
                pings=pings,
                notifications=notifications,
            ),
        )

    # Removing

    async def remove_contact(self, contact: ContactReference) -> None:
        """Remove locally, then delete both remote edges."""
        user_id = self.session.require_user_id()

        target_id = user_id_from_path(contact.reference_path)
        if target_id is None:
            # Nothing unresolvable is ever stored, so the local side is already gone
            log.warning(f"Contact {contact.reference_path!r} has no resolvable user id, remote edges left in place")
            return
        await self.store.remove(target_id)

        await self._remote(
            "delete_contact_relation",
            self.functions.delete_contact_relation(user_reference_path(user_id), user_reference_path(target_id)),
        )
        log.info(f"Removed contact {target_id} for {user_id}")

    # Watching

    def watch_contacts(self) -> "ContactWatch":
        """
        Reload the store whenever the user's contact records change.

        Returns a handle whose `cancel()` stops both underlying watches.
        """
        user_id = self.session.require_user_id()

        async def on_change(changes: List[DocumentChange]) -> None:
            log.debug(f"{len(changes)} remote change(s) for {user_id}, reloading contacts")
            try:
                await self.load_contacts(user_id)
            except LifeSignalError as e:
                log.error(f"Reload after remote change failed: {e}")

        collection_watch = self.documents.watch(contacts_collection(user_id), on_change)
        document_watch = self.documents.watch(user_doc(user_id), on_change)
        return ContactWatch(collection_watch, document_watch)


class ContactWatch:
    """Pair of watches (contacts subcollection and user document) cancelled together."""

    def __init__(self, *subscriptions: Subscription):
        self.target = ",".join(sub.target for sub in subscriptions)
        self._subscriptions = subscriptions

    @property
    def active(self) -> bool:
        return any(sub.active for sub in self._subscriptions)

    def cancel(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()

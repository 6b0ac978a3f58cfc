"""
Server-side relationship functions.

Each function runs in a single document-store transaction, so both
directions of a relationship are written together or not at all. A half
relationship found while adding or re-roling an edge (left behind by older
clients) is rolled forward to completion.

Edges live in the users/{id}/contacts subcollection. Users whose document
still carries the older inline `contacts` array get every edge write
mirrored into that array too, since readers prefer the array when present.

File: documents/functions.py
Created: 2026-10-13
Last Modified: 2026-10-19
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import AlreadyExists, InvalidArgument, NotFound, PermissionDenied
from ..liveness import utc_now
from ..models import ContactReference, user_id_from_path, user_reference_path
from .common import (
    PLACEHOLDER_DOC_ID,
    QR_LOOKUP,
    contact_doc,
    contacts_collection,
    qr_lookup_doc,
    user_doc,
)
from .store import DocumentStore, DocumentTransaction

log = logging.getLogger(__name__)

ROLE_FIELDS = ("isResponder", "isDependent")
NOTIFICATION_FIELDS = ("sendPings", "receivePings")

# Caller's ping field -> counterpart's mirrored field
PING_MIRROR = {
    "hasOutgoingPing": "hasIncomingPing",
    "outgoingPingTimestamp": "incomingPingTimestamp",
    "hasIncomingPing": "hasOutgoingPing",
    "incomingPingTimestamp": "outgoingPingTimestamp",
}


def _resolve(reference_path: str, label: str) -> str:
    user_id = user_id_from_path(reference_path)
    if user_id is None:
        raise InvalidArgument(f"{label} {reference_path!r} is not a user reference path")
    return user_id


def _cached_user_fields(user_data: Dict[str, Any]) -> Dict[str, Any]:
    """Display and liveness fields copied from a user document into an edge."""
    return {
        "name": user_data.get("name") or "Unknown User",
        "phone": user_data.get("phoneNumber") or "",
        "note": user_data.get("note") or "",
        "qr_code_id": user_data.get("qrCodeId"),
        "last_check_in": user_data.get("lastCheckedIn"),
        "interval": user_data.get("checkInInterval"),
        "manual_alert_active": bool(user_data.get("manualAlertActive", False)),
        "manual_alert_timestamp": user_data.get("manualAlertTimestamp"),
    }


def _inline_records(user_data: Optional[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """The inline contacts array, or None when the user does not use that shape."""
    if not user_data:
        return None
    records = user_data.get("contacts")
    if not isinstance(records, list) or not records:
        return None
    return [record for record in records if isinstance(record, dict)]


def store_call(operation: str) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Run a relationship function under the store timeout with its errors mapped onto the taxonomy."""
    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(self: "RelationshipFunctions", *args: Any, **kwargs: Any) -> Any:
            return await self.documents.run(operation, func(self, *args, **kwargs))
        return wrapper
    return decorator


class RelationshipFunctions:
    """Atomic operations on the bidirectional contact graph."""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    # Edge helpers, all called inside an open transaction

    async def _require_user(self, txn: DocumentTransaction, user_id: str) -> Dict[str, Any]:
        data = await txn.get(user_doc(user_id))
        if data is None:
            raise NotFound(f"User {user_id} not found")
        return data

    async def _get_edge(self, txn: DocumentTransaction, owner_id: str, other_id: str) -> Optional[Dict[str, Any]]:
        edge = await txn.get(contact_doc(owner_id, other_id))
        if edge is not None:
            return edge

        for record in _inline_records(await txn.get(user_doc(owner_id))) or []:
            if record.get("referencePath") == user_reference_path(other_id):
                return dict(record)
        return None

    async def _put_edge(self, txn: DocumentTransaction, owner_id: str, other_id: str, record: Dict[str, Any]) -> None:
        placeholder = contact_doc(owner_id, PLACEHOLDER_DOC_ID)
        if not await txn.exists(placeholder):
            await txn.set(placeholder, {"placeholder": True, "createdAt": utc_now().isoformat()})
        await txn.set(contact_doc(owner_id, other_id), record)

        owner_data = await txn.get(user_doc(owner_id))
        records = _inline_records(owner_data)
        if records is None:
            return

        path = user_reference_path(other_id)
        replaced = [record if r.get("referencePath") == path else r for r in records]
        if not any(r.get("referencePath") == path for r in records):
            replaced.append(record)
        owner_data["contacts"] = replaced
        await txn.set(user_doc(owner_id), owner_data)

    async def _update_edge(self, txn: DocumentTransaction, owner_id: str, other_id: str, fields: Dict[str, Any]) -> None:
        edge = await self._get_edge(txn, owner_id, other_id)
        if edge is None:
            raise NotFound(f"User {owner_id} has no contact {other_id}")
        edge.update(fields)
        await self._put_edge(txn, owner_id, other_id, edge)

    async def _remove_edge(self, txn: DocumentTransaction, owner_id: str, other_id: str) -> bool:
        removed = await txn.delete(contact_doc(owner_id, other_id))

        owner_data = await txn.get(user_doc(owner_id))
        records = _inline_records(owner_data)
        if records is not None:
            path = user_reference_path(other_id)
            kept = [r for r in records if r.get("referencePath") != path]
            if len(kept) != len(records):
                owner_data["contacts"] = kept
                await txn.set(user_doc(owner_id), owner_data)
                removed = True
        return removed

    async def _create_edge(
        self,
        txn: DocumentTransaction,
        owner_id: str,
        other_id: str,
        other_data: Dict[str, Any],
        is_responder: bool,
        is_dependent: bool,
    ) -> None:
        edge = ContactReference.for_user(
            other_id,
            is_responder=is_responder,
            is_dependent=is_dependent,
            **_cached_user_fields(other_data),
        )
        await self._put_edge(txn, owner_id, other_id, edge.to_db_dict())

    async def _counterpart_ids(self, txn: DocumentTransaction, user_id: str) -> List[str]:
        ids = [
            doc_id for doc_id, _ in await txn.list_collection(contacts_collection(user_id))
            if doc_id != PLACEHOLDER_DOC_ID
        ]
        for record in _inline_records(await txn.get(user_doc(user_id))) or []:
            other_id = user_id_from_path(record.get("referencePath"))
            if other_id and other_id not in ids:
                ids.append(other_id)
        return ids

    # Lookup

    async def lookup_user_by_qr_code(self, qr_code_id: str) -> str:
        """Resolve a scanned QR code id to a user id via the reverse index."""
        if not qr_code_id or not qr_code_id.strip():
            raise InvalidArgument("QR code ID is empty")

        matches = await self.documents.query(QR_LOOKUP, "qrCodeId", qr_code_id.strip())
        if not matches:
            raise NotFound("No user found with this QR code")
        if len(matches) > 1:
            log.warning(f"QR code {qr_code_id} maps to {len(matches)} users, using the first")
        return matches[0][0]

    # Relationship operations

    @store_call("add_contact_relation")
    async def add_contact_relation(
        self,
        user_id: str,
        target_id: str,
        is_responder: bool,
        is_dependent: bool,
    ) -> Dict[str, Any]:
        """
        Create the edge in both directions.

        The target sees the caller in the complementary role: if the caller
        adds the target as a responder, the target sees the caller as a
        dependent, and vice versa.

        Raises:
            InvalidArgument: Self-add or no role selected
            NotFound: Either user is missing
            AlreadyExists: The relationship is already present
        """
        if not user_id or not target_id:
            raise InvalidArgument("Both user ids are required")
        if user_id == target_id:
            raise InvalidArgument("You cannot add yourself as a contact")
        if not is_responder and not is_dependent:
            raise InvalidArgument("A contact must be a responder, a dependent, or both")

        already_linked: Optional[str] = None
        async with self.documents.transaction() as txn:
            user_data = await self._require_user(txn, user_id)
            target_data = await self._require_user(txn, target_id)

            forward = await self._get_edge(txn, user_id, target_id)
            reverse = await self._get_edge(txn, target_id, user_id)

            if forward is not None:
                already_linked = target_data.get("name") or "This user"
                if reverse is None:
                    # Roll a half relationship forward; committed before reporting it
                    await self._create_edge(
                        txn, target_id, user_id, user_data,
                        is_responder=bool(forward.get("isDependent")),
                        is_dependent=bool(forward.get("isResponder")),
                    )
                    log.warning(f"Completed half relationship {target_id} -> {user_id}")
            else:
                await self._create_edge(txn, user_id, target_id, target_data, is_responder, is_dependent)
                if reverse is None:
                    await self._create_edge(
                        txn, target_id, user_id, user_data,
                        is_responder=is_dependent,
                        is_dependent=is_responder,
                    )
                else:
                    await self._update_edge(txn, target_id, user_id, {
                        "isResponder": is_dependent,
                        "isDependent": is_responder,
                        "lastUpdated": utc_now().isoformat(),
                    })

        if already_linked is not None:
            raise AlreadyExists(f"{already_linked} is already in your contacts")

        log.info(f"Contact relation created between {user_id} and {target_id}")
        return {"success": True, "contactId": target_id}

    async def update_contact_roles(
        self,
        user_ref_path: str,
        contact_ref_path: str,
        is_responder: bool,
        is_dependent: bool,
    ) -> Dict[str, Any]:
        """Update the caller's roles for a contact and the complementary roles on the reverse edge."""
        return await self.update_contact_relation(
            user_ref_path,
            contact_ref_path,
            roles={"isResponder": is_responder, "isDependent": is_dependent},
        )

    @store_call("delete_contact_relation")
    async def delete_contact_relation(self, user_a_ref_path: str, user_b_ref_path: str) -> Dict[str, Any]:
        """Delete both directions. Missing edges are not an error."""
        user_a = _resolve(user_a_ref_path, "userARefPath")
        user_b = _resolve(user_b_ref_path, "userBRefPath")

        async with self.documents.transaction() as txn:
            removed_forward = await self._remove_edge(txn, user_a, user_b)
            removed_reverse = await self._remove_edge(txn, user_b, user_a)

        if not removed_forward and not removed_reverse:
            log.info(f"No relation between {user_a} and {user_b} to delete")
        else:
            log.info(f"Contact relation deleted between {user_a} and {user_b}")
        return {"success": True}

    @store_call("update_contact_relation")
    async def update_contact_relation(
        self,
        user_ref_path: str,
        contact_ref_path: str,
        roles: Optional[Dict[str, Any]] = None,
        pings: Optional[Dict[str, Any]] = None,
        notifications: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Push any combination of role, ping and notification fields in one call.

        Args:
            user_ref_path: Caller, 'users/{id}'
            contact_ref_path: Contact, 'users/{id}'
            roles: isResponder / isDependent, applied to both directions (complemented on the reverse edge)
            pings: Caller-side ping flags/timestamps; mirrored onto the reverse edge
            notifications: sendPings / receivePings, caller's edge only

        Raises:
            NotFound: The caller has no edge to this contact
            PermissionDenied: The contact does not accept pings from the caller
        """
        user_id = _resolve(user_ref_path, "userRefPath")
        contact_id = _resolve(contact_ref_path, "contactRefPath")

        forward_fields: Dict[str, Any] = {}
        reverse_fields: Dict[str, Any] = {}

        if roles is not None:
            unknown = set(roles) - set(ROLE_FIELDS)
            if unknown:
                raise InvalidArgument(f"Unknown role fields: {sorted(unknown)}")
            is_responder = bool(roles.get("isResponder"))
            is_dependent = bool(roles.get("isDependent"))
            if not is_responder and not is_dependent:
                raise InvalidArgument("A contact must be a responder, a dependent, or both")
            forward_fields.update(isResponder=is_responder, isDependent=is_dependent)
            reverse_fields.update(isResponder=is_dependent, isDependent=is_responder)

        if pings is not None:
            unknown = set(pings) - set(PING_MIRROR)
            if unknown:
                raise InvalidArgument(f"Unknown ping fields: {sorted(unknown)}")
            forward_fields.update(pings)
            reverse_fields.update({PING_MIRROR[key]: value for key, value in pings.items()})

        if notifications is not None:
            unknown = set(notifications) - set(NOTIFICATION_FIELDS)
            if unknown:
                raise InvalidArgument(f"Unknown notification fields: {sorted(unknown)}")
            forward_fields.update({key: bool(value) for key, value in notifications.items()})

        if not forward_fields:
            return {"success": True}

        now = utc_now().isoformat()
        forward_fields["lastUpdated"] = now

        async with self.documents.transaction() as txn:
            forward = await self._get_edge(txn, user_id, contact_id)
            if forward is None:
                raise NotFound(f"User {user_id} has no contact {contact_id}")
            reverse = await self._get_edge(txn, contact_id, user_id)

            if pings and pings.get("hasOutgoingPing") and reverse is not None:
                if reverse.get("receivePings") is False:
                    raise PermissionDenied(f"{forward.get('name') or 'This contact'} is not accepting pings")

            await self._update_edge(txn, user_id, contact_id, forward_fields)

            if reverse_fields:
                reverse_fields["lastUpdated"] = now
                if reverse is None:
                    user_data = await self._require_user(txn, user_id)
                    merged = {**forward, **forward_fields}
                    await self._create_edge(
                        txn, contact_id, user_id, user_data,
                        is_responder=bool(merged.get("isDependent")),
                        is_dependent=bool(merged.get("isResponder")),
                    )
                    log.warning(f"Completed half relationship {contact_id} -> {user_id}")
                await self._update_edge(txn, contact_id, user_id, reverse_fields)

        log.debug(f"Updated relation {user_id} -> {contact_id}: {sorted(forward_fields)}")
        return {"success": True}

    # User-level writes that fan out to counterparts

    @store_call("update_user_fields")
    async def update_user_fields(
        self,
        user_id: str,
        user_fields: Dict[str, Any],
        mirrored_fields: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Update a user document and mirror fields into every counterpart's edge.

        Args:
            user_id: The user being updated
            user_fields: Fields written to users/{user_id}
            mirrored_fields: Fields written to each counterpart's record of this user

        Returns:
            Number of counterpart edges updated
        """
        updated = 0
        async with self.documents.transaction() as txn:
            await txn.update(user_doc(user_id), {**user_fields, "lastUpdated": utc_now().isoformat()})

            if mirrored_fields:
                for other_id in await self._counterpart_ids(txn, user_id):
                    if await self._get_edge(txn, other_id, user_id) is not None:
                        await self._update_edge(txn, other_id, user_id, mirrored_fields)
                        updated += 1

        log.debug(f"Updated user {user_id}, mirrored into {updated} contact records")
        return updated

    @store_call("set_qr_code")
    async def set_qr_code(self, user_id: str, qr_code_id: str) -> None:
        """Point the user document, the reverse index and counterpart caches at a new QR code id."""
        if not qr_code_id:
            raise InvalidArgument("QR code ID is empty")
        now = utc_now().isoformat()
        async with self.documents.transaction() as txn:
            await txn.update(user_doc(user_id), {"qrCodeId": qr_code_id, "lastUpdated": now})
            await txn.set(qr_lookup_doc(user_id), {"qrCodeId": qr_code_id, "updatedAt": now})

            for other_id in await self._counterpart_ids(txn, user_id):
                if await self._get_edge(txn, other_id, user_id) is not None:
                    await self._update_edge(txn, other_id, user_id, {"qrCodeId": qr_code_id})

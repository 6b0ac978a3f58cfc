"""
Contact repositories over the two stored shapes.

Older user documents carry contacts as an inline `contacts` array; newer
ones use a `users/{id}/contacts` subcollection (with a placeholder document
that only exists to create the subcollection). Callers go through
`FallbackContactRepository` and never see which shape answered.

File: contacts/repository.py
Created: 2026-10-14
Last Modified: 2026-10-17
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from ..documents import PLACEHOLDER_DOC_ID, DocumentStore, contacts_collection, user_doc
from ..errors import NotFound
from ..models import ContactReference, upgrade_contact_record

log = logging.getLogger(__name__)


def decode_contact_records(records: Iterable[Dict[str, Any]], owner_id: str) -> List[ContactReference]:
    """
    Upgrade and validate raw records, skipping anything undecodable.

    Args:
        records: Raw contact records from either storage shape
        owner_id: The user the records belong to (for log context)

    Returns:
        Valid, non-degenerate ContactReference objects in input order
    """
    contacts = []
    for record in records:
        if not isinstance(record, dict) or record.get("placeholder"):
            continue
        try:
            contact = ContactReference.from_db_dict(upgrade_contact_record(record))
        except (ValidationError, ValueError) as e:
            log.warning(f"Skipping undecodable contact record for {owner_id}: {e}")
            continue

        if contact.id == owner_id:
            log.warning(f"Skipping self-reference in contacts of {owner_id}")
            continue
        if contact.is_degenerate:
            log.warning(f"Skipping contact {contact.id} of {owner_id} with no role")
            continue
        contacts.append(contact)
    return contacts


class ContactRepository(Protocol):
    """Loads a user's contact references from one storage shape."""

    async def load(self, user_id: str) -> Optional[List[ContactReference]]:
        """Return the contacts, or None if this shape does not apply to the user."""
        ...


class ArrayContactRepository:
    """Contacts stored inline on the user document."""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def load(self, user_id: str) -> Optional[List[ContactReference]]:
        user_data = await self.documents.get(user_doc(user_id))
        if user_data is None:
            raise NotFound("User document not found")

        records = user_data.get("contacts")
        if not isinstance(records, list) or not records:
            return None

        log.debug(f"Found {len(records)} inline contacts for {user_id}")
        return decode_contact_records(records, user_id)


class SubcollectionContactRepository:
    """Contacts stored as users/{id}/contacts/{contactId} documents."""

    def __init__(self, documents: DocumentStore):
        self.documents = documents

    async def load(self, user_id: str) -> Optional[List[ContactReference]]:
        documents = await self.documents.list_collection(contacts_collection(user_id))
        records = [data for doc_id, data in documents if doc_id != PLACEHOLDER_DOC_ID]
        if not documents:
            return None

        log.debug(f"Found {len(records)} contact documents for {user_id}")
        contacts = decode_contact_records(records, user_id)

        # Order by when the edge was added, matching the default display order
        contacts.sort(key=lambda contact: contact.added_at)
        return contacts


class FallbackContactRepository:
    """Prefer the primary shape, fall back to the secondary, default to empty."""

    def __init__(self, primary: ContactRepository, fallback: ContactRepository):
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def for_documents(cls, documents: DocumentStore) -> "FallbackContactRepository":
        return cls(ArrayContactRepository(documents), SubcollectionContactRepository(documents))

    async def load(self, user_id: str) -> List[ContactReference]:
        contacts = await self.primary.load(user_id)
        if contacts is not None:
            return contacts

        contacts = await self.fallback.load(user_id)
        if contacts is not None:
            return contacts

        log.info(f"No contacts stored for {user_id}")
        return []

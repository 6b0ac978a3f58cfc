"""
Contact graph: local store, storage-shape repositories, remote sync and pings.

File: contacts/__init__.py
Created: 2026-10-13
Last Modified: 2026-10-18
"""

from .ping import PingHandler
from .repository import (
    ArrayContactRepository,
    ContactRepository,
    FallbackContactRepository,
    SubcollectionContactRepository,
    decode_contact_records,
)
from .store import (
    ChangeKind,
    ContactStoreChange,
    LocalContactStore,
    count_non_responsive_dependents,
    count_pending_pings,
)
from .sync import AddContactOutcome, ContactSyncEngine, ContactWatch, PingDirection, UserSummary

__all__ = [
    "PingHandler",
    "ArrayContactRepository",
    "ContactRepository",
    "FallbackContactRepository",
    "SubcollectionContactRepository",
    "decode_contact_records",
    "ChangeKind",
    "ContactStoreChange",
    "LocalContactStore",
    "count_non_responsive_dependents",
    "count_pending_pings",
    "AddContactOutcome",
    "ContactSyncEngine",
    "ContactWatch",
    "PingDirection",
    "UserSummary",
]

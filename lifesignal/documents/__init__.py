"""
Document store collaborator and server-side relationship functions.

File: documents/__init__.py
Created: 2026-10-12
Last Modified: 2026-10-18
"""

from .common import (
    CONTACTS,
    LOCAL_DB_PATH,
    PLACEHOLDER_DOC_ID,
    QR_LOOKUP,
    USERS,
    contact_doc,
    contacts_collection,
    qr_lookup_doc,
    user_doc,
)
from .create_tables import init_document_store
from .functions import RelationshipFunctions
from .store import DocumentChange, DocumentStore, DocumentTransaction, Subscription

__all__ = [
    "CONTACTS",
    "LOCAL_DB_PATH",
    "PLACEHOLDER_DOC_ID",
    "QR_LOOKUP",
    "USERS",
    "contact_doc",
    "contacts_collection",
    "qr_lookup_doc",
    "user_doc",
    "init_document_store",
    "RelationshipFunctions",
    "DocumentChange",
    "DocumentStore",
    "DocumentTransaction",
    "Subscription",
]

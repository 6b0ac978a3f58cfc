"""
Common document store constants and path utilities

File: documents/common.py
Created: 2026-10-12
Last Modified: 2026-10-14
"""

from pathlib import Path
from typing import Optional, Tuple

DATA_DIR = Path(__file__).parent.parent.parent / "data"
LOCAL_DB_PATH = DATA_DIR / "lifesignal.db"

# Collections
USERS = "users"
CONTACTS = "contacts"
QR_LOOKUP = "qr_lookup"

# Housekeeping document that forces the contacts subcollection to exist
PLACEHOLDER_DOC_ID = "_placeholder"


def split_path(path: str) -> Tuple[str, str]:
    """
    Split a document path into (collection path, document id).

    Examples:
        >>> split_path("users/abc")
        ('users', 'abc')
        >>> split_path("users/abc/contacts/def")
        ('users/abc/contacts', 'def')
    """
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments or len(segments) % 2 != 0:
        raise ValueError(f"{path!r} is not a document path")
    return "/".join(segments[:-1]), segments[-1]


def is_document_path(path: str) -> bool:
    segments = [s for s in path.strip("/").split("/") if s]
    return bool(segments) and len(segments) % 2 == 0


def user_doc(user_id: str) -> str:
    return f"{USERS}/{user_id}"


def contacts_collection(user_id: str) -> str:
    return f"{USERS}/{user_id}/{CONTACTS}"


def contact_doc(user_id: str, contact_id: str) -> str:
    return f"{USERS}/{user_id}/{CONTACTS}/{contact_id}"


def qr_lookup_doc(user_id: str) -> str:
    return f"{QR_LOOKUP}/{user_id}"


def parent_collection(path: str) -> Optional[str]:
    try:
        return split_path(path)[0]
    except ValueError:
        return None


__all__ = [
    "DATA_DIR",
    "LOCAL_DB_PATH",
    "USERS",
    "CONTACTS",
    "QR_LOOKUP",
    "PLACEHOLDER_DOC_ID",
    "split_path",
    "is_document_path",
    "user_doc",
    "contacts_collection",
    "contact_doc",
    "qr_lookup_doc",
    "parent_collection",
]

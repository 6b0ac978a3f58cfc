"""
Shared data models for LifeSignal.

File: models/__init__.py
Created: 2026-10-12
Last Modified: 2026-10-13
"""

from .contact import ContactReference, user_id_from_path, user_reference_path
from .migrations import upgrade_contact_record
from .qr_lookup import QRLookupRecord
from .timestamps import format_timestamp, parse_timestamp
from .user import NotificationLeadTime, UserRecord

__all__ = [
    "ContactReference",
    "NotificationLeadTime",
    "QRLookupRecord",
    "UserRecord",
    "format_timestamp",
    "parse_timestamp",
    "upgrade_contact_record",
    "user_id_from_path",
    "user_reference_path",
]

"""
Signed-in user: session handle, profile service and phone normalization.

File: user/__init__.py
Created: 2026-10-14
Last Modified: 2026-10-17
"""

from .phone import format_phone_number, normalize_phone_number, require_phone_number
from .profile import UserService, new_qr_code_id, validate_check_in_interval
from .session import Session

__all__ = [
    "format_phone_number",
    "normalize_phone_number",
    "require_phone_number",
    "UserService",
    "new_qr_code_id",
    "validate_check_in_interval",
    "Session",
]

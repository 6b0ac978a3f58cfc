"""
Phone number normalization for user profiles.

File: user/phone.py
Created: 2026-10-15
Last Modified: 2026-10-17
"""

import logging
from typing import Optional

import phonenumbers

from ..errors import InvalidArgument

log = logging.getLogger(__name__)


def normalize_phone_number(phone: str, default_region: str = "US") -> Optional[str]:
    """
    Normalize phone number to E.164 format.

    Args:
        phone: Raw phone number string (e.g., "(650) 253-0000", "+1 650 253 0000")
        default_region: Region assumed when the number has no country code

    Returns:
        E.164 formatted number (e.g., "+16502530000") or None if invalid

    Examples:
        >>> normalize_phone_number("(650) 253-0000")
        '+16502530000'
        >>> normalize_phone_number("+44 20 7031 3000", "US")
        '+442070313000'
        >>> normalize_phone_number("invalid")
    """
    if not phone or not isinstance(phone, str):
        return None

    phone = phone.strip()
    if not phone:
        return None

    try:
        parsed = phonenumbers.parse(phone, default_region)
    except phonenumbers.NumberParseException as e:
        log.debug(f"Could not parse phone number '{phone}': {e}")
        return None

    if not phonenumbers.is_valid_number(parsed):
        log.debug(f"Phone number '{phone}' is not valid according to phonenumbers library")
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def require_phone_number(phone: str, default_region: str = "US") -> str:
    """Like normalize_phone_number, but raises InvalidArgument instead of returning None."""
    normalized = normalize_phone_number(phone, default_region)
    if normalized is None:
        raise InvalidArgument(f"{phone!r} is not a valid phone number")
    return normalized


def format_phone_number(phone: str, default_region: str = "US") -> str:
    """Human-readable form for display. Unparseable input is returned unchanged."""
    try:
        parsed = phonenumbers.parse(phone, default_region)
    except phonenumbers.NumberParseException:
        return phone

    if phonenumbers.region_code_for_number(parsed) == default_region:
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.NATIONAL)
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)

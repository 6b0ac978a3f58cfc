"""
Schema upgrades applied to stored contact records at load time.

File: models/migrations.py
Created: 2026-10-14
Last Modified: 2026-10-14
"""

from typing import Any, Dict

LEGACY_PING_FLAG = "hasPendingPing"
LEGACY_PING_TIMESTAMP = "pingTimestamp"


def upgrade_contact_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade a stored contact record to the current schema.

    Older records carried a single shared `hasPendingPing` flag. It is split
    by role: on a responder edge it was an incoming ping, on a dependent edge
    an outgoing one. Records already in the dual-flag shape keep their values.

    Args:
        data: Raw record as read from the document store

    Returns:
        A new dict in the current schema (the input is not modified)
    """
    record = dict(data)

    # Older records used the user-document key for the phone number
    if "phone" not in record and "phoneNumber" in record:
        record["phone"] = record.pop("phoneNumber")

    if LEGACY_PING_FLAG not in record and LEGACY_PING_TIMESTAMP not in record:
        return record

    pending = bool(record.pop(LEGACY_PING_FLAG, False))
    timestamp = record.pop(LEGACY_PING_TIMESTAMP, None)

    already_upgraded = "hasIncomingPing" in record or "hasOutgoingPing" in record
    if already_upgraded:
        return record

    is_responder = bool(record.get("isResponder", False))
    is_dependent = bool(record.get("isDependent", False))

    record["hasIncomingPing"] = is_responder and pending
    record["incomingPingTimestamp"] = timestamp if is_responder and pending else None
    record["hasOutgoingPing"] = is_dependent and pending
    record["outgoingPingTimestamp"] = timestamp if is_dependent and pending else None

    return record

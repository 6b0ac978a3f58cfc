"""
Tests for the contact and user record models and the legacy record upgrade
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from lifesignal.models import (
    ContactReference,
    NotificationLeadTime,
    UserRecord,
    parse_timestamp,
    upgrade_contact_record,
    user_id_from_path,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# REFERENCE PATHS
# =============================================================================

@pytest.mark.parametrize("path, expected", [
    ("users/abc", "abc"),
    ("users/", None),
    ("people/abc", None),
    ("users/abc/contacts/def", None),
    ("", None),
    (None, None),
])
def test_user_id_from_path(path, expected):
    assert user_id_from_path(path) == expected


# =============================================================================
# CONTACT REFERENCE
# =============================================================================

class TestContactReference:

    def test_identity_comes_from_reference_path(self):
        contact = ContactReference.for_user("bob", is_responder=True, is_dependent=False)
        assert contact.reference_path == "users/bob"
        assert contact.id == "bob"

    def test_unresolvable_reference_is_rejected(self):
        with pytest.raises(ValidationError):
            ContactReference(reference_path="bob", is_responder=True, is_dependent=False)

    def test_reference_cannot_be_reassigned_to_garbage(self):
        contact = ContactReference.for_user("bob", is_responder=True, is_dependent=False)
        with pytest.raises(ValidationError):
            contact.reference_path = "not/a/user/path"

    def test_both_roles_allowed(self):
        contact = ContactReference.for_user("bob", is_responder=True, is_dependent=True)
        assert not contact.is_degenerate

    def test_no_roles_is_degenerate(self):
        contact = ContactReference.for_user("bob", is_responder=False, is_dependent=False)
        assert contact.is_degenerate

    def test_needs_attention_only_for_dependents(self):
        overdue = NOW - timedelta(days=2)
        responder = ContactReference.for_user("a", True, False, last_check_in=overdue, interval=86400)
        dependent = ContactReference.for_user("b", False, True, last_check_in=overdue, interval=86400)
        assert not responder.needs_attention(NOW)
        assert dependent.needs_attention(NOW)

    def test_manual_alert_needs_attention_even_when_checked_in(self):
        dependent = ContactReference.for_user(
            "b", False, True, last_check_in=NOW, interval=86400, manual_alert_active=True,
        )
        assert not dependent.is_non_responsive(NOW)
        assert dependent.needs_attention(NOW)

    def test_missing_interval_uses_default(self):
        contact = ContactReference.for_user("b", False, True, last_check_in=NOW - timedelta(hours=23))
        assert not contact.is_non_responsive(NOW)
        assert contact.formatted_time_remaining(NOW) == "1h 0m"

    def test_never_checked_in_formatting(self):
        contact = ContactReference.for_user("b", False, True)
        assert contact.is_non_responsive(NOW)
        assert contact.formatted_time_remaining(NOW) == "Never checked in"

    def test_with_changes_returns_validated_copy(self):
        contact = ContactReference.for_user("bob", is_responder=True, is_dependent=False)
        changed = contact.with_changes(has_outgoing_ping=True, outgoing_ping_timestamp=NOW.isoformat())
        assert changed.outgoing_ping_timestamp == NOW
        assert not contact.has_outgoing_ping

    def test_db_dict_uses_stored_field_names(self):
        contact = ContactReference.for_user(
            "bob", True, False, name="Bob", phone="+12127365000",
            has_incoming_ping=True, incoming_ping_timestamp=NOW,
        )
        record = contact.to_db_dict()
        assert record["referencePath"] == "users/bob"
        assert record["hasIncomingPing"] is True
        assert record["incomingPingTimestamp"] == NOW.isoformat()
        assert record["hasOutgoingPing"] is False

        restored = ContactReference.from_db_dict(record)
        assert restored.id == "bob"
        assert restored.incoming_ping_timestamp == NOW
        assert restored.added_at == contact.added_at

    def test_from_db_dict_fills_missing_display_fields(self):
        contact = ContactReference.from_db_dict({
            "referencePath": "users/bob",
            "isResponder": True,
            "isDependent": False,
        })
        assert contact.name == "Unknown User"
        assert contact.send_pings and contact.receive_pings
        assert not contact.has_incoming_ping

    def test_rich_text_shows_alert(self):
        contact = ContactReference.for_user("b", False, True, name="Bob", manual_alert_active=True)
        assert "ALERT" in contact.to_rich_text(NOW).plain


# =============================================================================
# LEGACY UPGRADE
# =============================================================================

class TestUpgradeContactRecord:

    def test_responder_pending_ping_becomes_incoming(self):
        record = upgrade_contact_record({
            "referencePath": "users/bob",
            "isResponder": True,
            "isDependent": False,
            "hasPendingPing": True,
            "pingTimestamp": NOW.isoformat(),
        })
        assert record["hasIncomingPing"] is True
        assert record["incomingPingTimestamp"] == NOW.isoformat()
        assert record["hasOutgoingPing"] is False
        assert "hasPendingPing" not in record

    def test_dependent_pending_ping_becomes_outgoing(self):
        record = upgrade_contact_record({
            "referencePath": "users/bob",
            "isResponder": False,
            "isDependent": True,
            "hasPendingPing": True,
            "pingTimestamp": NOW.isoformat(),
        })
        assert record["hasOutgoingPing"] is True
        assert record["hasIncomingPing"] is False

    def test_dual_flag_record_keeps_its_values(self):
        record = upgrade_contact_record({
            "referencePath": "users/bob",
            "isResponder": True,
            "isDependent": True,
            "hasPendingPing": True,
            "hasIncomingPing": False,
            "hasOutgoingPing": False,
        })
        assert record["hasIncomingPing"] is False
        assert record["hasOutgoingPing"] is False
        assert "hasPendingPing" not in record

    def test_input_is_not_modified(self):
        original = {"referencePath": "users/bob", "isResponder": True, "hasPendingPing": True}
        upgrade_contact_record(original)
        assert original["hasPendingPing"] is True

    def test_phone_number_key_is_renamed(self):
        record = upgrade_contact_record({"referencePath": "users/bob", "phoneNumber": "+12127365000"})
        assert record["phone"] == "+12127365000"


# =============================================================================
# USER RECORD
# =============================================================================

class TestUserRecord:

    def test_interval_below_minimum_is_rejected(self):
        with pytest.raises(ValidationError):
            UserRecord(uid="alice", qr_code_id="qr", check_in_interval=60)

    def test_lead_time_from_flags(self):
        user = UserRecord(uid="alice", qr_code_id="qr", notify_30_min_before=False, notify_2_hours_before=True)
        assert user.notification_lead_time == NotificationLeadTime.TWO_HOURS

    def test_round_trip_keeps_check_in(self):
        user = UserRecord(uid="alice", qr_code_id="qr", last_checked_in=NOW, check_in_interval=7200)
        restored = UserRecord.from_db_dict(user.to_db_dict())
        assert restored.last_checked_in == NOW
        assert restored.check_in_expiration == NOW + timedelta(hours=2)


def test_parse_timestamp_normalizes_to_utc():
    parsed = parse_timestamp("2026-10-19T14:00:00+02:00")
    assert parsed == NOW
    assert parsed.tzinfo == timezone.utc
    assert parse_timestamp("2026-10-19T12:00:00") == NOW
    assert parse_timestamp(None) is None

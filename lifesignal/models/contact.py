"""
Contact reference model: one directed relationship edge from the current
user to another user.

File: models/contact.py
Created: 2026-10-12
Last Modified: 2026-10-18
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from rich.text import Text

from ..liveness import (
    DEFAULT_CHECK_IN_INTERVAL,
    format_remaining,
    is_non_responsive,
    time_remaining,
    utc_now,
)
from .timestamps import format_timestamp, parse_timestamp

USERS_COLLECTION = "users"


def user_reference_path(user_id: str) -> str:
    """Document path for a user id, e.g. 'users/abc'."""
    return f"{USERS_COLLECTION}/{user_id}"


def user_id_from_path(reference_path: Optional[str]) -> Optional[str]:
    """Extract the user id from 'users/{id}', or None if the path is malformed."""
    if not reference_path:
        return None
    components = reference_path.split("/")
    if len(components) != 2 or components[0] != USERS_COLLECTION or not components[1]:
        return None
    return components[1]


class ContactReference(BaseModel):
    """
    One edge in the contact graph, as seen by the user who owns it.

    Display and liveness fields are cached copies of the target user's
    document so lists render without a read per contact. Both role flags may
    be set at once; both unset is a degenerate record that normal operations
    never produce.
    """
    model_config = ConfigDict(
        validate_assignment=True,
        extra='ignore'
    )

    # Relationship
    reference_path: str = Field(..., description="Path to the target user document, 'users/{id}'")
    is_responder: bool = Field(..., description="Target is notified if the owner stops checking in")
    is_dependent: bool = Field(..., description="Owner monitors the target's check-ins")
    send_pings: bool = Field(True, description="Owner may ping this contact")
    receive_pings: bool = Field(True, description="Owner accepts pings from this contact")
    nickname: Optional[str] = Field(None, description="Owner-chosen nickname")
    notes: Optional[str] = Field(None, description="Owner's private notes")
    added_at: datetime = Field(default_factory=utc_now, description="When the edge was created")
    last_updated: datetime = Field(default_factory=utc_now, description="Last write to this edge")

    # Cached target display data
    name: str = Field("Unknown User", description="Target's name")
    phone: str = Field("", description="Target's phone number")
    note: str = Field("", description="Target's emergency note")
    qr_code_id: Optional[str] = Field(None, description="Target's QR code id")

    # Cached target liveness (meaningful for dependents)
    last_check_in: Optional[datetime] = Field(None, description="Target's last check-in")
    interval: Optional[float] = Field(None, description="Target's check-in interval in seconds", gt=0)

    # Alert mirror
    manual_alert_active: bool = Field(False, description="Target has an active manual alert")
    manual_alert_timestamp: Optional[datetime] = Field(None, description="When the target's alert started")

    # Ping state, independent per direction
    has_incoming_ping: bool = Field(False, description="Target has pinged the owner")
    incoming_ping_timestamp: Optional[datetime] = Field(None, description="When the incoming ping arrived")
    has_outgoing_ping: bool = Field(False, description="Owner has pinged the target")
    outgoing_ping_timestamp: Optional[datetime] = Field(None, description="When the outgoing ping was sent")

    @field_validator("reference_path")
    @classmethod
    def _reference_resolves(cls, value: str) -> str:
        if user_id_from_path(value) is None:
            raise ValueError(f"reference path {value!r} does not resolve to a user id")
        return value

    @field_validator(
        "added_at", "last_updated", "last_check_in", "manual_alert_timestamp",
        "incoming_ping_timestamp", "outgoing_ping_timestamp",
        mode="before",
    )
    @classmethod
    def _aware_timestamps(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @classmethod
    def for_user(cls, user_id: str, is_responder: bool, is_dependent: bool, **fields: Any) -> "ContactReference":
        """Build a reference pointing at user_id."""
        return cls(
            reference_path=user_reference_path(user_id),
            is_responder=is_responder,
            is_dependent=is_dependent,
            **fields,
        )

    @property
    def user_id(self) -> str:
        # Validated on construction and assignment
        return user_id_from_path(self.reference_path)  # type: ignore[return-value]

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def is_degenerate(self) -> bool:
        return not self.is_responder and not self.is_dependent

    @property
    def check_in_interval(self) -> timedelta:
        return timedelta(seconds=self.interval) if self.interval else DEFAULT_CHECK_IN_INTERVAL

    def is_non_responsive(self, now: Optional[datetime] = None) -> bool:
        return is_non_responsive(self.last_check_in, self.check_in_interval, now)

    def needs_attention(self, now: Optional[datetime] = None) -> bool:
        """Counts toward the non-responsive dependents badge."""
        return self.is_dependent and (self.manual_alert_active or self.is_non_responsive(now))

    def time_remaining(self, now: Optional[datetime] = None) -> timedelta:
        return time_remaining(self.last_check_in, self.check_in_interval, now)

    def formatted_time_remaining(self, now: Optional[datetime] = None) -> str:
        if self.last_check_in is None:
            return "Never checked in"
        return format_remaining(self.time_remaining(now))

    def with_changes(self, **fields: Any) -> "ContactReference":
        """Validated copy with fields replaced. Stored entries are never edited in place."""
        data = self.model_dump()
        data.update(fields)
        return type(self).model_validate(data)

    def to_db_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase document shape"""
        return {
            "referencePath": self.reference_path,
            "isResponder": self.is_responder,
            "isDependent": self.is_dependent,
            "sendPings": self.send_pings,
            "receivePings": self.receive_pings,
            "nickname": self.nickname,
            "notes": self.notes,
            "name": self.name,
            "phone": self.phone,
            "note": self.note,
            "qrCodeId": self.qr_code_id,
            "addedAt": format_timestamp(self.added_at),
            "lastCheckIn": format_timestamp(self.last_check_in),
            "interval": self.interval,
            "manualAlertActive": self.manual_alert_active,
            "manualAlertTimestamp": format_timestamp(self.manual_alert_timestamp),
            "hasIncomingPing": self.has_incoming_ping,
            "hasOutgoingPing": self.has_outgoing_ping,
            "incomingPingTimestamp": format_timestamp(self.incoming_ping_timestamp),
            "outgoingPingTimestamp": format_timestamp(self.outgoing_ping_timestamp),
            "lastUpdated": format_timestamp(self.last_updated),
        }

    @classmethod
    def from_db_dict(cls, data: Dict[str, Any]) -> "ContactReference":
        """Create a ContactReference from a stored record (already upgraded)"""
        fields = {
            "reference_path": data.get("referencePath"),
            "is_responder": data.get("isResponder"),
            "is_dependent": data.get("isDependent"),
            "send_pings": data.get("sendPings", True),
            "receive_pings": data.get("receivePings", True),
            "nickname": data.get("nickname"),
            "notes": data.get("notes"),
            "name": data.get("name") or "Unknown User",
            "phone": data.get("phone") or "",
            "note": data.get("note") or "",
            "qr_code_id": data.get("qrCodeId"),
            "last_check_in": data.get("lastCheckIn"),
            "interval": data.get("interval"),
            "manual_alert_active": data.get("manualAlertActive", False),
            "manual_alert_timestamp": data.get("manualAlertTimestamp"),
            "has_incoming_ping": data.get("hasIncomingPing", False),
            "has_outgoing_ping": data.get("hasOutgoingPing", False),
            "incoming_ping_timestamp": data.get("incomingPingTimestamp"),
            "outgoing_ping_timestamp": data.get("outgoingPingTimestamp"),
        }
        # Let defaults fill in missing creation/update times
        if data.get("addedAt"):
            fields["added_at"] = data["addedAt"]
        if data.get("lastUpdated"):
            fields["last_updated"] = data["lastUpdated"]

        return cls(**fields)

    def to_rich_text(self, now: Optional[datetime] = None) -> Text:
        """Format contact as Rich Text for display"""
        roles = []
        if self.is_responder:
            roles.append("responder")
        if self.is_dependent:
            roles.append("dependent")

        text = Text()
        text.append(self.nickname or self.name, style="bold white")
        text.append(f" ({', '.join(roles) or 'no role'})", style="dim")

        if self.is_dependent:
            if self.manual_alert_active:
                text.append("  ALERT", style="bold red")
            elif self.is_non_responsive(now):
                text.append("  Non-responsive", style="red")
            else:
                text.append(f"  {self.formatted_time_remaining(now)}", style="green")

        if self.has_incoming_ping:
            text.append("  [ping received]", style="yellow")
        if self.has_outgoing_ping:
            text.append("  [ping sent]", style="cyan")

        return text

"""
User record model.

File: models/user.py
Created: 2026-10-12
Last Modified: 2026-10-19
"""

from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..liveness import (
    DEFAULT_CHECK_IN_INTERVAL,
    MINIMUM_CHECK_IN_INTERVAL,
    expiration,
    is_non_responsive,
    time_remaining,
    utc_now,
)
from .timestamps import format_timestamp, parse_timestamp


class NotificationLeadTime(IntEnum):
    """How long before expiration the user is reminded to check in."""

    THIRTY_MINUTES = 30
    TWO_HOURS = 120


class UserRecord(BaseModel):
    """
    The authenticated principal, as stored in the users collection.

    The inline `contacts` array of older documents is not part of this model;
    contact records are read through the contact repositories.
    """
    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=False,
        extra='ignore'
    )

    uid: str = Field(..., description="Stable user id (document id)", min_length=1)
    name: str = Field("", description="User's full name")
    phone_number: str = Field("", description="E.164 phone number")
    phone_region: str = Field("US", description="ISO region used to parse the phone number")
    note: str = Field("", description="Emergency note shown to responders")
    qr_code_id: str = Field(..., description="Identifier encoded in the user's QR code", min_length=1)
    check_in_interval: float = Field(
        DEFAULT_CHECK_IN_INTERVAL.total_seconds(),
        description="Seconds between required check-ins",
        ge=MINIMUM_CHECK_IN_INTERVAL.total_seconds(),
    )
    last_checked_in: Optional[datetime] = Field(None, description="Most recent check-in")
    notify_30_min_before: bool = Field(True, description="Remind 30 minutes before expiration")
    notify_2_hours_before: bool = Field(False, description="Remind 2 hours before expiration")
    manual_alert_active: bool = Field(False, description="User has triggered a manual alert")
    manual_alert_timestamp: Optional[datetime] = Field(None, description="When the manual alert started")
    profile_complete: bool = Field(False, description="Onboarding finished")
    created_at: datetime = Field(default_factory=utc_now, description="Registration time")
    last_updated: datetime = Field(default_factory=utc_now, description="Last write to the document")

    @field_validator(
        "last_checked_in", "manual_alert_timestamp", "created_at", "last_updated",
        mode="before",
    )
    @classmethod
    def _aware_timestamps(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @property
    def notification_lead_time(self) -> NotificationLeadTime:
        if self.notify_2_hours_before and not self.notify_30_min_before:
            return NotificationLeadTime.TWO_HOURS
        return NotificationLeadTime.THIRTY_MINUTES

    @property
    def check_in_expiration(self) -> Optional[datetime]:
        return expiration(self.last_checked_in, self.check_in_interval)

    def is_non_responsive(self, now: Optional[datetime] = None) -> bool:
        return is_non_responsive(self.last_checked_in, self.check_in_interval, now)

    def time_remaining(self, now: Optional[datetime] = None):
        return time_remaining(self.last_checked_in, self.check_in_interval, now)

    def to_db_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase document shape"""
        return {
            "uid": self.uid,
            "name": self.name,
            "phoneNumber": self.phone_number,
            "phoneRegion": self.phone_region,
            "note": self.note,
            "qrCodeId": self.qr_code_id,
            "checkInInterval": self.check_in_interval,
            "lastCheckedIn": format_timestamp(self.last_checked_in),
            "notify30MinBefore": self.notify_30_min_before,
            "notify2HoursBefore": self.notify_2_hours_before,
            "manualAlertActive": self.manual_alert_active,
            "manualAlertTimestamp": format_timestamp(self.manual_alert_timestamp),
            "profileComplete": self.profile_complete,
            "createdAt": format_timestamp(self.created_at),
            "lastUpdated": format_timestamp(self.last_updated),
        }

    @classmethod
    def from_db_dict(cls, data: Dict[str, Any]) -> "UserRecord":
        """Create a UserRecord from a user document"""
        fields = {
            "uid": data.get("uid"),
            "name": data.get("name") or "",
            "phone_number": data.get("phoneNumber") or "",
            "phone_region": data.get("phoneRegion") or "US",
            "note": data.get("note") or "",
            "qr_code_id": data.get("qrCodeId"),
            "last_checked_in": data.get("lastCheckedIn"),
            "notify_30_min_before": data.get("notify30MinBefore", True),
            "notify_2_hours_before": data.get("notify2HoursBefore", False),
            "manual_alert_active": data.get("manualAlertActive", False),
            "manual_alert_timestamp": data.get("manualAlertTimestamp"),
            "profile_complete": data.get("profileComplete", False),
        }
        if data.get("checkInInterval") is not None:
            fields["check_in_interval"] = data["checkInInterval"]
        if data.get("createdAt"):
            fields["created_at"] = data["createdAt"]
        if data.get("lastUpdated"):
            fields["last_updated"] = data["lastUpdated"]

        return cls(**fields)

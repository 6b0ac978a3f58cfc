"""
User profile operations: onboarding, check-ins and settings.

Fields that counterparts cache on their contact records (name, phone,
note, check-in state) are fanned out to every edge in the same transaction
as the user document write.

File: user/profile.py
Created: 2026-10-15
Last Modified: 2026-10-19
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..config import LifeSignalConfig
from ..documents import (
    PLACEHOLDER_DOC_ID,
    DocumentStore,
    RelationshipFunctions,
    contact_doc,
    qr_lookup_doc,
    user_doc,
)
from ..errors import AlreadyExists, InvalidArgument, NotFound
from ..liveness import (
    MAXIMUM_CHECK_IN_INTERVAL,
    MINIMUM_CHECK_IN_INTERVAL,
    Clock,
    Interval,
    as_timedelta,
    format_interval,
    utc_now,
)
from ..models import NotificationLeadTime, QRLookupRecord, UserRecord, format_timestamp
from .phone import require_phone_number
from .session import Session

log = logging.getLogger(__name__)


def new_qr_code_id() -> str:
    return str(uuid.uuid4())


def validate_check_in_interval(interval: Interval) -> timedelta:
    """Raises InvalidArgument outside the allowed range."""
    interval = as_timedelta(interval)
    if not MINIMUM_CHECK_IN_INTERVAL <= interval <= MAXIMUM_CHECK_IN_INTERVAL:
        raise InvalidArgument(
            f"Check-in interval must be between {format_interval(MINIMUM_CHECK_IN_INTERVAL)} "
            f"and {format_interval(MAXIMUM_CHECK_IN_INTERVAL)}"
        )
    return interval


class UserService:
    """Reads and writes the signed-in user's own document."""

    def __init__(
        self,
        session: Session,
        documents: DocumentStore,
        functions: RelationshipFunctions,
        config: Optional[LifeSignalConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.documents = documents
        self.functions = functions
        self.config = config or LifeSignalConfig()
        self._clock = clock or utc_now

    async def create_user(
        self,
        name: str,
        phone: str,
        note: str = "",
        interval: Optional[Interval] = None,
        user_id: Optional[str] = None,
    ) -> UserRecord:
        """
        Finish onboarding: write the user document, its QR lookup entry and
        the contacts placeholder, then sign in.

        Args:
            name: Display name
            phone: Phone number in any format phonenumbers accepts
            note: Emergency note shown to responders
            interval: Check-in interval (seconds or timedelta), defaults to config
            user_id: Id from the auth provider; the session's (or a new one) if omitted

        Raises:
            InvalidArgument: Empty name, bad phone number or interval
            AlreadyExists: A profile already exists for this user id
        """
        if not name or not name.strip():
            raise InvalidArgument("Name is required")

        region = self.config.default_phone_region
        phone_number = require_phone_number(phone, region)
        check_in_interval = validate_check_in_interval(
            interval if interval is not None else self.config.default_check_in_interval
        )

        user_id = user_id or self.session.user_id or str(uuid.uuid4())
        now = self._clock()
        user = UserRecord(
            uid=user_id,
            name=name.strip(),
            phone_number=phone_number,
            phone_region=region,
            note=note.strip(),
            qr_code_id=new_qr_code_id(),
            check_in_interval=check_in_interval.total_seconds(),
            last_checked_in=now,
            profile_complete=True,
            created_at=now,
            last_updated=now,
        )
        lookup = QRLookupRecord(qr_code_id=user.qr_code_id, updated_at=now)

        await self.documents.run("create_user", self._insert_user(user, lookup))

        self.session.sign_in(user_id)
        log.info(f"Created user {user_id} ({user.name})")
        return user

    async def _insert_user(self, user: UserRecord, lookup: QRLookupRecord) -> None:
        async with self.documents.transaction() as txn:
            if await txn.exists(user_doc(user.uid)):
                raise AlreadyExists(f"User {user.uid} already has a profile")
            await txn.set(user_doc(user.uid), user.to_db_dict())
            await txn.set(qr_lookup_doc(user.uid), lookup.to_db_dict())
            await txn.set(contact_doc(user.uid, PLACEHOLDER_DOC_ID), {
                "placeholder": True,
                "createdAt": format_timestamp(lookup.updated_at),
            })

    async def load_user(self) -> UserRecord:
        user_id = self.session.require_user_id()
        data = await self.documents.get(user_doc(user_id))
        if data is None:
            raise NotFound(f"User {user_id} not found")
        return UserRecord.from_db_dict({"uid": user_id, **data})

    async def _write(self, user_fields: Dict[str, Any], mirrored_fields: Optional[Dict[str, Any]] = None) -> int:
        user_id = self.session.require_user_id()
        return await self.functions.update_user_fields(user_id, user_fields, mirrored_fields)

    async def update_profile(
        self,
        name: Optional[str] = None,
        note: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> UserRecord:
        """Update display fields and refresh every counterpart's cached copy."""
        user_fields: Dict[str, Any] = {}
        mirrored: Dict[str, Any] = {}

        if name is not None:
            if not name.strip():
                raise InvalidArgument("Name cannot be empty")
            user_fields["name"] = mirrored["name"] = name.strip()
        if note is not None:
            user_fields["note"] = mirrored["note"] = note.strip()
        if phone is not None:
            phone_number = require_phone_number(phone, self.config.default_phone_region)
            user_fields["phoneNumber"] = mirrored["phone"] = phone_number

        if not user_fields:
            return await self.load_user()

        updated = await self._write(user_fields, mirrored)
        log.info(f"Updated profile fields {sorted(user_fields)} ({updated} contact records refreshed)")
        return await self.load_user()

    async def check_in(self) -> datetime:
        """
        Record a check-in now.

        Returns:
            When the new check-in expires
        """
        user = await self.load_user()
        now = self._clock()
        stamp = format_timestamp(now)
        await self._write({"lastCheckedIn": stamp}, {"lastCheckIn": stamp})

        expires = now + timedelta(seconds=user.check_in_interval)
        log.info(f"Checked in {user.uid}, next check-in due {expires.isoformat()}")
        return expires

    async def set_check_in_interval(self, interval: Interval) -> timedelta:
        interval = validate_check_in_interval(interval)
        seconds = interval.total_seconds()
        await self._write({"checkInInterval": seconds}, {"interval": seconds})
        log.info(f"Check-in interval set to {format_interval(interval)}")
        return interval

    async def set_notification_lead_time(self, minutes: int) -> NotificationLeadTime:
        """Choose the reminder lead time. Only 30 or 120 minutes are offered."""
        try:
            lead_time = NotificationLeadTime(minutes)
        except ValueError:
            raise InvalidArgument(f"Notification lead time must be 30 or 120 minutes, got {minutes}")

        await self._write({
            "notify30MinBefore": lead_time == NotificationLeadTime.THIRTY_MINUTES,
            "notify2HoursBefore": lead_time == NotificationLeadTime.TWO_HOURS,
        })
        return lead_time

    async def regenerate_qr_code(self) -> str:
        """Issue a new QR code id. The old one stops resolving immediately."""
        user_id = self.session.require_user_id()
        qr_code_id = new_qr_code_id()
        await self.functions.set_qr_code(user_id, qr_code_id)
        log.info(f"Regenerated QR code for {user_id}")
        return qr_code_id

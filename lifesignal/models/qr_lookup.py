"""
QR lookup index record.

File: models/qr_lookup.py
Created: 2026-10-13
Last Modified: 2026-10-13
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from ..liveness import utc_now
from .timestamps import format_timestamp, parse_timestamp


class QRLookupRecord(BaseModel):
    """Reverse index entry, stored under qr_lookup/{user_id}."""

    qr_code_id: str = Field(..., description="Identifier encoded in the QR code", min_length=1)
    updated_at: datetime = Field(default_factory=utc_now, description="When the code was (re)generated")

    @field_validator("updated_at", mode="before")
    @classmethod
    def _aware_timestamp(cls, value: Any) -> Any:
        return parse_timestamp(value)

    def to_db_dict(self) -> Dict[str, Any]:
        return {
            "qrCodeId": self.qr_code_id,
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_dict(cls, data: Dict[str, Any]) -> "QRLookupRecord":
        return cls(qr_code_id=data.get("qrCodeId"), updated_at=data.get("updatedAt") or utc_now())

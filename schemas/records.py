"""Pydantic record schemas for rows read from the booking store.

Records accept raw database rows: extra columns are silently ignored and
empty strings are normalised to None, the same way rows are mapped at every
read boundary of the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, model_validator

from models.classification import ADMIN_USER_TYPES, UserType
from models.status import JobStatus
from schemas.common import BookingModel
from utils.datetime_helpers import parse_ts


class _RowRecord(BookingModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def empty_strings_to_none(cls, data: Any) -> Any:
        """Convert empty-string values to None for optional fields."""
        if isinstance(data, dict):
            return {k: (None if v == "" else v) for k, v in data.items()}
        return data


class JobRecord(_RowRecord):
    """One interpretation booking."""

    id: int
    user_id: int
    from_language_id: int
    immediate: str = "no"
    due: str
    duration: Optional[int] = None
    status: str = JobStatus.PENDING.value
    job_type: Optional[str] = None
    certified: Optional[str] = None
    gender: Optional[str] = None
    customer_phone_type: Optional[str] = None
    customer_physical_type: Optional[str] = None
    town: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    user_email: Optional[str] = None
    reference: Optional[str] = None
    admin_comments: Optional[str] = None
    session_time: Optional[str] = None
    end_at: Optional[str] = None
    withdraw_at: Optional[str] = None
    will_expire_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    b_created_at: Optional[str] = None
    by_admin: Optional[str] = None
    flagged: Optional[str] = None
    manually_handled: Optional[str] = None
    emailsent: int = 0
    emailsenttovirpal: int = 0
    cust_16_hour_email: int = 0
    cust_48_hour_email: int = 0
    ignore: int = 0
    ignore_expired: int = 0

    @property
    def is_immediate(self) -> bool:
        return self.immediate == "yes"

    @property
    def due_at(self) -> datetime:
        return parse_ts(self.due)

    @property
    def is_physical_only(self) -> bool:
        """True when the customer wants on-site interpretation and no phone call."""
        return self.customer_phone_type in (None, "no") and self.customer_physical_type == "yes"


class UserRecord(_RowRecord):
    """A customer, translator or admin, with the profile fields the core reads."""

    id: int
    name: Optional[str] = None
    email: str
    mobile: Optional[str] = None
    user_type: str
    status: int = 1
    consumer_type: Optional[str] = None
    customer_type: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    translator_type: Optional[str] = None
    gender: Optional[str] = None
    translator_level: Optional[str] = None
    not_get_notification: Optional[str] = None
    not_get_emergency: Optional[str] = None
    not_get_nighttime: Optional[str] = None

    @property
    def is_customer(self) -> bool:
        return self.user_type == UserType.CUSTOMER

    @property
    def is_translator(self) -> bool:
        return self.user_type == UserType.TRANSLATOR

    @property
    def is_admin(self) -> bool:
        return self.user_type in ADMIN_USER_TYPES

    @property
    def translator_levels(self) -> frozenset[str]:
        """Certification labels held by a translator (stored comma separated)."""
        if not self.translator_level:
            return frozenset()
        return frozenset(part.strip() for part in self.translator_level.split(",") if part.strip())


class AssignmentRecord(_RowRecord):
    """One translator's interval on one job (``translator_job_rel`` row)."""

    id: int
    user_id: int
    job_id: int
    created_at: Optional[str] = None
    will_expire_at: Optional[str] = None
    cancel_at: Optional[str] = None
    completed_at: Optional[str] = None
    completed_by: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.cancel_at is None and self.completed_at is None

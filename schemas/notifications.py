"""Pydantic schemas for outbound notification payloads.

These are logical contracts between the dispatcher and the channel
gateways, not byte-exact wire formats.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from schemas.common import BookingModel


class PushNotification(BookingModel):
    """One push payload addressed to a tag-filtered audience."""

    job_id: int
    notification_type: str
    tags: list[dict[str, str]]
    title: str
    contents: dict[str, str]
    data: dict[str, Any] = Field(default_factory=dict)
    android_sound: str = "default"
    ios_sound: str = "default"
    send_after: Optional[str] = None


class SmsMessage(BookingModel):
    sender: str
    to: str
    body: str


class SmsResult(BookingModel):
    """Transport-level outcome of one SMS send."""

    success: bool
    status_code: Optional[int] = None
    detail: Optional[str] = None


class EmailMessage(BookingModel):
    """One transactional email: recipient, subject, template id and data."""

    to: str
    name: Optional[str] = None
    subject: str
    template: str
    data: dict[str, Any] = Field(default_factory=dict)

"""Pydantic schemas for job lifecycle and admin operations."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import field_validator, model_validator

from models.status import JobStatus
from schemas.common import DbPathField, BookingRequest
from utils.datetime_helpers import parse_ts


class JobIdRequest(DbPathField, BookingRequest):
    """Request carrying only a job id (flag toggles, resend, job data)."""

    job_id: int


class ThrottleIdRequest(DbPathField, BookingRequest):
    throttle_id: int


class TranslatorIdRequest(DbPathField, BookingRequest):
    translator_id: int


class AcceptJobRequest(DbPathField, BookingRequest):
    """Request schema for accept_job and accept_job_by_id."""

    job_id: int
    translator_id: int


class CancelJobRequest(DbPathField, BookingRequest):
    """Request schema for cancel_job. The actor is the customer or the assigned translator."""

    job_id: int
    actor_id: int


class EndJobRequest(DbPathField, BookingRequest):
    """Request schema for end_job; ``actor_id`` is whoever ended the session."""

    job_id: int
    actor_id: int


class ReopenJobRequest(DbPathField, BookingRequest):
    job_id: int
    translator_id: int


class UpdateJobRequest(DbPathField, BookingRequest):
    """
    Request schema for update_job.

    Omitted fields are left as they are. ``translator_id`` and
    ``translator_email`` both request a reassignment; the email wins when
    both are given.
    """

    job_id: int
    actor_id: int
    status: Optional[str] = None
    due: Optional[str] = None
    from_language_id: Optional[int] = None
    translator_id: Optional[int] = None
    translator_email: Optional[str] = None
    admin_comments: Optional[str] = None
    reference: Optional[str] = None
    session_time: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        allowed = {status.value for status in JobStatus}
        if value not in allowed:
            raise ValueError(f"must be one of {sorted(allowed)}")
        return value

    @field_validator("due")
    @classmethod
    def validate_due(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            parse_ts(value)
        except ValueError as e:
            raise ValueError("expected YYYY-MM-DD HH:MM:SS") from e
        return value

    @model_validator(mode="after")
    def normalise_translator(self) -> "UpdateJobRequest":
        if self.translator_email is not None and not self.translator_email.strip():
            self.translator_email = None
        if self.translator_id == 0:
            self.translator_id = None
        return self


class DistanceFeedRequest(DbPathField, BookingRequest):
    """Request schema for distance_feed. Boolean flags also accept "true"/"false"."""

    job_id: int
    distance: Optional[str] = None
    time: Optional[str] = None
    session_time: Optional[str] = None
    flagged: Union[bool, str] = False
    manually_handled: Union[bool, str] = False
    by_admin: Union[bool, str] = False
    admincomment: Optional[str] = None

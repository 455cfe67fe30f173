"""Pydantic schemas for booking intake operations."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import Field

from schemas.common import DbPathField, BookingRequest, BookingModel

# Delivery-type inputs arrive as checkbox values: presence means "yes".
DeliveryFlag = Optional[Union[str, bool]]


class CreateBookingRequest(DbPathField, BookingRequest):
    """Request schema for create_booking."""

    customer_id: int
    from_language_id: Optional[int] = None
    immediate: Literal["yes", "no"] = "no"
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    duration: Optional[int] = None
    customer_phone_type: DeliveryFlag = None
    customer_physical_type: DeliveryFlag = None
    job_for: list[str] = Field(default_factory=list)
    by_admin: Literal["yes", "no"] = "no"
    town: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    reference: Optional[str] = None


class CreateBookingResponse(BookingModel):
    """Success response schema for create_booking."""

    status: Literal["success"] = "success"
    id: int
    type: Literal["immediate", "regular"]
    customer_physical_type: Literal["yes", "no"]
    job_for: list[str]


class StoreJobEmailRequest(DbPathField, BookingRequest):
    """Request schema for store_job_email."""

    job_id: int
    user_email: Optional[str] = None
    reference: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    town: Optional[str] = None
    user_type: Optional[str] = None

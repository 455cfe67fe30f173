"""Base models shared by booking requests, records and outbound messages."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def blank_to_error(value: Optional[str], field_name: str) -> Optional[str]:
    """Reject strings that are present but contain only whitespace."""
    if value is not None and not value.strip():
        raise ValueError(f"{field_name} must not be blank")
    return value


class BookingRequest(BaseModel):
    """
    Tool input. Types are checked strictly (no "1" -> 1 coercion) and
    keys the operation does not know about are dropped.
    """

    model_config = ConfigDict(extra="ignore", strict=True)


class BookingModel(BaseModel):
    """Rows and messages built by the service itself; stray keys are a bug."""

    model_config = ConfigDict(extra="forbid")


class DbPathField(BaseModel):
    db_path: Optional[str] = None

    @field_validator("db_path")
    @classmethod
    def check_db_path(cls, value: Optional[str]) -> Optional[str]:
        return blank_to_error(value, "db_path")

"""
Error model for booking operations.

Every operation either returns its result or ``{"error": {...}}`` built from
a ToolError. Expected outcomes (bad input, job already taken, wrong role)
use their own codes; DB_ERROR and INTERNAL_ERROR are faults.
"""

import os
import re
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DB_NOT_FOUND = "DB_NOT_FOUND"
    DB_ERROR = "DB_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ToolError(Exception):
    """
    Structured failure raised by store, logic and tool layers.

    Args:
        code: Outcome kind
        message: Text shown to the caller
        retryable: True when the same call may succeed later (locks, outages)
        field: Input field a validation error refers to
        original_error: Wrapped exception, kept for logging only
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        retryable: bool = False,
        field: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.code = code
        self.message = message
        self.retryable = retryable
        self.field = field
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"code": self.code.value, "message": self.message, "retryable": self.retryable}
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}


_SQL_TAIL = re.compile(r"SQL:.*", re.IGNORECASE)
_QUOTED_SELECT = re.compile(r"(\"[^\"]*SELECT[^\"]*\"|'[^']*SELECT[^']*')", re.IGNORECASE)
_BARE_STATEMENT = re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE)\b.*", re.IGNORECASE)
_DIRECTORY = re.compile(r"/[^\s]+/")


def sanitize_path(path: str) -> str:
    """Basename for absolute paths; relative paths are returned as given."""
    return os.path.basename(path) if os.path.isabs(path) else path


def sanitize_sql_error(error_msg: str) -> str:
    """Drop SQL text and directory names from a sqlite error message."""
    text = _SQL_TAIL.sub("", error_msg)
    text = _QUOTED_SELECT.sub("[SQL query]", text)
    text = _BARE_STATEMENT.sub("[SQL query]", text)
    text = _DIRECTORY.sub("[path]/", text)
    return text.strip()


def sanitize_stack_trace(error_msg: str) -> str:
    """First line only."""
    return error_msg.split("\n", 1)[0].strip()


def create_validation_error(message: str, field: Optional[str] = None) -> ToolError:
    """Malformed or missing input. ``field`` names the input to fix."""
    return ToolError(ErrorCode.VALIDATION_ERROR, message, field=field)


def create_not_found_error(entity: str, entity_id: Any) -> ToolError:
    """
    A referenced job, user or throttle does not exist.

    Args:
        entity: Display name of the kind ("Job", "Translator", ...)
        entity_id: Id that was looked up
    """
    return ToolError(ErrorCode.NOT_FOUND, f"{entity} not found: {entity_id}")


def create_conflict_error(message: str) -> ToolError:
    """The job's current state rules the operation out (taken, finished, ...)."""
    return ToolError(ErrorCode.CONFLICT, message)


def create_permission_error(message: str) -> ToolError:
    return ToolError(ErrorCode.PERMISSION_DENIED, message)


def create_configuration_error(message: str) -> ToolError:
    """A stored enumerated value (translator type, consumer type) is not recognised."""
    return ToolError(ErrorCode.CONFIGURATION_ERROR, message)


def create_db_not_found_error(db_path: str) -> ToolError:
    return ToolError(ErrorCode.DB_NOT_FOUND, f"Database not found: {sanitize_path(db_path)}")


def create_db_error(
    message: str, retryable: bool = False, original_error: Optional[Exception] = None
) -> ToolError:
    """
    SQLite failure with SQL text, paths and trace lines removed.

    Args:
        message: Raw error text
        retryable: True for lock/busy style failures
        original_error: The sqlite3 exception
    """
    cleaned = sanitize_stack_trace(sanitize_sql_error(message))
    return ToolError(
        ErrorCode.DB_ERROR,
        f"Database error: {cleaned}",
        retryable=retryable,
        original_error=original_error,
    )


def create_internal_error(message: str, original_error: Optional[Exception] = None) -> ToolError:
    """Unexpected exception caught at the tool boundary. Always retryable."""
    return ToolError(
        ErrorCode.INTERNAL_ERROR,
        f"Internal error: {sanitize_stack_trace(message)}",
        retryable=True,
        original_error=original_error,
    )

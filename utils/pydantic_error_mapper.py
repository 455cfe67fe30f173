"""Turn pydantic ValidationError into a booking VALIDATION_ERROR."""

from typing import Any, Dict

from pydantic import ValidationError

from models.errors import ToolError, create_validation_error

_VALUE_ERROR_PREFIX = "Value error, "


def _field_path(issue: Dict[str, Any]) -> str:
    return ".".join(str(part) for part in issue.get("loc", ()) if part != "__root__")


def _issue_message(issue: Dict[str, Any]) -> str:
    message = issue.get("msg") or "Invalid input"
    # Messages raised from our own validators carry pydantic's prefix.
    return message.removeprefix(_VALUE_ERROR_PREFIX)


def map_pydantic_validation_error(error: ValidationError) -> ToolError:
    """
    Report the first failing input as a VALIDATION_ERROR.

    The dotted input path goes into both the message and ``field`` so the
    caller can highlight the offending form field.

    Args:
        error: Raised by ``Model.model_validate``

    Returns:
        ToolError with code VALIDATION_ERROR
    """
    issues = error.errors(include_url=False)
    if not issues:
        return create_validation_error("Invalid input")

    field = _field_path(issues[0])
    message = _issue_message(issues[0])
    if not field:
        return create_validation_error(message)
    return create_validation_error(f"Invalid {field}: {message}", field=field)

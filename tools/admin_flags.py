"""Tool handlers for the admin ignore toggles on jobs and login throttles."""

from typing import Any, Dict

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import JobIdRequest, ThrottleIdRequest
from utils.pydantic_error_mapper import map_pydantic_validation_error

CHANGES_SAVED = {"status": "success", "message": "Changes saved"}


def _set_job_flag(args: Dict[str, Any], flag: str) -> Dict[str, Any]:
    try:
        request = JobIdRequest.model_validate(args)
        with BookingStore(request.db_path) as store:
            store.set_job_flag(request.job_id, flag)
            store.commit()
        return dict(CHANGES_SAVED)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()


def ignore_expiring(args: Dict[str, Any]) -> Dict[str, Any]:
    """Hide a job from the expiring-bookings alert list."""
    return _set_job_flag(args, "ignore")


def ignore_expired(args: Dict[str, Any]) -> Dict[str, Any]:
    """Hide a job from the expired-bookings alert list."""
    return _set_job_flag(args, "ignore_expired")


def ignore_throttle(args: Dict[str, Any]) -> Dict[str, Any]:
    """Mark a failed-login throttle record as ignored."""
    try:
        request = ThrottleIdRequest.model_validate(args)
        with BookingStore(request.db_path) as store:
            store.set_throttle_ignored(request.throttle_id)
            store.commit()
        return dict(CHANGES_SAVED)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

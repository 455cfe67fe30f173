"""Tool handler for get_job_data (read-only)."""

from typing import Any, Dict

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import JobIdRequest
from utils.notification_dispatcher import job_to_data
from utils.pydantic_error_mapper import map_pydantic_validation_error


def get_job_data(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the notification/event view of a job.

    Returns:
        Flat job data with ``due_date``/``due_time``, ``job_for`` display
        labels and the resolved ``language`` name
    """
    try:
        request = JobIdRequest.model_validate(args)

        with BookingStore(request.db_path) as store:
            job = store.require_job(request.job_id)
            data = job_to_data(job, store.get_user(job.user_id))
            data["language"] = store.get_language_name(job.from_language_id)

        return data

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

"""Tool handler for distance_feed: travel data and admin bookkeeping on a job."""

from typing import Any, Dict, Union

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error, create_validation_error
from schemas.lifecycle import DistanceFeedRequest
from utils.pydantic_error_mapper import map_pydantic_validation_error


def _yes_no(value: Union[bool, str]) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "yes" if value.strip().lower() == "true" else "no"


def distance_feed(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Record travel distance/time and admin fields for a job.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job to update
            - distance, time (str, optional): Travel feed values
            - session_time (str, optional): Manually entered session time
            - flagged, manually_handled, by_admin (bool or "true"/"false")
            - admincomment (str): Required when flagged
            - db_path (str, optional): Database path override

    Returns:
        {"status": "success", "message": "Record updated!"}
    """
    try:
        request = DistanceFeedRequest.model_validate(args)
        flagged = _yes_no(request.flagged)
        comment = (request.admincomment or "").strip()
        if flagged == "yes" and not comment:
            raise create_validation_error("Please, add comment", field="admincomment")

        with BookingStore(request.db_path) as store:
            store.require_job(request.job_id)

            if request.distance or request.time:
                store.update_distance(request.job_id, request.distance, request.time)

            updates = {
                "flagged": flagged,
                "manually_handled": _yes_no(request.manually_handled),
                "by_admin": _yes_no(request.by_admin),
            }
            if comment:
                updates["admin_comments"] = comment
            if request.session_time:
                updates["session_time"] = request.session_time
            store.update_job(request.job_id, updates)
            store.commit()

        return {"status": "success", "message": "Record updated!"}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

"""
Tool handler that tells a customer nobody accepted their booking.

The expiry sweep that decides a booking has run out of time lives outside
this server; it calls this tool once per expired booking.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_conflict_error, create_internal_error
from models.status import JobStatus
from schemas.lifecycle import JobIdRequest
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services

# A booking that a translator has taken cannot have expired.
EXPIRABLE_STATUSES = (JobStatus.PENDING.value, JobStatus.TIMEDOUT.value)


def notify_job_expired(
    args: Dict[str, Any], services: Optional[BookingServices] = None
) -> Dict[str, Any]:
    """
    Push the "no translator accepted" notice to the booking's customer.

    The push honours the customer's opt-out and night-time settings, so
    ``sent`` is False when the customer does not take pushes.

    Returns:
        {"status": "success", "job_id": int, "user_id": int, "sent": bool}
    """
    try:
        request = JobIdRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            job = store.require_job(request.job_id)
            if job.status not in EXPIRABLE_STATUSES:
                raise create_conflict_error(
                    f"Job {job.id} has not expired: status is {job.status}"
                )
            customer = store.require_user(job.user_id, "Customer")
            language = store.get_language_name(job.from_language_id)
            store.commit(begin_next=False)

        sent = services.dispatcher.notify_job_expired(job, customer, language)
        return {"status": "success", "job_id": job.id, "user_id": customer.id, "sent": sent}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

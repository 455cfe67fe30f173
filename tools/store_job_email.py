"""
Tool handler for store_job_email.

Attaches the customer's contact details to a freshly created booking,
sends the booking confirmation email and announces the new job.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.booking import StoreJobEmailRequest
from utils.datetime_helpers import format_ts
from utils.event_bus import JOB_CREATED
from utils.notification_dispatcher import job_to_data
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def store_job_email(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Save contact email and reference on a job and confirm the booking.

    When ``address`` is present in the request, empty address, instructions
    and town values fall back to the customer's profile.

    Returns:
        {"status": "success", "type": user_type, "job": {...}}
    """
    try:
        request = StoreJobEmailRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            job = store.require_job(request.job_id)
            customer = store.require_user(job.user_id, "Customer")

            updates: Dict[str, Any] = {
                "user_email": request.user_email or None,
                "reference": request.reference or "",
                "updated_at": format_ts(services.clock()),
            }
            if request.address is not None:
                updates["address"] = request.address or customer.address
                updates["instructions"] = request.instructions or customer.instructions
                updates["town"] = request.town or customer.city
            store.update_job(job.id, updates)
            store.commit()

            job = store.require_job(job.id)

        services.dispatcher.email_job_created(job, customer)
        services.events.publish(JOB_CREATED, job_to_data(job, customer))

        return {"status": "success", "type": request.user_type, "job": job.model_dump()}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

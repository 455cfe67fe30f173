"""
Tool handler for create_booking.

Validates a customer's booking request, derives the job's classification
and scheduling columns, and stores it as a new pending job.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.booking import CreateBookingRequest, CreateBookingResponse
from utils.booking_intake import build_job
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def create_booking(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Create a booking for a customer.

    Args:
        args: Dictionary containing parameters:
            - customer_id (int): Requesting user
            - from_language_id (int): Language to interpret
            - immediate (str, optional): "yes" or "no" (default "no")
            - due_date (str): MM/DD/YYYY, required unless immediate
            - due_time (str): HH:MM, required unless immediate
            - duration (int): Minutes
            - customer_phone_type / customer_physical_type: Delivery choices
            - job_for (list, optional): Gender/certification selections
            - db_path (str, optional): Database path override
        services: Optional services bundle (defaults to the process bundle)

    Returns:
        {"status": "success", "id", "type", "customer_physical_type", "job_for"}
        or {"error": {...}} with ``field`` set for input problems
    """
    try:
        request = CreateBookingRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            customer = store.require_user(request.customer_id, "Customer")
            intake = build_job(
                request,
                customer,
                created_at=services.clock(),
                immediate_lead_minutes=services.config.immediate_lead_minutes,
            )
            job_id = store.create_job(intake.fields)
            store.commit()

        services.logger.info(f"Booking #{job_id} created by customer {customer.id}")
        response = CreateBookingResponse(
            id=job_id,
            type=intake.booking_type,
            customer_physical_type=intake.fields["customer_physical_type"],
            job_for=intake.job_for,
        )
        return response.model_dump()

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

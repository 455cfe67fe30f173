"""Tool handler for cancel_job (customer withdrawal or translator hand-back)."""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import CancelJobRequest
from utils import lifecycle
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def cancel_job(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Cancel a booking.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job to cancel
            - actor_id (int): The job's customer or its assigned translator
            - db_path (str, optional): Database path override
        services: Optional services bundle

    Returns:
        {"status": "success", "job_status": str} on success. A translator
        cancelling within 24 hours of the booking gets a CONFLICT error whose
        message asks them to call instead.
    """
    try:
        request = CancelJobRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            outcome = lifecycle.cancel_job(store, services, request.job_id, request.actor_id)
            store.commit(begin_next=False)
            lifecycle.run_effects(store, outcome.job_id, outcome.effects)
            job = store.require_job(outcome.job_id)

        return {"status": "success", "job_status": job.status}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

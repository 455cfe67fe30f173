"""Tool handlers for end_job and customer_not_call."""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import EndJobRequest, JobIdRequest
from utils import lifecycle
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def end_job(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    End a started session.

    Calling it for a job that is not ``started`` succeeds without doing
    anything, so repeated calls are harmless.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job whose session ended
            - actor_id (int): Customer or translator who ended the call
            - db_path (str, optional): Database path override
        services: Optional services bundle

    Returns:
        {"status": "success", "job_status": str}
    """
    try:
        request = EndJobRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            outcome = lifecycle.end_job(store, services, request.job_id, request.actor_id)
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


def customer_not_call(
    args: Dict[str, Any], services: Optional[BookingServices] = None
) -> Dict[str, Any]:
    """
    Mark a job as not carried out because the customer never called.

    Returns:
        {"status": "success", "job_status": "not_carried_out_customer"}
    """
    try:
        request = JobIdRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            outcome = lifecycle.customer_not_call(store, services, request.job_id)
            store.commit()
            job = store.require_job(outcome.job_id)

        return {"status": "success", "job_status": job.status}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

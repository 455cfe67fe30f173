"""Tool handler for reopen_job."""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import ReopenJobRequest
from utils import lifecycle
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def reopen_job(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Reopen a job so translators can accept it again.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job to reopen
            - translator_id (int): Translator the job is taken back from
            - db_path (str, optional): Database path override
        services: Optional services bundle

    Returns:
        {"status": "success", "message": "Tolk cancelled!", "job_id": int}
        where ``job_id`` is the new job when a timed-out job was copied
    """
    try:
        request = ReopenJobRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            outcome = lifecycle.reopen_job(
                store, services, request.job_id, request.translator_id
            )
            store.commit(begin_next=False)
            lifecycle.run_effects(store, outcome.job_id, outcome.effects)

        return {"status": "success", "message": "Tolk cancelled!", "job_id": outcome.job_id}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

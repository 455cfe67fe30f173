"""
Tool handlers for accept_job and accept_job_by_id.

A translator claims a pending job. The claim is a compare-and-swap in the
store, so of two translators racing for the same job exactly one wins and
the other gets a CONFLICT result.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import AcceptJobRequest
from utils import lifecycle
from utils.matching import find_eligible_jobs
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def _accept(args: Dict[str, Any], services: Optional[BookingServices]) -> Dict[str, Any]:
    request = AcceptJobRequest.model_validate(args)
    services = services or get_services()

    with BookingStore(request.db_path) as store:
        job, language, outcome = lifecycle.accept_job(
            store, services, request.job_id, request.translator_id
        )
        store.commit(begin_next=False)
        lifecycle.run_effects(store, outcome.job_id, outcome.effects)

        translator = store.require_user(request.translator_id, "Translator")
        remaining = find_eligible_jobs(store, translator)

    services.logger.info(f"Translator {request.translator_id} accepted job #{job.id}")
    return {
        "status": "success",
        "job": job.model_dump(),
        "jobs": [item.model_dump() for item in remaining],
        "message": (
            f"Du har nu accepterat och fått bokningen för {language}tolk "
            f"{job.duration}min {job.due}"
        ),
    }


def accept_job(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Accept a pending job on behalf of a translator.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job to accept
            - translator_id (int): Accepting translator
            - db_path (str, optional): Database path override
        services: Optional services bundle

    Returns:
        {"status": "success", "job": {...}, "jobs": [...]} where ``jobs`` is
        the translator's remaining eligible jobs, or {"error": {...}} with
        code CONFLICT when the job is taken or clashes with another booking
    """
    try:
        response = _accept(args, services)
        response.pop("message")
        return response

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()


def accept_job_by_id(
    args: Dict[str, Any], services: Optional[BookingServices] = None
) -> Dict[str, Any]:
    """
    Accept a job by id, returning a message suitable for showing the translator.

    Same semantics as accept_job; the success response also carries
    ``message``.
    """
    try:
        return _accept(args, services)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

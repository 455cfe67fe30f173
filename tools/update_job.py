"""
Tool handler for update_job.

Admin edit of a booking: translator reassignment, due and language
changes, status transition, comment and reference. One audit log entry is
written per call listing only the changes that happened.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import UpdateJobRequest
from utils import lifecycle
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def update_job(args: Dict[str, Any], services: Optional[BookingServices] = None) -> Dict[str, Any]:
    """
    Update a job as an administrator.

    Args:
        args: Dictionary containing parameters:
            - job_id (int): Job to update
            - actor_id (int): Admin making the change
            - status (str, optional): Requested status
            - due (str, optional): New due time (YYYY-MM-DD HH:MM:SS)
            - from_language_id (int, optional): New language
            - translator_id / translator_email (optional): Reassignment target
            - admin_comments, reference, session_time (str, optional)
            - db_path (str, optional): Database path override
        services: Optional services bundle

    Returns:
        {"status": "updated", "changes": [...]}. A requested status whose
        guard fails is simply absent from ``changes``.
    """
    try:
        request = UpdateJobRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            actor = store.require_user(request.actor_id)
            changes, outcome = lifecycle.update_job(store, services, request, actor)
            store.commit(begin_next=False)
            lifecycle.run_effects(store, outcome.job_id, outcome.effects)

        return {"status": "updated", "changes": changes}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

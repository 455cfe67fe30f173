"""
Tool handlers that (re)send new-booking notifications to translators.

notify_suitable_translators pushes to every eligible translator;
send_sms_to_eligible_translators texts them and reports how many SMS went
out.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error
from schemas.lifecycle import JobIdRequest
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.services import BookingServices, get_services


def notify_suitable_translators(
    args: Dict[str, Any], services: Optional[BookingServices] = None
) -> Dict[str, Any]:
    """
    Push a job to all eligible translators.

    Translators who opted out of night pushes get theirs scheduled for the
    end of the night window.

    Returns:
        {"status": "success", "job_id", "immediate_user_ids",
        "delayed_user_ids", "recipient_count"}
    """
    try:
        request = JobIdRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            job = store.require_job(request.job_id)
            store.commit(begin_next=False)
            result = services.dispatcher.notify_suitable_translators(store, job)

        return dict({"status": "success"}, **result.to_dict())

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()


def send_sms_to_eligible_translators(
    args: Dict[str, Any], services: Optional[BookingServices] = None
) -> Dict[str, Any]:
    """
    Text all eligible translators about a job.

    Individual send failures are logged; the response reports how many
    messages the gateway accepted.

    Returns:
        {"status": "success", "job_id": int, "sent_count": int}
    """
    try:
        request = JobIdRequest.model_validate(args)
        services = services or get_services()

        with BookingStore(request.db_path) as store:
            job = store.require_job(request.job_id)
            store.commit(begin_next=False)
            sent_count = services.dispatcher.send_sms_to_eligible_translators(store, job)

        return {"status": "success", "job_id": job.id, "sent_count": sent_count}

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

"""Tool handler for get_eligible_jobs (read-only)."""

from typing import Any, Dict

from pydantic import ValidationError

from db.booking_store import BookingStore
from models.errors import ToolError, create_internal_error, create_validation_error
from schemas.lifecycle import TranslatorIdRequest
from utils.matching import find_eligible_jobs
from utils.pydantic_error_mapper import map_pydantic_validation_error


def get_eligible_jobs(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    List the pending jobs a translator may accept, earliest due first.

    Args:
        args: Dictionary containing parameters:
            - translator_id (int): Translator to match
            - db_path (str, optional): Database path override

    Returns:
        {"translator_id": int, "count": int, "jobs": [...]}
    """
    try:
        request = TranslatorIdRequest.model_validate(args)

        with BookingStore(request.db_path) as store:
            translator = store.require_user(request.translator_id, "Translator")
            if not translator.is_translator:
                raise create_validation_error(
                    f"User {translator.id} is not a translator", field="translator_id"
                )
            jobs = find_eligible_jobs(store, translator)

        return {
            "translator_id": translator.id,
            "count": len(jobs),
            "jobs": [job.model_dump() for job in jobs],
        }

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        return create_internal_error(message=str(e), original_error=e).to_dict()

"""
Booking intake rules.

Validates a typed create-booking request against the customer making it
and turns it into the column values of a new pending job. Validation
failures are ``VALIDATION_ERROR`` ToolErrors carrying the offending field.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.classification import (
    CONSUMER_TYPE_TO_JOB_TYPE,
    JOB_FOR_CERTIFICATION_PRECEDENCE,
    JOB_FOR_FEMALE,
    JOB_FOR_MALE,
    ConsumerType,
)
from models.errors import create_permission_error, create_validation_error
from models.status import JobStatus
from schemas.booking import CreateBookingRequest
from schemas.records import UserRecord
from utils.datetime_helpers import format_ts, parse_due, will_expire_at

FILL_ALL_FIELDS = "Du måste fylla in alla fält"
CHOOSE_DELIVERY = "Du måste göra ett val här"
PAST_DUE = "Can't create booking in past"
BAD_DUE = "Invalid due date or time"


@dataclass
class IntakeResult:
    """Normalised job columns plus the values echoed back to the customer."""

    fields: Dict[str, Any]
    booking_type: str
    job_for: List[str]


def delivery_flag(value: Any) -> str:
    """Normalise a delivery-type checkbox to "yes"/"no"."""
    if value is None or value is False:
        return "no"
    if isinstance(value, str) and value.strip().lower() in ("", "no", "false"):
        return "no"
    return "yes"


def derive_gender_and_certification(job_for: Iterable[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Resolve the "job_for" selections into (gender, certified).

    The first precedence rule whose selections are all present decides the
    certification; no match leaves it unset.
    """
    selections = set(job_for)
    if JOB_FOR_MALE in selections:
        gender = "male"
    elif JOB_FOR_FEMALE in selections:
        gender = "female"
    else:
        gender = None

    certified = None
    for required, certification in JOB_FOR_CERTIFICATION_PRECEDENCE:
        if all(selection in selections for selection in required):
            certified = certification.value
            break
    return gender, certified


def response_job_for(gender: Optional[str], certified: Optional[str]) -> List[str]:
    """Labels echoed in the create-booking response."""
    labels = []
    if gender:
        labels.append("Man" if gender == "male" else "Kvinna")
    if certified == "both":
        labels.extend(["normal", "certified"])
    elif certified == "yes":
        labels.append("certified")
    elif certified:
        labels.append(certified)
    return labels


def job_type_for_consumer(consumer_type: Optional[str]) -> Optional[str]:
    """Job type for a customer's consumer category (None when uncategorised)."""
    try:
        return CONSUMER_TYPE_TO_JOB_TYPE[ConsumerType(consumer_type)].value
    except ValueError:
        return None


def _validate_required(request: CreateBookingRequest) -> None:
    if not request.from_language_id:
        raise create_validation_error(FILL_ALL_FIELDS, field="from_language_id")

    if request.immediate == "no":
        for name in ("due_date", "due_time", "duration"):
            if not getattr(request, name):
                raise create_validation_error(FILL_ALL_FIELDS, field=name)
        if (
            delivery_flag(request.customer_phone_type) == "no"
            and delivery_flag(request.customer_physical_type) == "no"
        ):
            raise create_validation_error(CHOOSE_DELIVERY, field="customer_phone_type")
    elif not request.duration:
        raise create_validation_error(FILL_ALL_FIELDS, field="duration")


def build_job(
    request: CreateBookingRequest,
    customer: UserRecord,
    created_at: datetime,
    immediate_lead_minutes: int = 5,
) -> IntakeResult:
    """
    Validate a booking request and build the new job's columns.

    Args:
        request: Typed create-booking request
        customer: The requesting user
        created_at: Creation time
        immediate_lead_minutes: Lead time for immediate bookings

    Returns:
        IntakeResult with job columns, "immediate"/"regular" and job_for labels

    Raises:
        ToolError: PERMISSION_DENIED for non-customers, VALIDATION_ERROR with
            ``field`` set for missing or invalid input
    """
    if not customer.is_customer:
        raise create_permission_error("Translator can not create booking")

    _validate_required(request)

    phone_type = delivery_flag(request.customer_phone_type)
    physical_type = delivery_flag(request.customer_physical_type)

    if request.immediate == "yes":
        due = created_at + timedelta(minutes=immediate_lead_minutes)
        phone_type = "yes"
        booking_type = "immediate"
    else:
        try:
            due = parse_due(request.due_date, request.due_time)
        except ValueError as e:
            raise create_validation_error(BAD_DUE, field="due_date") from e
        if due < created_at:
            raise create_validation_error(PAST_DUE, field="due_date")
        booking_type = "regular"

    gender, certified = derive_gender_and_certification(request.job_for)
    timestamp = format_ts(created_at)

    fields = {
        "user_id": customer.id,
        "from_language_id": request.from_language_id,
        "immediate": request.immediate,
        "due": format_ts(due),
        "duration": request.duration,
        "status": JobStatus.PENDING.value,
        "job_type": job_type_for_consumer(customer.consumer_type),
        "certified": certified,
        "gender": gender,
        "customer_phone_type": phone_type,
        "customer_physical_type": physical_type,
        "town": request.town,
        "address": request.address,
        "instructions": request.instructions,
        "reference": request.reference,
        "by_admin": request.by_admin,
        "created_at": timestamp,
        "updated_at": timestamp,
        "b_created_at": timestamp,
        "will_expire_at": format_ts(will_expire_at(due, created_at)),
    }
    return IntakeResult(
        fields=fields,
        booking_type=booking_type,
        job_for=response_job_for(gender, certified),
    )

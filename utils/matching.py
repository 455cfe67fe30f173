"""
Translator matching engine.

A single predicate, ``is_eligible``, decides whether a translator may see
and accept a job. ``find_eligible_jobs`` and ``find_eligible_translators``
are the two directions of the same relation: both narrow candidates with
store queries, then keep only those for which the predicate holds.
"""

from datetime import timedelta
from typing import AbstractSet, Dict, List, Optional

from db.booking_store import BookingStore
from models.classification import (
    ALL_TRANSLATOR_LEVELS,
    CERTIFICATION_LEVELS,
    JOB_TYPE_TO_TRANSLATOR_TYPE,
    TRANSLATOR_TYPE_TO_JOB_TYPE,
    Certification,
    JobType,
    TranslatorType,
)
from models.errors import create_configuration_error
from models.status import JobStatus
from schemas.records import JobRecord, UserRecord


def translator_type_for_job_type(job_type: Optional[str]) -> TranslatorType:
    """
    Translator type that serves a job type.

    Raises:
        ToolError: CONFIGURATION_ERROR for an unknown job type
    """
    try:
        return JOB_TYPE_TO_TRANSLATOR_TYPE[JobType(job_type)]
    except ValueError as e:
        raise create_configuration_error(f"Unknown job type: {job_type!r}") from e


def job_type_for_translator_type(translator_type: Optional[str]) -> JobType:
    """Job type a translator works on; unknown translator types fall back to unpaid."""
    try:
        return TRANSLATOR_TYPE_TO_JOB_TYPE[TranslatorType(translator_type)]
    except ValueError:
        return JobType.UNPAID


def levels_for_certification(certified: Optional[str]) -> frozenset:
    """
    Translator levels accepted for a job's certification requirement.

    Empty or missing certification accepts every level.

    Raises:
        ToolError: CONFIGURATION_ERROR for an unknown certification value
    """
    if not certified:
        return frozenset(level.value for level in ALL_TRANSLATOR_LEVELS)
    try:
        levels = CERTIFICATION_LEVELS[Certification(certified)]
    except ValueError as e:
        raise create_configuration_error(f"Unknown certification: {certified!r}") from e
    return frozenset(level.value for level in levels)


def _same_town(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()


def is_eligible(
    translator: UserRecord,
    job: JobRecord,
    translator_languages: AbstractSet[int],
    blacklisted_ids: AbstractSet[int],
    customer_city: Optional[str] = None,
) -> bool:
    """
    Check whether a translator may take a job.

    Args:
        translator: Candidate translator
        job: Candidate job
        translator_languages: Language ids the translator is registered for
        blacklisted_ids: Translators barred by the job's customer
        customer_city: Customer profile city, used when the job has no town

    Returns:
        True if every eligibility rule holds

    Raises:
        ToolError: CONFIGURATION_ERROR if the job carries an unknown job type
            or certification value
    """
    translator_type_for_job_type(job.job_type)
    accepted_levels = levels_for_certification(job.certified)

    if not translator.is_translator or translator.status != 1:
        return False
    if job.status != JobStatus.PENDING:
        return False
    if job_type_for_translator_type(translator.translator_type) != job.job_type:
        return False
    if not accepted_levels & translator.translator_levels:
        return False
    if job.gender and translator.gender != job.gender:
        return False
    if translator.id in blacklisted_ids:
        return False
    if job.from_language_id not in translator_languages:
        return False
    if job.is_physical_only and not _same_town(translator.city, job.town or customer_city):
        return False
    return True


def find_eligible_jobs(store: BookingStore, translator: UserRecord) -> List[JobRecord]:
    """
    Pending jobs a translator may accept, sorted by due ascending.

    Args:
        store: Open booking store
        translator: Translator profile

    Returns:
        Eligible jobs (empty if the translator has no languages)
    """
    languages = store.get_translator_languages(translator.id)
    if not languages:
        return []

    job_type = job_type_for_translator_type(translator.translator_type)
    candidates = store.find_jobs(
        order_by="due",
        status=JobStatus.PENDING.value,
        job_type=job_type.value,
        from_language_id=sorted(languages),
    )

    blacklists: Dict[int, set] = {}
    cities: Dict[int, Optional[str]] = {}
    eligible = []
    for job in candidates:
        if job.user_id not in blacklists:
            blacklists[job.user_id] = store.get_blacklisted_translator_ids(job.user_id)
            customer = store.get_user(job.user_id)
            cities[job.user_id] = customer.city if customer else None
        if is_eligible(
            translator, job, languages, blacklists[job.user_id], cities[job.user_id]
        ):
            eligible.append(job)
    return eligible


def find_eligible_translators(
    store: BookingStore, job: JobRecord, exclude_user_id: Optional[int] = None
) -> List[UserRecord]:
    """
    Active translators eligible for a job, in id order.

    Raises:
        ToolError: CONFIGURATION_ERROR for an unknown job type or certification
    """
    translator_type_for_job_type(job.job_type)
    levels_for_certification(job.certified)

    blacklisted = store.get_blacklisted_translator_ids(job.user_id)
    customer = store.get_user(job.user_id)
    customer_city = customer.city if customer else None

    return [
        translator
        for translator in store.find_active_translators(exclude_user_id=exclude_user_id)
        if is_eligible(
            translator,
            job,
            store.get_translator_languages(translator.id),
            blacklisted,
            customer_city,
        )
    ]


def _interval(job: JobRecord):
    start = job.due_at
    return start, start + timedelta(minutes=job.duration or 0)


def is_translator_already_booked(store: BookingStore, translator_id: int, job: JobRecord) -> bool:
    """
    Check whether the translator holds another job overlapping this one.

    Two bookings overlap when their ``[due, due + duration)`` intervals
    intersect, or when they start at the same instant.
    """
    start, end = _interval(job)
    for other in store.find_active_jobs_for_translator(translator_id):
        if other.id == job.id:
            continue
        other_start, other_end = _interval(other)
        if other_start == start or (other_start < end and start < other_end):
            return True
    return False

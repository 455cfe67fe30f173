"""
Classification enums for jobs and users.

Covers job type, certification requirement, translator type and level,
customer consumer category and user role. The lookup tables that relate
them live here too so the matching engine and the booking intake share a
single definition.
"""

from enum import Enum


class UserType(str, Enum):
    """Roles a user record can hold. Customer and translator are disjoint."""

    CUSTOMER = "customer"
    TRANSLATOR = "translator"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


ADMIN_USER_TYPES = frozenset({UserType.ADMIN, UserType.SUPERADMIN})


class JobType(str, Enum):
    PAID = "paid"
    RWS = "rws"
    UNPAID = "unpaid"


class TranslatorType(str, Enum):
    PROFESSIONAL = "professional"
    RWS_TRANSLATOR = "rwstranslator"
    VOLUNTEER = "volunteer"


class ConsumerType(str, Enum):
    PAID = "paid"
    RWS_CONSUMER = "rwsconsumer"
    NGO = "ngo"


class Certification(str, Enum):
    """Certification requirement stored in ``jobs.certified``."""

    NONE = "none"
    NORMAL = "normal"
    YES = "yes"
    BOTH = "both"
    LAW = "law"
    N_LAW = "n_law"
    HEALTH = "health"
    N_HEALTH = "n_health"


class TranslatorLevel(str, Enum):
    CERTIFIED = "Certified"
    CERTIFIED_LAW = "Certified with specialisation in law"
    CERTIFIED_HEALTH = "Certified with specialisation in health care"
    LAYMAN = "Layman"
    READ_TRANSLATION_COURSES = "Read Translation courses"


ALL_TRANSLATOR_LEVELS = frozenset(TranslatorLevel)

JOB_TYPE_TO_TRANSLATOR_TYPE = {
    JobType.PAID: TranslatorType.PROFESSIONAL,
    JobType.RWS: TranslatorType.RWS_TRANSLATOR,
    JobType.UNPAID: TranslatorType.VOLUNTEER,
}

TRANSLATOR_TYPE_TO_JOB_TYPE = {
    translator_type: job_type for job_type, translator_type in JOB_TYPE_TO_TRANSLATOR_TYPE.items()
}

CONSUMER_TYPE_TO_JOB_TYPE = {
    ConsumerType.RWS_CONSUMER: JobType.RWS,
    ConsumerType.NGO: JobType.UNPAID,
    ConsumerType.PAID: JobType.PAID,
}

CERTIFICATION_LEVELS = {
    Certification.NONE: ALL_TRANSLATOR_LEVELS,
    Certification.YES: frozenset(
        {
            TranslatorLevel.CERTIFIED,
            TranslatorLevel.CERTIFIED_LAW,
            TranslatorLevel.CERTIFIED_HEALTH,
        }
    ),
    Certification.LAW: frozenset({TranslatorLevel.CERTIFIED_LAW}),
    Certification.HEALTH: frozenset({TranslatorLevel.CERTIFIED_HEALTH}),
    Certification.NORMAL: frozenset(
        {TranslatorLevel.LAYMAN, TranslatorLevel.READ_TRANSLATION_COURSES}
    ),
}
CERTIFICATION_LEVELS[Certification.BOTH] = CERTIFICATION_LEVELS[Certification.YES]
CERTIFICATION_LEVELS[Certification.N_LAW] = CERTIFICATION_LEVELS[Certification.LAW]
CERTIFICATION_LEVELS[Certification.N_HEALTH] = CERTIFICATION_LEVELS[Certification.HEALTH]

# "job_for" selections accepted at intake.
JOB_FOR_MALE = "male"
JOB_FOR_FEMALE = "female"
JOB_FOR_NORMAL = "normal"
JOB_FOR_CERTIFIED = "certified"
JOB_FOR_CERTIFIED_LAW = "certified_in_law"
JOB_FOR_CERTIFIED_HEALTH = "certified_in_helth"

# Ordered precedence: first rule whose selections are all present wins.
JOB_FOR_CERTIFICATION_PRECEDENCE = (
    ((JOB_FOR_NORMAL, JOB_FOR_CERTIFIED), Certification.BOTH),
    ((JOB_FOR_NORMAL, JOB_FOR_CERTIFIED_LAW), Certification.N_LAW),
    ((JOB_FOR_NORMAL, JOB_FOR_CERTIFIED_HEALTH), Certification.N_HEALTH),
    ((JOB_FOR_NORMAL,), Certification.NORMAL),
    ((JOB_FOR_CERTIFIED,), Certification.YES),
    ((JOB_FOR_CERTIFIED_LAW,), Certification.LAW),
    ((JOB_FOR_CERTIFIED_HEALTH,), Certification.HEALTH),
)

"""
Centralized, type-safe status definitions for the booking lifecycle.

This module is the single source of truth for the status values stored in
the ``jobs`` table. ``JobStatus`` inherits from ``(str, Enum)`` so members
compare equal to plain strings read back from SQLite and serialize naturally
to JSON at operation boundaries.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Enum for statuses used in the 'jobs' database table.

    Canonical transitions (see utils/lifecycle.py for the full table):
        pending   ->  assigned            (translator accepts)
        assigned  ->  started -> completed
        pending | assigned  ->  withdrawbefore24 | withdrawafter24 | timedout
        timedout  ->  pending             (admin reopen)
    """

    PENDING = "pending"
    ASSIGNED = "assigned"
    STARTED = "started"
    COMPLETED = "completed"
    WITHDRAW_BEFORE_24 = "withdrawbefore24"
    WITHDRAW_AFTER_24 = "withdrawafter24"
    TIMEDOUT = "timedout"
    NOT_CARRIED_OUT_CUSTOMER = "not_carried_out_customer"


# Stored values of finished jobs. A timed-out job can still be reopened, so it
# is not listed here.
TERMINAL_STATUSES = frozenset(
    status.value
    for status in (
        JobStatus.COMPLETED,
        JobStatus.WITHDRAW_BEFORE_24,
        JobStatus.WITHDRAW_AFTER_24,
        JobStatus.NOT_CARRIED_OUT_CUSTOMER,
    )
)

"""
Job lifecycle state machine.

Every status change of an existing job goes through this module. Admin
status edits are resolved through ``TRANSITIONS``, an explicit mapping of
``(current status, requested status)`` to a guard and an effect. A pair
that is missing from the table, or whose guard fails, leaves the status
unchanged; that is a no-op, not an error.

The other lifecycle operations (accept, cancel, end, no-show, reopen)
apply their own guards but follow the same shape: store mutations happen
inside the caller's transaction, and notifications are collected as
deferred effects that the caller runs only after the commit.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from db.booking_store import BookingStore
from models.errors import (
    create_conflict_error,
    create_not_found_error,
    create_permission_error,
    create_validation_error,
)
from models.status import TERMINAL_STATUSES, JobStatus
from schemas.lifecycle import UpdateJobRequest
from schemas.records import JobRecord, UserRecord
from utils.datetime_helpers import (
    format_ts,
    hours_between,
    parse_ts,
    session_interval,
    session_time_text,
    will_expire_at,
)
from utils.event_bus import JOB_CANCELED, SESSION_ENDED
from utils.matching import is_translator_already_booked
from utils.notification_dispatcher import customer_recipient, job_to_data

logger = logging.getLogger(__name__)

# Effects receive the job as committed.
Effect = Callable[[JobRecord], None]

TRANSLATOR_CANCEL_TOO_LATE = (
    "Du kan inte avboka en bokning som sker inom 24 timmar genom DigitalTolk. "
    "Vänligen ring på +46 73 75 86 865 och gör din avbokning over telefon. Tack!"
)


@dataclass
class Outcome:
    """Result of a lifecycle operation: the affected job and its pending notifications."""

    job_id: int
    effects: List[Effect] = field(default_factory=list)

    def defer(self, effect: Effect) -> None:
        self.effects.append(effect)


@dataclass
class StatusChange:
    changed: bool
    old_status: str
    new_status: str

    def log_entry(self) -> Dict[str, str]:
        return {"old_status": self.old_status, "new_status": self.new_status}


@dataclass
class TransitionContext:
    """Everything a transition guard or effect may look at or contribute to."""

    store: BookingStore
    services: Any
    job: JobRecord
    customer: UserRecord
    requested_status: str
    now: datetime
    admin_comments: Optional[str] = None
    session_time: Optional[str] = None
    new_translator: Optional[UserRecord] = None
    updates: Dict[str, Any] = field(default_factory=dict)
    effects: List[Effect] = field(default_factory=list)

    @property
    def translator_changed(self) -> bool:
        return self.new_translator is not None

    @property
    def has_comment(self) -> bool:
        return bool(self.admin_comments and self.admin_comments.strip())

    @property
    def language(self) -> str:
        return self.store.get_language_name(self.job.from_language_id)

    def defer(self, effect: Effect) -> None:
        self.effects.append(effect)


@dataclass(frozen=True)
class Transition:
    guard: Callable[[TransitionContext], bool]
    effect: Callable[[TransitionContext], None]


def run_effects(store: BookingStore, job_id: int, effects: List[Effect]) -> None:
    """
    Run deferred notifications against the committed job.

    A failing effect is logged and does not stop the others; the state
    change it belongs to has already been committed.
    """
    if not effects:
        return
    job = store.get_job(job_id)
    if job is None:
        logger.error(f"Cannot run notifications: job {job_id} disappeared")
        return
    for effect in effects:
        try:
            effect(job)
        except Exception as e:
            logger.error(f"Notification for job {job_id} failed: {e}")


def _active_translator(store: BookingStore, job_id: int) -> Optional[UserRecord]:
    assignment = store.get_active_assignment(job_id)
    return store.get_user(assignment.user_id) if assignment else None


# ----------------------------------------------------------------------
# Guards
# ----------------------------------------------------------------------


def _always(ctx: TransitionContext) -> bool:
    return True


def _translator_changed(ctx: TransitionContext) -> bool:
    return ctx.translator_changed


def _comment_if_timedout(ctx: TransitionContext) -> bool:
    return ctx.requested_status != JobStatus.TIMEDOUT.value or ctx.has_comment


def _comment_required(ctx: TransitionContext) -> bool:
    return ctx.has_comment


def _started_guard(ctx: TransitionContext) -> bool:
    if not ctx.has_comment:
        return False
    if ctx.requested_status == JobStatus.COMPLETED.value:
        return bool(ctx.session_time)
    return True


# ----------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------


def _no_effect(ctx: TransitionContext) -> None:
    pass


def _assigned_by_admin(ctx: TransitionContext) -> None:
    dispatcher = ctx.services.dispatcher
    customer = ctx.customer
    translator = ctx.new_translator
    language = ctx.language

    def notify(job: JobRecord) -> None:
        dispatcher.email_job_accepted(job, customer)
        dispatcher.email_new_translator_assigned(job, translator)
        dispatcher.notify_session_start_reminder(customer, job, language)
        dispatcher.notify_session_start_reminder(translator, job, language)

    ctx.defer(notify)


def _status_changed_from_pending(ctx: TransitionContext) -> None:
    dispatcher = ctx.services.dispatcher
    customer = ctx.customer
    ctx.defer(
        lambda job: dispatcher.email_status_changed(
            job, customer, f"Avbokning av bokningsnr: #{job.id}"
        )
    )


def _reopen_from_timedout(ctx: TransitionContext) -> None:
    ctx.updates.update(
        {
            "created_at": format_ts(ctx.now),
            "emailsent": 0,
            "emailsenttovirpal": 0,
            "will_expire_at": format_ts(will_expire_at(ctx.job.due, ctx.now)),
        }
    )
    store = ctx.store
    dispatcher = ctx.services.dispatcher
    customer = ctx.customer
    language = ctx.language

    def notify(job: JobRecord) -> None:
        dispatcher.email_job_reopened(job, customer, language)
        dispatcher.notify_suitable_translators(store, job)

    ctx.defer(notify)


def _accepted_from_timedout(ctx: TransitionContext) -> None:
    dispatcher = ctx.services.dispatcher
    customer = ctx.customer
    ctx.defer(lambda job: dispatcher.email_job_accepted(job, customer))


def _finish_started(ctx: TransitionContext) -> None:
    if ctx.requested_status != JobStatus.COMPLETED.value:
        return
    ctx.updates.update({"end_at": format_ts(ctx.now), "session_time": ctx.session_time})
    text = session_time_text(ctx.session_time)
    dispatcher = ctx.services.dispatcher
    customer = ctx.customer
    translator = _active_translator(ctx.store, ctx.job.id)

    def notify(job: JobRecord) -> None:
        dispatcher.email_session_ended(
            job, customer, text, "faktura", to=customer_recipient(job, customer)
        )
        if translator is not None:
            dispatcher.email_session_ended(job, translator, text, "lön")

    ctx.defer(notify)


def _withdraw_or_timeout_assigned(ctx: TransitionContext) -> None:
    if ctx.requested_status not in (
        JobStatus.WITHDRAW_BEFORE_24.value,
        JobStatus.WITHDRAW_AFTER_24.value,
    ):
        return
    assignment = ctx.store.get_active_assignment(ctx.job.id)
    translator = ctx.store.get_user(assignment.user_id) if assignment else None
    if assignment is not None:
        ctx.store.cancel_assignment(assignment.id, format_ts(ctx.now))

    dispatcher = ctx.services.dispatcher
    customer = ctx.customer

    def notify(job: JobRecord) -> None:
        dispatcher.email_status_changed(
            job, customer, f"Information om avslutad tolkning för bokningsnummer #{job.id}"
        )
        if translator is not None:
            dispatcher.email_job_cancel_translator(job, translator)

    ctx.defer(notify)


_S = JobStatus
_ALL = [status.value for status in JobStatus]

TRANSITIONS: Dict[Tuple[str, str], Transition] = {
    (_S.PENDING.value, _S.ASSIGNED.value): Transition(_translator_changed, _assigned_by_admin),
    **{
        (_S.PENDING.value, target): Transition(_comment_if_timedout, _status_changed_from_pending)
        for target in _ALL
        if target not in (_S.PENDING.value, _S.ASSIGNED.value)
    },
    (_S.TIMEDOUT.value, _S.PENDING.value): Transition(_always, _reopen_from_timedout),
    **{
        (_S.TIMEDOUT.value, target): Transition(_translator_changed, _accepted_from_timedout)
        for target in _ALL
        if target not in (_S.TIMEDOUT.value, _S.PENDING.value)
    },
    **{
        (_S.COMPLETED.value, target): Transition(_comment_if_timedout, _no_effect)
        for target in _ALL
        if target != _S.COMPLETED.value
    },
    **{
        (_S.STARTED.value, target): Transition(_started_guard, _finish_started)
        for target in _ALL
        if target != _S.STARTED.value
    },
    **{
        (_S.ASSIGNED.value, target): Transition(_comment_if_timedout, _withdraw_or_timeout_assigned)
        for target in (
            _S.WITHDRAW_BEFORE_24.value,
            _S.WITHDRAW_AFTER_24.value,
            _S.TIMEDOUT.value,
        )
    },
    (_S.WITHDRAW_AFTER_24.value, _S.TIMEDOUT.value): Transition(_comment_required, _no_effect),
}


def apply_status_change(ctx: TransitionContext) -> StatusChange:
    """
    Resolve a requested status through the transition table.

    On success the new status is added to ``ctx.updates`` and the
    transition's effect has run. Otherwise nothing is touched.
    """
    old_status = ctx.job.status
    new_status = ctx.requested_status
    unchanged = StatusChange(False, old_status, old_status)

    if new_status == old_status:
        return unchanged
    transition = TRANSITIONS.get((old_status, new_status))
    if transition is None or not transition.guard(ctx):
        logger.info(f"Job {ctx.job.id}: status {old_status} -> {new_status} not applied")
        return unchanged

    ctx.updates["status"] = new_status
    transition.effect(ctx)
    return StatusChange(True, old_status, new_status)


# ----------------------------------------------------------------------
# Admin update
# ----------------------------------------------------------------------


def _requested_translator(store: BookingStore, request: UpdateJobRequest) -> Optional[UserRecord]:
    if request.translator_email:
        translator = store.find_user_by_email(request.translator_email)
        if translator is None:
            raise create_not_found_error("Translator", request.translator_email)
    elif request.translator_id is not None:
        translator = store.require_user(request.translator_id, "Translator")
    else:
        return None
    if not translator.is_translator:
        raise create_validation_error(
            f"User {translator.id} is not a translator", field="translator_id"
        )
    return translator


def update_job(
    store: BookingStore,
    services: Any,
    request: UpdateJobRequest,
    actor: UserRecord,
) -> Tuple[List[Dict[str, Any]], Outcome]:
    """
    Apply an admin edit to a job.

    Order of work: translator reassignment, due change, language change,
    status transition, then comment and reference. Change notifications for
    due, translator and language are queued in that order, and only while
    the (possibly new) due time is still ahead.

    Args:
        store: Open booking store
        services: Services bundle (dispatcher, clock, audit logger)
        request: Typed update request
        actor: Admin performing the edit

    Returns:
        (changes, outcome): the audit entries that occurred and the deferred
        notifications

    Raises:
        ToolError: PERMISSION_DENIED for non-admins, NOT_FOUND for unknown
            ids, VALIDATION_ERROR for a non-translator reassignment target
    """
    if not actor.is_admin:
        raise create_permission_error("Only administrators can update bookings")

    job = store.require_job(request.job_id)
    customer = store.require_user(job.user_id, "Customer")
    now = services.clock()
    timestamp = format_ts(now)
    outcome = Outcome(job.id)
    changes: List[Dict[str, Any]] = []
    updates: Dict[str, Any] = {}

    # Reassignment: the old row is closed before the new one exists.
    current = store.get_current_assignment(job.id)
    old_translator = store.get_user(current.user_id) if current else None
    new_translator = _requested_translator(store, request)
    if new_translator is not None and (current is None or current.user_id != new_translator.id):
        if current is not None:
            store.cancel_assignment(current.id, timestamp)
        store.create_assignment(
            job_id=job.id,
            user_id=new_translator.id,
            created_at=timestamp,
            will_expire_at=current.will_expire_at if current else None,
        )
        changes.append(
            {
                "old_translator": old_translator.email if old_translator else None,
                "new_translator": new_translator.email,
            }
        )
    else:
        new_translator = None

    old_due = None
    if request.due is not None:
        new_due = format_ts(parse_ts(request.due))
        if new_due != job.due:
            changes.append({"old_due": job.due, "new_due": new_due})
            old_due = job.due
            updates["due"] = new_due

    old_lang = None
    if request.from_language_id is not None and request.from_language_id != job.from_language_id:
        old_lang = store.get_language_name(job.from_language_id)
        changes.append(
            {"old_lang": old_lang, "new_lang": store.get_language_name(request.from_language_id)}
        )
        updates["from_language_id"] = request.from_language_id

    ctx = TransitionContext(
        store=store,
        services=services,
        job=job.model_copy(update=updates),
        customer=customer,
        requested_status=request.status or job.status,
        now=now,
        admin_comments=request.admin_comments,
        session_time=request.session_time,
        new_translator=new_translator,
    )
    status_change = apply_status_change(ctx)
    if status_change.changed:
        changes.append(status_change.log_entry())
    updates.update(ctx.updates)
    outcome.effects.extend(ctx.effects)

    if request.admin_comments is not None:
        updates["admin_comments"] = request.admin_comments
    if request.reference is not None:
        updates["reference"] = request.reference
    if updates or changes:
        updates["updated_at"] = timestamp
        store.update_job(job.id, updates)

    if parse_ts(updates.get("due", job.due)) > now:
        dispatcher = services.dispatcher
        if old_due is not None:
            outcome.defer(
                lambda j: dispatcher.email_changed_date(
                    j, customer, _active_translator(store, j.id), old_due
                )
            )
        if new_translator is not None:
            outcome.defer(
                lambda j: dispatcher.email_changed_translator(
                    j, customer, old_translator, new_translator
                )
            )
        if old_lang is not None:
            outcome.defer(
                lambda j: dispatcher.email_changed_lang(
                    j, customer, _active_translator(store, j.id), old_lang
                )
            )

    services.audit_logger.info(
        f"USER #{actor.id} ({actor.name}) has updated booking #{job.id} with data: {changes}"
    )
    return changes, outcome


# ----------------------------------------------------------------------
# Translator acceptance
# ----------------------------------------------------------------------


def accept_job(
    store: BookingStore, services: Any, job_id: int, translator_id: int
) -> Tuple[JobRecord, str, Outcome]:
    """
    Claim a pending job for a translator.

    Returns:
        (job, language, outcome) for the accepted job

    Raises:
        ToolError: NOT_FOUND, PERMISSION_DENIED for non-translators, CONFLICT
            when the translator is busy at that time or the job was taken
    """
    job = store.require_job(job_id)
    translator = store.require_user(translator_id, "Translator")
    if not translator.is_translator:
        raise create_permission_error("Only translators can accept bookings")

    language = store.get_language_name(job.from_language_id)
    if is_translator_already_booked(store, translator.id, job):
        raise create_conflict_error(
            f"Du har redan en bokning den tiden {job.due}. Du har inte fått denna tolkning"
        )

    if not store.claim_job(job.id, translator.id, format_ts(services.clock())):
        raise create_conflict_error(
            f"Denna {language}tolkning {job.duration}min {job.due} har redan accepterats "
            "av annan tolk. Du har inte fått denna tolkning"
        )

    customer = store.require_user(job.user_id, "Customer")
    dispatcher = services.dispatcher
    outcome = Outcome(job.id)

    def notify(committed: JobRecord) -> None:
        dispatcher.email_job_accepted(committed, customer)
        dispatcher.notify_job_accepted(committed, customer, language)

    outcome.defer(notify)
    return store.require_job(job.id), language, outcome


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------


def cancel_job(store: BookingStore, services: Any, job_id: int, actor_id: int) -> Outcome:
    """
    Cancel a booking on behalf of its customer or its assigned translator.

    A customer withdrawal becomes ``withdrawbefore24`` when the booking is
    still at least 24 hours away, otherwise ``withdrawafter24``. A
    translator may hand a booking back more than 24 hours ahead; it returns
    to ``pending`` and is advertised again.

    Raises:
        ToolError: PERMISSION_DENIED for unrelated actors, CONFLICT when the
            job is no longer cancellable or a translator cancels too late
    """
    job = store.require_job(job_id)
    actor = store.require_user(actor_id)
    if job.status not in (JobStatus.PENDING.value, JobStatus.ASSIGNED.value):
        raise create_conflict_error(f"Job {job.id} cannot be cancelled in status {job.status}")

    now = services.clock()
    timestamp = format_ts(now)
    assignment = store.get_active_assignment(job.id)
    language = store.get_language_name(job.from_language_id)
    dispatcher = services.dispatcher
    outcome = Outcome(job.id)

    if actor.is_customer:
        if actor.id != job.user_id:
            raise create_permission_error("Customers can only cancel their own bookings")
        if hours_between(now, job.due_at) >= 24:
            status = JobStatus.WITHDRAW_BEFORE_24.value
        else:
            status = JobStatus.WITHDRAW_AFTER_24.value
        store.update_job(
            job.id, {"status": status, "withdraw_at": timestamp, "updated_at": timestamp}
        )
        translator = store.get_user(assignment.user_id) if assignment else None
        events = services.events

        def notify_withdrawn(committed: JobRecord) -> None:
            events.publish(JOB_CANCELED, job_to_data(committed, actor))
            if translator is not None:
                dispatcher.notify_job_cancelled_to_translator(committed, translator, language)

        outcome.defer(notify_withdrawn)
        return outcome

    if not actor.is_translator or assignment is None or assignment.user_id != actor.id:
        raise create_permission_error("Only the assigned translator can cancel this booking")

    if hours_between(now, job.due_at) <= 24:
        raise create_conflict_error(TRANSLATOR_CANCEL_TOO_LATE)

    store.cancel_assignment(assignment.id, timestamp)
    store.update_job(
        job.id,
        {
            "status": JobStatus.PENDING.value,
            "created_at": timestamp,
            "updated_at": timestamp,
            "will_expire_at": format_ts(will_expire_at(job.due, now)),
        },
    )
    customer = store.require_user(job.user_id, "Customer")

    def notify_released(committed: JobRecord) -> None:
        dispatcher.notify_job_cancelled_to_customer(committed, customer, language)
        dispatcher.notify_suitable_translators(store, committed)

    outcome.defer(notify_released)
    return outcome


# ----------------------------------------------------------------------
# Completion
# ----------------------------------------------------------------------


def end_job(store: BookingStore, services: Any, job_id: int, actor_id: int) -> Outcome:
    """
    Close a started session.

    Jobs that are not ``started`` are left alone (no-op success). The
    session-ended event names the party that did not end the call.
    """
    job = store.require_job(job_id)
    outcome = Outcome(job.id)
    if job.status != JobStatus.STARTED.value:
        return outcome

    assignment = store.get_active_assignment(job.id)
    if assignment is None:
        raise create_conflict_error(f"Job {job.id} has no active translator assignment")
    if actor_id not in (job.user_id, assignment.user_id):
        actor = store.require_user(actor_id)
        if not actor.is_admin:
            raise create_permission_error("Only the booking's parties can end the session")

    now = services.clock()
    timestamp = format_ts(now)
    session_time = session_interval(job.due, now)
    store.update_job(
        job.id,
        {
            "status": JobStatus.COMPLETED.value,
            "end_at": timestamp,
            "session_time": session_time,
            "updated_at": timestamp,
        },
    )
    store.complete_assignment(assignment.id, timestamp, actor_id)

    customer = store.require_user(job.user_id, "Customer")
    translator = store.require_user(assignment.user_id, "Translator")
    notified_user_id = translator.id if actor_id == job.user_id else customer.id
    text = session_time_text(session_time)
    dispatcher = services.dispatcher
    events = services.events

    def notify(committed: JobRecord) -> None:
        dispatcher.email_session_ended(
            committed, customer, text, "faktura", to=customer_recipient(committed, customer)
        )
        events.publish(
            SESSION_ENDED,
            {
                "job_id": committed.id,
                "ended_by": actor_id,
                "notified_user_id": notified_user_id,
                "session_time": session_time,
            },
        )
        dispatcher.email_session_ended(committed, translator, text, "lön")

    outcome.defer(notify)
    return outcome


def customer_not_call(store: BookingStore, services: Any, job_id: int) -> Outcome:
    """
    Record that the customer never showed up.

    The translator's assignment is closed and credited to the translator.

    Raises:
        ToolError: CONFLICT if the job is not in progress
    """
    job = store.require_job(job_id)
    assignment = store.get_active_assignment(job.id)
    if job.status not in (JobStatus.ASSIGNED.value, JobStatus.STARTED.value) or assignment is None:
        raise create_conflict_error(f"Job {job.id} is not in progress (status {job.status})")

    now = services.clock()
    timestamp = format_ts(now)
    store.update_job(
        job.id,
        {
            "status": JobStatus.NOT_CARRIED_OUT_CUSTOMER.value,
            "end_at": timestamp,
            "session_time": session_interval(job.due, now),
            "updated_at": timestamp,
        },
    )
    store.complete_assignment(assignment.id, timestamp, assignment.user_id)
    return Outcome(job.id)


# ----------------------------------------------------------------------
# Reopen
# ----------------------------------------------------------------------


def reopen_job(store: BookingStore, services: Any, job_id: int, translator_id: int) -> Outcome:
    """
    Put a job back on the market.

    A timed-out job is copied into a new pending job; any other open job is
    reset to pending in place. Lingering assignments on the original job
    are cancelled and a cancelled placeholder assignment is recorded for
    the given translator. Suitable translators are notified about the
    (new) pending job.

    Returns:
        Outcome whose ``job_id`` is the pending job

    Raises:
        ToolError: NOT_FOUND for unknown ids, CONFLICT for finished jobs
    """
    job = store.require_job(job_id)
    translator = store.require_user(translator_id, "Translator")
    now = services.clock()
    timestamp = format_ts(now)
    expires = format_ts(will_expire_at(job.due, now))

    if job.status in TERMINAL_STATUSES:
        raise create_conflict_error(f"Job {job.id} cannot be reopened in status {job.status}")

    if job.status == JobStatus.TIMEDOUT.value:
        fields = job.model_dump(exclude={"id"})
        fields.update(
            {
                "status": JobStatus.PENDING.value,
                "created_at": timestamp,
                "updated_at": timestamp,
                "will_expire_at": expires,
                "cust_16_hour_email": 0,
                "cust_48_hour_email": 0,
                "admin_comments": f"This booking is a reopening of booking #{job.id}",
            }
        )
        pending_job_id = store.create_job(fields)
    else:
        store.update_job(
            job.id,
            {
                "status": JobStatus.PENDING.value,
                "created_at": timestamp,
                "updated_at": timestamp,
                "will_expire_at": expires,
            },
        )
        pending_job_id = job.id

    store.cancel_active_assignments(job.id, timestamp)
    store.create_assignment(
        job_id=job.id,
        user_id=translator.id,
        created_at=timestamp,
        cancel_at=timestamp,
        will_expire_at=expires,
    )

    dispatcher = services.dispatcher
    outcome = Outcome(pending_job_id)
    outcome.defer(lambda committed: dispatcher.notify_suitable_translators(store, committed))
    return outcome

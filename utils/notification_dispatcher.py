"""
Notification dispatcher for booking events.

Builds channel payloads (push tags and texts, SMS bodies, email template
data) and hands them to injected gateways. Every send is best-effort: a
failing push or email is logged and the caller carries on. SMS fan-out
reports how many messages actually went out.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from db.booking_store import BookingStore
from schemas.notifications import EmailMessage, PushNotification, SmsMessage
from schemas.records import JobRecord, UserRecord
from utils.datetime_helpers import (
    convert_to_hours_mins,
    is_night_time,
    next_business_time,
    now as current_time,
    to_send_after_string,
)
from utils.matching import find_eligible_translators

SUITABLE_JOB = "suitable_job"
JOB_ACCEPTED = "job_accepted"
JOB_CANCELLED = "job_cancelled"
JOB_EXPIRED = "job_expired"
SESSION_START_REMIND = "session_start_remind"

SESSION_ENDED_SUBJECT = "Information om avslutad tolkning för bokningsnummer #{job_id}"
ACCEPTED_SUBJECT = "Bekräftelse - tolk har accepterat er bokning (bokning # {job_id})"

GENDER_LABELS = {"male": "Man", "female": "Kvinna"}
CERTIFICATION_LABELS = {
    "both": ["Godkänd tolk", "Auktoriserad"],
    "yes": ["Auktoriserad"],
    "n_health": ["Sjukvårdstolk"],
    "law": ["Rätttstolk"],
    "n_law": ["Rätttstolk"],
}

PHONE_JOB_SMS = (
    "Ny telefontolkning {date} kl {time}, {duration}. "
    "Bokningsnr: #{job_id}. Öppna appen för att acceptera uppdraget."
)
PHYSICAL_JOB_SMS = (
    "Ny platstolkning i {city} {date} kl {time}, {duration}. "
    "Bokningsnr: #{job_id}. Öppna appen för att acceptera uppdraget."
)


def job_for_labels(job: JobRecord) -> List[str]:
    """Display labels for a job's gender and certification requirements."""
    labels = []
    if job.gender:
        labels.append(GENDER_LABELS.get(job.gender, job.gender))
    if job.certified:
        labels.extend(CERTIFICATION_LABELS.get(job.certified, [job.certified]))
    return labels


def job_to_data(job: JobRecord, customer: Optional[UserRecord] = None) -> Dict[str, Any]:
    """
    Event and push data view of a job.

    Args:
        job: Job record
        customer: Job owner, used for ``customer_type``

    Returns:
        Flat dictionary with due date/time split and ``job_for`` labels
    """
    due_date, _, due_time = job.due.partition(" ")
    return {
        "job_id": job.id,
        "from_language_id": job.from_language_id,
        "immediate": job.immediate,
        "duration": job.duration,
        "status": job.status,
        "gender": job.gender,
        "certified": job.certified,
        "due": job.due,
        "job_type": job.job_type,
        "customer_phone_type": job.customer_phone_type,
        "customer_physical_type": job.customer_physical_type,
        "customer_town": job.town,
        "customer_type": customer.customer_type if customer else None,
        "due_date": due_date,
        "due_time": due_time,
        "job_for": job_for_labels(job),
    }


def customer_recipient(job: JobRecord, customer: UserRecord) -> str:
    """Booking contact address, falling back to the customer's account email."""
    return job.user_email or customer.email


def _user_summary(user: Optional[UserRecord]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def interleave_tags(users: Iterable[UserRecord]) -> List[Dict[str, str]]:
    """
    Tag filter matching any of the given users by email.

    Equality predicates are separated by ``{"operator": "OR"}`` entries.
    """
    tags: List[Dict[str, str]] = []
    for user in users:
        if tags:
            tags.append({"operator": "OR"})
        tags.append({"key": "email", "relation": "=", "value": user.email.lower()})
    return tags


def push_sounds(notification_type: str, immediate: str) -> tuple:
    """(android_sound, ios_sound) for a notification type."""
    if notification_type != SUITABLE_JOB:
        return "default", "default"
    if immediate == "no":
        return "normal_booking", "normal_booking.mp3"
    return "emergency_booking", "emergency_booking.mp3"


@dataclass
class DispatchResult:
    """Recipients of one suitable-translator fan-out, split by delivery timing."""

    job_id: int
    immediate_user_ids: List[int] = field(default_factory=list)
    delayed_user_ids: List[int] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return len(self.immediate_user_ids) + len(self.delayed_user_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "immediate_user_ids": self.immediate_user_ids,
            "delayed_user_ids": self.delayed_user_ids,
            "recipient_count": self.recipient_count,
        }


class NotificationDispatcher:
    """
    Fan booking notifications out over push, SMS and email.

    Gateways are injected: anything with a ``send`` method taking the
    matching payload schema works, which is how tests run without a network.
    """

    def __init__(
        self,
        push_gateway,
        sms_gateway,
        email_sender,
        night_start_hour: int = 22,
        night_end_hour: int = 6,
        timezone_offset_hours: float = 1.0,
        push_title: str = "DigitalTolk",
        sms_sender: str = "",
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = current_time,
    ):
        self.push_gateway = push_gateway
        self.sms_gateway = sms_gateway
        self.email_sender = email_sender
        self.night_start_hour = night_start_hour
        self.night_end_hour = night_end_hour
        self.timezone_offset_hours = timezone_offset_hours
        self.push_title = push_title
        self.sms_sender = sms_sender
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

    # ------------------------------------------------------------------
    # Delivery policy
    # ------------------------------------------------------------------

    def is_need_to_send_push(self, user: UserRecord) -> bool:
        return user.not_get_notification != "yes"

    def is_need_to_delay_push(self, user: UserRecord, moment: Optional[datetime] = None) -> bool:
        """True inside the night window for users who opted out of night pushes."""
        moment = moment or self.clock()
        if not is_night_time(moment, self.night_start_hour, self.night_end_hour):
            return False
        return user.not_get_nighttime == "yes"

    def next_send_after(self, moment: Optional[datetime] = None) -> str:
        """``send_after`` value for a delayed push: the end of the night window."""
        moment = moment or self.clock()
        return to_send_after_string(
            next_business_time(moment, self.night_end_hour), self.timezone_offset_hours
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def send_push_to_users(
        self,
        users: List[UserRecord],
        job_id: int,
        data: Dict[str, Any],
        text: str,
        notification_type: str,
        delay: bool = False,
    ) -> bool:
        """
        Send one push addressed to all given users.

        Returns:
            True if the gateway accepted the request, False on failure or
            when there is nobody to send to
        """
        if not users:
            return False

        android_sound, ios_sound = push_sounds(notification_type, data.get("immediate", "no"))
        payload_data = dict(data, job_id=job_id, notification_type=notification_type)
        notification = PushNotification(
            job_id=job_id,
            notification_type=notification_type,
            tags=interleave_tags(users),
            title=self.push_title,
            contents={"en": text},
            data=payload_data,
            android_sound=android_sound,
            ios_sound=ios_sound,
            send_after=self.next_send_after() if delay else None,
        )

        recipients = [user.email for user in users]
        self.logger.info(
            f"Push send for job {job_id}: type={notification_type} delay={delay} "
            f"recipients={recipients} contents={notification.contents}"
        )
        try:
            response = self.push_gateway.send(notification)
        except Exception as e:
            self.logger.error(f"Push send for job {job_id} failed: {e}")
            return False

        self.logger.info(f"Push send for job {job_id} answer: {response}")
        return True

    def push_to_user(
        self,
        user: UserRecord,
        job: JobRecord,
        text: str,
        notification_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Push to one user, honouring their opt-out and night-time preferences."""
        if not self.is_need_to_send_push(user):
            return False
        return self.send_push_to_users(
            [user],
            job.id,
            data or {},
            text,
            notification_type,
            delay=self.is_need_to_delay_push(user),
        )

    def notify_suitable_translators(
        self,
        store: BookingStore,
        job: JobRecord,
        exclude_user_id: Optional[int] = None,
    ) -> DispatchResult:
        """
        Push a new-booking notification to every eligible translator.

        Args:
            store: Open booking store
            job: The job to advertise
            exclude_user_id: Translator to leave out (None excludes nobody)

        Returns:
            DispatchResult with immediate and delayed recipient ids

        Raises:
            ToolError: CONFIGURATION_ERROR if the job cannot be matched
        """
        result = DispatchResult(job_id=job.id)
        immediate_group: List[UserRecord] = []
        delayed_group: List[UserRecord] = []

        for translator in find_eligible_translators(store, job, exclude_user_id):
            if not self.is_need_to_send_push(translator):
                continue
            if job.is_immediate and translator.not_get_emergency == "yes":
                continue
            if self.is_need_to_delay_push(translator):
                delayed_group.append(translator)
            else:
                immediate_group.append(translator)

        language = store.get_language_name(job.from_language_id)
        data = job_to_data(job, store.get_user(job.user_id))
        data["language"] = language
        if job.is_immediate:
            text = f"Ny akutbokning för {language} tolk {job.duration}min"
        else:
            text = f"Ny bokning för {language} tolk {job.duration}min {job.due}"

        self.logger.info(
            f"Push send for job {job.id}: immediate={[u.email for u in immediate_group]} "
            f"delayed={[u.email for u in delayed_group]} text={text!r}"
        )
        self.send_push_to_users(immediate_group, job.id, data, text, SUITABLE_JOB, delay=False)
        self.send_push_to_users(delayed_group, job.id, data, text, SUITABLE_JOB, delay=True)

        result.immediate_user_ids = [u.id for u in immediate_group]
        result.delayed_user_ids = [u.id for u in delayed_group]
        return result

    def notify_job_accepted(self, job: JobRecord, customer: UserRecord, language: str) -> bool:
        text = (
            f"Din bokning för {language} translators, {job.duration}min, {job.due} har "
            "accepterats av en tolk. Vänligen öppna appen för att se detaljer om tolken."
        )
        return self.push_to_user(customer, job, text, JOB_ACCEPTED)

    def notify_job_cancelled_to_translator(
        self, job: JobRecord, translator: UserRecord, language: str
    ) -> bool:
        text = (
            f"Kunden har avbokat bokningen för {language}tolk, {job.duration}min, {job.due}. "
            "Var god och kolla dina tidigare bokningar för detaljer."
        )
        return self.push_to_user(translator, job, text, JOB_CANCELLED)

    def notify_job_cancelled_to_customer(
        self, job: JobRecord, customer: UserRecord, language: str
    ) -> bool:
        text = (
            f"Er {language}tolk, {job.duration}min {job.due}, har avbokat tolkningen. "
            "Vi letar nu efter en ny tolk som kan ersätta denne. Tack."
        )
        return self.push_to_user(customer, job, text, JOB_CANCELLED)

    def notify_session_start_reminder(
        self, user: UserRecord, job: JobRecord, language: str
    ) -> bool:
        due_date, _, due_time = job.due.partition(" ")
        if job.customer_physical_type == "yes":
            where = f"på plats i {job.town}"
        else:
            where = "telefon"
        text = (
            f"Detta är en påminnelse om att du har en {language}tolkning ({where}) kl {due_time} "
            f"på {due_date} som vara i {job.duration} min. Lycka till och kom ihåg att ge "
            "feedback efter utförd tolkning!"
        )
        sent = self.push_to_user(user, job, text, SESSION_START_REMIND)
        if sent:
            self.logger.info(f"Session start reminder sent for job {job.id} to user {user.id}")
        return sent

    def notify_job_expired(self, job: JobRecord, user: UserRecord, language: str) -> bool:
        text = (
            f"Tyvärr har ingen tolk accepterat er bokning: ({language}, {job.duration}min, "
            f"{job.due}). Vänligen pröva boka om tiden."
        )
        return self.push_to_user(user, job, text, JOB_EXPIRED)

    # ------------------------------------------------------------------
    # SMS
    # ------------------------------------------------------------------

    def build_sms_text(self, job: JobRecord, city: Optional[str]) -> Optional[str]:
        """SMS body for a job, or None when it is neither a phone nor an on-site job."""
        due = job.due_at
        values = {
            "date": due.strftime("%d.%m.%Y"),
            "time": due.strftime("%H:%M"),
            "duration": convert_to_hours_mins(job.duration or 0),
            "job_id": job.id,
            "city": city or "",
        }
        if job.customer_physical_type == "yes":
            return PHYSICAL_JOB_SMS.format(**values)
        if job.customer_phone_type == "yes":
            return PHONE_JOB_SMS.format(**values)
        return None

    def send_sms_to_eligible_translators(self, store: BookingStore, job: JobRecord) -> int:
        """
        Text every eligible translator about a job.

        Returns:
            Number of SMS the gateway reported as sent
        """
        translators = find_eligible_translators(store, job)
        customer = store.get_user(job.user_id)
        city = job.town or (customer.city if customer else None)
        message = self.build_sms_text(job, city)
        if message is None:
            self.logger.warning(f"No SMS text for job {job.id}: no delivery type set")
            return 0

        self.logger.info(f"SMS for job {job.id}: {message}")
        sent = 0
        for translator in translators:
            if not translator.mobile:
                self.logger.info(f"Skipping SMS to {translator.email}: no mobile number")
                continue
            try:
                result = self.sms_gateway.send(
                    SmsMessage(sender=self.sms_sender, to=translator.mobile, body=message)
                )
            except Exception as e:
                self.logger.error(f"Send SMS to {translator.email} failed: {e}")
                continue
            self.logger.info(
                f"Send SMS to {translator.email} ({translator.mobile}), status: {result}"
            )
            if result.success:
                sent += 1
        return sent

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    def send_email(
        self,
        to: str,
        name: Optional[str],
        subject: str,
        template: str,
        data: Dict[str, Any],
    ) -> bool:
        """Send one templated email; failures are logged and reported as False."""
        message = EmailMessage(to=to, name=name, subject=subject, template=template, data=data)
        self.logger.info(f"Email {template} to {to}: {subject}")
        try:
            self.email_sender.send(message)
        except Exception as e:
            self.logger.error(f"Email {template} to {to} failed: {e}")
            return False
        return True

    def _email_data(self, user: Optional[UserRecord], job: JobRecord, **extra: Any) -> Dict:
        return dict({"user": _user_summary(user), "job": job.model_dump()}, **extra)

    def email_job_created(self, job: JobRecord, customer: UserRecord) -> bool:
        return self.send_email(
            customer_recipient(job, customer),
            customer.name,
            f"Vi har mottagit er tolkbokning. Bokningsnr: #{job.id}",
            "job-created",
            self._email_data(customer, job),
        )

    def email_job_accepted(self, job: JobRecord, customer: UserRecord) -> bool:
        return self.send_email(
            customer_recipient(job, customer),
            customer.name,
            ACCEPTED_SUBJECT.format(job_id=job.id),
            "job-accepted",
            self._email_data(customer, job),
        )

    def email_new_translator_assigned(self, job: JobRecord, translator: UserRecord) -> bool:
        return self.send_email(
            translator.email,
            translator.name,
            ACCEPTED_SUBJECT.format(job_id=job.id),
            "job-changed-translator-new-translator",
            self._email_data(translator, job),
        )

    def email_status_changed(self, job: JobRecord, customer: UserRecord, subject: str) -> bool:
        return self.send_email(
            customer_recipient(job, customer),
            customer.name,
            subject,
            "status-changed-from-pending-or-assigned-customer",
            self._email_data(customer, job),
        )

    def email_job_cancel_translator(self, job: JobRecord, translator: UserRecord) -> bool:
        return self.send_email(
            translator.email,
            translator.name,
            f"Information om avslutad tolkning för bokningsnummer # {job.id}",
            "job-cancel-translator",
            self._email_data(translator, job),
        )

    def email_job_reopened(self, job: JobRecord, customer: UserRecord, language: str) -> bool:
        return self.send_email(
            customer_recipient(job, customer),
            customer.name,
            f"Vi har nu återöppnat er bokning av {language}tolk för bokning #{job.id}",
            "job-change-status-to-customer",
            self._email_data(customer, job),
        )

    def email_session_ended(
        self,
        job: JobRecord,
        user: UserRecord,
        session_time: str,
        for_text: str,
        to: Optional[str] = None,
    ) -> bool:
        """Session summary; ``for_text`` is "faktura" for customers and "lön" for translators."""
        return self.send_email(
            to or user.email,
            user.name,
            SESSION_ENDED_SUBJECT.format(job_id=job.id),
            "session-ended",
            self._email_data(user, job, session_time=session_time, for_text=for_text),
        )

    def email_changed_translator(
        self,
        job: JobRecord,
        customer: UserRecord,
        old_translator: Optional[UserRecord],
        new_translator: UserRecord,
    ) -> None:
        subject = f"Meddelande om tilldelning av tolkuppdrag för uppdrag # {job.id})"
        self.send_email(
            customer_recipient(job, customer),
            customer.name,
            subject,
            "job-changed-translator-customer",
            self._email_data(customer, job),
        )
        if old_translator is not None:
            self.send_email(
                old_translator.email,
                old_translator.name,
                subject,
                "job-changed-translator-old-translator",
                self._email_data(old_translator, job),
            )
        self.send_email(
            new_translator.email,
            new_translator.name,
            subject,
            "job-changed-translator-new-translator",
            self._email_data(new_translator, job),
        )

    def email_changed_date(
        self,
        job: JobRecord,
        customer: UserRecord,
        translator: Optional[UserRecord],
        old_time: str,
    ) -> None:
        subject = f"Meddelande om ändring av tolkbokning för uppdrag # {job.id}"
        recipients = [(customer_recipient(job, customer), customer)]
        if translator is not None:
            recipients.append((translator.email, translator))
        for address, user in recipients:
            self.send_email(
                address,
                user.name,
                subject,
                "job-changed-date",
                self._email_data(user, job, old_time=old_time),
            )

    def email_changed_lang(
        self,
        job: JobRecord,
        customer: UserRecord,
        translator: Optional[UserRecord],
        old_lang: str,
    ) -> None:
        subject = f"Meddelande om ändring av tolkbokning för uppdrag # {job.id}"
        recipients = [(customer_recipient(job, customer), customer)]
        if translator is not None:
            recipients.append((translator.email, translator))
        for address, user in recipients:
            self.send_email(
                address,
                user.name,
                subject,
                "job-changed-lang",
                self._email_data(user, job, old_lang=old_lang),
            )

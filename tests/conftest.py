"""
Shared fixtures for booking tests.

Provides a seeded temporary SQLite database, recording fakes for the push,
SMS and email gateways, and a services bundle with a pinned clock.
"""

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict

import pytest

from config import Config
from db.booking_store import BookingStore
from schemas.notifications import SmsResult
from utils.datetime_helpers import format_ts
from utils.event_bus import InMemoryEventBus
from utils.services import BookingServices

# A Monday morning, outside the night window.
NOW = datetime(2026, 3, 2, 10, 0, 0)

ARABIC = 1
PERSIAN = 2


class FakePushGateway:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, notification):
        if self.fail:
            raise RuntimeError("push provider down")
        self.sent.append(notification)
        return {"id": f"push-{len(self.sent)}", "recipients": len(notification.tags)}


class FakeSmsGateway:
    def __init__(self, fail_numbers=()):
        self.sent = []
        self.fail_numbers = set(fail_numbers)

    def send(self, message):
        self.sent.append(message)
        if message.to in self.fail_numbers:
            return SmsResult(success=False, status_code=500, detail="rejected")
        return SmsResult(success=True, status_code=200)


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, message):
        if self.fail:
            raise RuntimeError("mail relay down")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"

    def templates(self):
        return [message.template for message in self.sent]


class RecordingEventBus(InMemoryEventBus):
    """Event bus that also keeps every publication for assertions."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, event_name, payload):
        self.published.append((event_name, payload))
        super().publish(event_name, payload)


def make_config() -> Config:
    cfg = Config()
    cfg.night_start_hour = 22
    cfg.night_end_hour = 6
    cfg.timezone_offset_hours = 1.0
    cfg.immediate_lead_minutes = 5
    cfg.push_title = "DigitalTolk"
    cfg.sms_number = "+46700000000"
    return cfg


def make_services(clock_at: datetime = NOW, push=None, sms=None, mailer=None) -> BookingServices:
    """Services bundle with recording fakes and a fixed clock."""
    return BookingServices(
        config=make_config(),
        push=push or FakePushGateway(),
        sms=sms or FakeSmsGateway(),
        mailer=mailer or FakeMailer(),
        events=RecordingEventBus(),
        clock=lambda: clock_at,
    )


@dataclass
class Seed:
    """Ids of the users seeded into the temporary database."""

    db_path: str
    customer_id: int
    other_customer_id: int
    admin_id: int
    certified_translator_id: int
    layman_translator_id: int
    volunteer_translator_id: int


def job_fields(customer_id: int, **overrides: Any) -> Dict[str, Any]:
    """Column values for a pending, paid, phone job due 48 hours after NOW."""
    fields = {
        "user_id": customer_id,
        "from_language_id": ARABIC,
        "immediate": "no",
        "due": format_ts(NOW + timedelta(hours=48)),
        "duration": 60,
        "status": "pending",
        "job_type": "paid",
        "customer_phone_type": "yes",
        "customer_physical_type": "no",
        "created_at": format_ts(NOW),
        "updated_at": format_ts(NOW),
    }
    fields.update(overrides)
    return fields


def insert_job(db_path: str, customer_id: int, **overrides: Any) -> int:
    with BookingStore(db_path) as store:
        job_id = store.create_job(job_fields(customer_id, **overrides))
        store.commit()
    return job_id


def assign(db_path: str, job_id: int, translator_id: int, status: str = "assigned") -> int:
    """Put a job into ``status`` with an active assignment for the translator."""
    with BookingStore(db_path) as store:
        assignment_id = store.create_assignment(
            job_id=job_id, user_id=translator_id, created_at=format_ts(NOW)
        )
        store.update_job(job_id, {"status": status})
        store.commit()
    return assignment_id


def _translator(email: str, **overrides: Any) -> Dict[str, Any]:
    fields = {
        "name": email.split("@")[0],
        "email": email,
        "user_type": "translator",
        "status": 1,
        "translator_type": "professional",
        "translator_level": "Certified",
        "gender": "female",
        "city": "Stockholm",
        "mobile": "+46701111111",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def seeded_db():
    """Temporary database with languages, customers, an admin and three translators."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    with BookingStore(path) as store:
        store.ensure_schema()
        store.create_language("Arabiska", ARABIC)
        store.create_language("Persiska", PERSIAN)

        customer_id = store.create_user(
            {
                "name": "Kund AB",
                "email": "customer@example.com",
                "user_type": "customer",
                "consumer_type": "paid",
                "customer_type": "company",
                "city": "Stockholm",
                "address": "Storgatan 1",
                "instructions": "Ring på dörren",
            }
        )
        other_customer_id = store.create_user(
            {
                "name": "Annan Kund",
                "email": "other@example.com",
                "user_type": "customer",
                "consumer_type": "ngo",
            }
        )
        admin_id = store.create_user(
            {"name": "Admin", "email": "admin@example.com", "user_type": "admin"}
        )
        certified_id = store.create_user(_translator("certified@example.com"))
        layman_id = store.create_user(
            _translator(
                "layman@example.com",
                translator_level="Layman",
                gender="male",
                city="Göteborg",
                mobile=None,
            )
        )
        volunteer_id = store.create_user(
            _translator("volunteer@example.com", translator_type="volunteer")
        )
        for translator_id in (certified_id, layman_id, volunteer_id):
            store.add_translator_language(translator_id, ARABIC)
        store.commit()

    yield Seed(
        db_path=path,
        customer_id=customer_id,
        other_customer_id=other_customer_id,
        admin_id=admin_id,
        certified_translator_id=certified_id,
        layman_translator_id=layman_id,
        volunteer_translator_id=volunteer_id,
    )

    try:
        os.unlink(path)
    except Exception:
        pass


@pytest.fixture
def services():
    return make_services()

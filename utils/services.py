"""
Collaborators shared by the booking operations.

Operations receive a ``BookingServices`` bundle instead of reaching for
gateways or the clock directly. The default bundle is built lazily from
the global configuration; tests pass their own with in-memory fakes.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from config import Config, get_config
from utils.datetime_helpers import now
from utils.email_sender import SesEmailSender
from utils.event_bus import InMemoryEventBus
from utils.notification_dispatcher import NotificationDispatcher
from utils.push_gateway import OneSignalPushGateway
from utils.sms_gateway import HttpSmsGateway

AUDIT_LOGGER_NAME = "booking.audit"


@dataclass
class BookingServices:
    """Gateways, event bus, clock and loggers used by one process."""

    config: Config
    push: Any
    sms: Any
    mailer: Any
    events: Any
    clock: Callable[[], datetime] = now
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("booking"))
    audit_logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger(AUDIT_LOGGER_NAME)
    )
    _dispatcher: Optional[NotificationDispatcher] = field(default=None, init=False, repr=False)

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher(
                push_gateway=self.push,
                sms_gateway=self.sms,
                email_sender=self.mailer,
                night_start_hour=self.config.night_start_hour,
                night_end_hour=self.config.night_end_hour,
                timezone_offset_hours=self.config.timezone_offset_hours,
                push_title=self.config.push_title,
                sms_sender=self.config.sms_number,
                logger=logging.getLogger("booking.notifications"),
                clock=self.clock,
            )
        return self._dispatcher


def build_services(cfg: Optional[Config] = None) -> BookingServices:
    """Build the production bundle: OneSignal push, HTTP SMS, SES email."""
    cfg = cfg or get_config()
    return BookingServices(
        config=cfg,
        push=OneSignalPushGateway(
            app_id=cfg.onesignal_app_id,
            api_key=cfg.onesignal_api_key,
            url=cfg.onesignal_url,
            timeout=cfg.http_timeout_seconds,
        ),
        sms=HttpSmsGateway(
            url=cfg.sms_url,
            api_key=cfg.sms_api_key,
            timeout=cfg.http_timeout_seconds,
        ),
        mailer=SesEmailSender(
            region=cfg.ses_region,
            from_email=cfg.ses_from_email,
            from_name=cfg.ses_from_name,
        ),
        events=InMemoryEventBus(),
    )


_services: Optional[BookingServices] = None
_services_lock = threading.Lock()


def get_services() -> BookingServices:
    """Process-wide services bundle, created once on first use."""
    global _services
    if _services is None:
        with _services_lock:
            if _services is None:
                _services = build_services()
    return _services

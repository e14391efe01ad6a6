"""
Fire-and-forget notifications.

The booking and payment services only ever call ``Notifier.submit``; they
never await delivery. ``BackgroundNotifier`` runs each delivery as its own
asyncio task, so a slow or failing mail backend cannot delay a response or
roll back a committed booking. Delivery failures are logged and counted.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Set

from eventflow.core.logging import get_logger
from eventflow.core.metrics import notification_failures

logger = get_logger(__name__)


class NotificationKind(str, Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    REMINDER_24H = "reminder_24h"
    REMINDER_1H = "reminder_1h"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    booking_id: int
    recipient_email: str
    recipient_name: str
    event_title: str
    event_location: str
    event_date: date
    slot_time: str
    seats_booked: int
    total_price: Optional[Decimal] = None
    payment_id: Optional[str] = None


_SUBJECTS = {
    NotificationKind.PAYMENT_CONFIRMED: "Payment Confirmed - {title}",
    NotificationKind.BOOKING_CANCELLED: "Booking Cancelled - {title}",
    NotificationKind.REMINDER_24H: "Reminder: {title} is tomorrow",
    NotificationKind.REMINDER_1H: "Starting soon: {title}",
}


def render_subject(notification: Notification) -> str:
    return _SUBJECTS[notification.kind].format(title=notification.event_title)


def render_body(notification: Notification) -> str:
    lines = [
        f"Hi {notification.recipient_name},",
        "",
        f"Event: {notification.event_title}",
        f"Location: {notification.event_location}",
        f"Date: {notification.event_date.strftime('%A, %B %d, %Y')}",
        f"Time: {notification.slot_time}",
        f"Seats: {notification.seats_booked}",
        f"Booking: #{notification.booking_id}",
    ]
    if notification.total_price is not None:
        lines.append(f"Total: ${notification.total_price:.2f}")
    if notification.payment_id:
        lines.append(f"Payment reference: {notification.payment_id}")
    return "\n".join(lines)


class EmailSender(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class LoggingEmailSender(EmailSender):
    """Writes the message to the log instead of an SMTP server."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email_sent", to=to, subject=subject, body_chars=len(body))


class Notifier(ABC):
    @abstractmethod
    def submit(self, notification: Notification) -> None:
        """Queue a notification. Must not block and must not raise on delivery errors."""


class BackgroundNotifier(Notifier):
    def __init__(self, sender: Optional[EmailSender] = None):
        self.sender = sender or LoggingEmailSender()
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, notification: Notification) -> None:
        task = asyncio.create_task(self._deliver(notification))
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.sender.send(
                notification.recipient_email,
                render_subject(notification),
                render_body(notification),
            )
            logger.info(
                "notification_delivered",
                kind=notification.kind.value,
                booking_id=notification.booking_id,
            )
        except Exception as e:
            notification_failures.labels(kind=notification.kind.value).inc()
            logger.error(
                "notification_failed",
                kind=notification.kind.value,
                booking_id=notification.booking_id,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass
class RecordingNotifier(Notifier):
    """Keeps submitted notifications in memory instead of delivering them."""

    submitted: list = field(default_factory=list)

    def submit(self, notification: Notification) -> None:
        self.submitted.append(notification)

    def kinds(self) -> list:
        return [n.kind for n in self.submitted]


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Process-wide notifier (FastAPI dependency)."""
    global _notifier
    if _notifier is None:
        _notifier = BackgroundNotifier()
    return _notifier

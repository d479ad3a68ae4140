"""
Outbound customer notifications.
Respects customer contact preferences and delivers through a pluggable sender.
"""
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..models.models import Customer, CustomerPreference, Notification
from ..schemas.common import Channel, NotificationStatus, NotificationType

log = structlog.get_logger(__name__)

DELIVERED_STATUSES = (
    NotificationStatus.sent.value,
    NotificationStatus.delivered.value,
    NotificationStatus.read.value,
)


@dataclass
class DeliveryResult:
    ok: bool
    error: Optional[str] = None


class NotificationSender:
    """Channel gateway. Implementations must not touch the database."""

    def send(self, notification: Notification) -> DeliveryResult:
        raise NotImplementedError


class SimulatedSender(NotificationSender):
    """Logs the message and reports success with a fixed probability."""

    def __init__(self, success_rate: Optional[float] = None, rng: Optional[random.Random] = None):
        self.success_rate = settings.notification_success_rate if success_rate is None else success_rate
        self.rng = rng or random.Random()

    def send(self, notification: Notification) -> DeliveryResult:
        log.info(
            "notification_simulated",
            channel=notification.channel,
            recipient=notification.recipient,
            type=notification.type,
            message=notification.message,
        )
        if self.rng.random() < self.success_rate:
            return DeliveryResult(ok=True)
        return DeliveryResult(ok=False, error=f"Simulated {notification.channel} delivery failure")


class FakeSender(NotificationSender):
    """Records every message; used by tests and local runs."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    def send(self, notification: Notification) -> DeliveryResult:
        self.sent.append({
            "channel": notification.channel,
            "recipient": notification.recipient,
            "type": notification.type,
            "message": notification.message,
        })
        if self.fail:
            return DeliveryResult(ok=False, error="Forced failure")
        return DeliveryResult(ok=True)


def build_sender(kind: Optional[str] = None) -> NotificationSender:
    kind = (kind or settings.notification_sender).lower()
    if kind == "fake":
        return FakeSender()
    if kind == "simulated":
        return SimulatedSender()
    raise ValueError(f"Unknown notification sender '{kind}'")


_sender: Optional[NotificationSender] = None


def get_sender() -> NotificationSender:
    """FastAPI dependency; tests override it with a FakeSender."""
    global _sender
    if _sender is None:
        _sender = build_sender()
    return _sender


def recipient_for(customer: Customer, channel: Channel) -> str:
    if channel == Channel.email:
        if not customer.email:
            raise ValidationError(f"Customer {customer.name} has no e-mail address")
        return customer.email
    if not customer.phone:
        raise ValidationError(f"Customer {customer.name} has no phone number")
    return customer.phone


def is_allowed(db: Session, customer_id: int, notification_type: NotificationType) -> bool:
    """
    Check the customer's opt-ins for the notification type.

    Args:
        db: Database session
        customer_id: Customer to notify
        notification_type: REMINDER, CAMPAIGN and SURVEY honour opt-outs; other types always pass

    Returns:
        True if the notification may be sent
    """
    pref = db.query(CustomerPreference).filter(CustomerPreference.customer_id == customer_id).first()
    if not pref:
        return True
    if notification_type == NotificationType.reminder:
        return bool(pref.receive_reminders)
    if notification_type == NotificationType.campaign:
        return bool(pref.receive_promotions)
    if notification_type == NotificationType.survey:
        return bool(pref.receive_surveys)
    return True


def deliver(db: Session, sender: NotificationSender, notification: Notification) -> Notification:
    """Hand the notification to the sender and record the outcome on the row."""
    notification.attempts = (notification.attempts or 0) + 1
    try:
        result = sender.send(notification)
    except Exception as exc:
        log.exception("notification_sender_failed", notification_id=notification.id)
        result = DeliveryResult(ok=False, error=str(exc))
    if result.ok:
        notification.status = NotificationStatus.sent.value
        notification.sent_at = datetime.utcnow()
        notification.error_message = None
    else:
        notification.status = NotificationStatus.error.value
        notification.error_message = result.error
    db.flush()
    log.info(
        "notification_delivered" if result.ok else "notification_failed",
        notification_id=notification.id,
        channel=notification.channel,
        attempts=notification.attempts,
        error=result.error,
    )
    return notification


def notify(
    db: Session,
    sender: NotificationSender,
    customer_id: int,
    notification_type: NotificationType,
    channel: Channel,
    message: str,
    subject: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    check_preferences: bool = True,
) -> Notification:
    if not message or not message.strip():
        raise ValidationError("Message is required")
    customer = db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    notification_type = NotificationType(notification_type)
    channel = Channel(channel)
    if check_preferences and not is_allowed(db, customer.id, notification_type):
        raise ValidationError(f"Customer opted out of {notification_type.value} notifications")

    notification = Notification(
        customer_id=customer.id,
        type=notification_type.value,
        channel=channel.value,
        recipient=recipient_for(customer, channel),
        subject=subject,
        message=message,
        status=NotificationStatus.pending.value,
        reference_type=reference_type,
        reference_id=reference_id,
        attempts=0,
    )
    db.add(notification)
    db.flush()
    return deliver(db, sender, notification)


def resend(db: Session, sender: NotificationSender, notification: Notification) -> Notification:
    if notification.status in DELIVERED_STATUSES:
        raise ValidationError("Notification was already sent")
    if (notification.attempts or 0) >= settings.notification_max_attempts:
        raise ValidationError(f"Maximum of {settings.notification_max_attempts} attempts reached")
    return deliver(db, sender, notification)


def statistics(db: Session) -> Dict[str, Any]:
    def grouped(column):
        return {key: count for key, count in db.query(column, func.count(Notification.id)).group_by(column).all()}

    by_status = grouped(Notification.status)
    total = sum(by_status.values())
    delivered = sum(by_status.get(s, 0) for s in DELIVERED_STATUSES)
    return {
        "total": total,
        "by_status": by_status,
        "by_type": grouped(Notification.type),
        "by_channel": grouped(Notification.channel),
        "success_rate": round(delivered / total * 100, 2) if total else 0,
    }

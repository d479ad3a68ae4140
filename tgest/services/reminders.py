"""
Maintenance reminders: manual creation, sending and the overdue view.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.models import Customer, Reminder, Vehicle
from ..schemas.common import Channel, HistoryType, NotificationStatus, NotificationType, ReminderStatus
from .history import record_history
from .notifications import NotificationSender, notify
from .time_rules import local_today

log = structlog.get_logger(__name__)

DUE_SOON_DAYS = 7


def get_reminder(db: Session, reminder_id: int) -> Reminder:
    reminder = db.get(Reminder, reminder_id)
    if not reminder:
        raise NotFoundError("Reminder not found")
    return reminder


def create_reminder(db: Session, data: Dict[str, Any]) -> Reminder:
    if not data.get("due_date") and not data.get("due_km"):
        raise ValidationError("due_date or due_km is required")
    customer = db.get(Customer, data["customer_id"])
    if not customer:
        raise NotFoundError("Customer not found")
    vehicle = db.get(Vehicle, data["vehicle_id"])
    if not vehicle:
        raise NotFoundError("Vehicle not found")

    reminder = Reminder(
        customer_id=customer.id,
        vehicle_id=vehicle.id,
        order_id=data.get("order_id"),
        type=data["type"],
        description=data["description"],
        due_date=data.get("due_date"),
        due_km=data.get("due_km"),
        status=ReminderStatus.pending.value,
        priority=data.get("priority") or "MEDIUM",
        notes=data.get("notes"),
    )
    db.add(reminder)
    db.flush()
    record_history(
        db,
        customer.id,
        HistoryType.reminder_created,
        f"Reminder created: {reminder.description} ({vehicle.plate})",
        "reminders",
        reminder.id,
    )
    return reminder


def change_status(db: Session, reminder: Reminder, status: str) -> Reminder:
    try:
        new_status = ReminderStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in ReminderStatus)
        raise ValidationError(f"Invalid status '{status}'. Allowed: {allowed}")
    reminder.status = new_status.value
    reminder.updated_at = datetime.utcnow()
    if new_status == ReminderStatus.done:
        record_history(
            db,
            reminder.customer_id,
            HistoryType.reminder_done,
            f"Reminder done: {reminder.description}",
            "reminders",
            reminder.id,
        )
    db.flush()
    return reminder


def send_reminder(db: Session, sender: NotificationSender, reminder: Reminder, channel: Channel) -> Dict[str, Any]:
    """
    Send a reminder to its customer and mark it SENT once delivered.

    Args:
        db: Database session
        sender: Notification gateway
        reminder: Reminder to send
        channel: WHATSAPP, SMS or EMAIL

    Returns:
        Dict with the reminder and the notification created for it
    """
    customer = reminder.customer
    message = f"Hello {customer.name}! Reminder: {reminder.description}. Book your visit now!"
    notification = notify(
        db,
        sender,
        customer.id,
        NotificationType.reminder,
        channel,
        message,
        reference_type="reminders",
        reference_id=reminder.id,
    )
    if notification.status == NotificationStatus.error.value:
        db.flush()
        log.warning("reminder_not_delivered", reminder_id=reminder.id, error=notification.error_message)
        return {"reminder": reminder, "notification": notification}

    reminder.status = ReminderStatus.sent.value
    reminder.last_sent_at = datetime.utcnow()
    reminder.times_sent = (reminder.times_sent or 0) + 1
    reminder.updated_at = datetime.utcnow()
    record_history(
        db,
        customer.id,
        HistoryType.reminder_sent,
        f"Reminder sent via {Channel(channel).value}: {reminder.type}",
        "reminders",
        reminder.id,
    )
    db.flush()
    log.info("reminder_sent", reminder_id=reminder.id, channel=Channel(channel).value, status=notification.status)
    return {"reminder": reminder, "notification": notification}


def urgency(due: Optional[date], today: Optional[date] = None) -> Dict[str, Any]:
    if due is None:
        return {"urgency": "UPCOMING", "days_left": None}
    today = today or local_today()
    days_left = (due - today).days
    if days_left < 0:
        label = "OVERDUE"
    elif days_left <= DUE_SOON_DAYS:
        label = "DUE_SOON"
    else:
        label = "UPCOMING"
    return {"urgency": label, "days_left": days_left}

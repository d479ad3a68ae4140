import enum
from typing import Any, Optional

from pydantic import BaseModel


class OrderStatus(str, enum.Enum):
    awaiting_diagnosis = "AWAITING_DIAGNOSIS"
    awaiting_approval = "AWAITING_APPROVAL"
    in_repair = "IN_REPAIR"
    ready_for_pickup = "READY_FOR_PICKUP"
    finalized = "FINALIZED"
    cancelled = "CANCELLED"


class QuoteStatus(str, enum.Enum):
    pending = "PENDING"
    sent = "SENT"
    approved = "APPROVED"
    rejected = "REJECTED"
    expired = "EXPIRED"
    converted = "CONVERTED"


class ChecklistStatus(str, enum.Enum):
    ok = "OK"
    damaged = "DAMAGED"
    not_checked = "NOT_CHECKED"


class CommunicationType(str, enum.Enum):
    email = "EMAIL"
    sms = "SMS"
    whatsapp = "WHATSAPP"
    phone = "PHONE"
    system = "SYSTEM"


class MovementType(str, enum.Enum):
    entry = "ENTRY"
    exit = "EXIT"
    adjustment = "ADJUSTMENT"
    ret = "RETURN"


class PurchaseOrderStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    received = "RECEIVED"
    cancelled = "CANCELLED"


class ReceivableStatus(str, enum.Enum):
    open = "OPEN"
    received = "RECEIVED"
    overdue = "OVERDUE"
    cancelled = "CANCELLED"


class PayableStatus(str, enum.Enum):
    open = "OPEN"
    paid = "PAID"
    overdue = "OVERDUE"
    cancelled = "CANCELLED"


class ReminderType(str, enum.Enum):
    oil_change = "OIL_CHANGE"
    inspection = "INSPECTION"
    alignment = "ALIGNMENT"
    brakes = "BRAKES"
    tires = "TIRES"
    battery = "BATTERY"
    other = "OTHER"


class ReminderStatus(str, enum.Enum):
    pending = "PENDING"
    sent = "SENT"
    scheduled = "SCHEDULED"
    done = "DONE"
    ignored = "IGNORED"


class Priority(str, enum.Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"
    urgent = "URGENT"


class SurveyStatus(str, enum.Enum):
    pending = "PENDING"
    sent = "SENT"
    answered = "ANSWERED"
    expired = "EXPIRED"


class Channel(str, enum.Enum):
    whatsapp = "WHATSAPP"
    sms = "SMS"
    email = "EMAIL"


class NotificationType(str, enum.Enum):
    reminder = "REMINDER"
    quote = "QUOTE"
    order_ready = "ORDER_READY"
    survey = "SURVEY"
    campaign = "CAMPAIGN"


class NotificationStatus(str, enum.Enum):
    pending = "PENDING"
    sent = "SENT"
    delivered = "DELIVERED"
    read = "READ"
    error = "ERROR"


class HistoryType(str, enum.Enum):
    order_created = "ORDER_CREATED"
    order_finalized = "ORDER_FINALIZED"
    reminder_created = "REMINDER_CREATED"
    reminder_sent = "REMINDER_SENT"
    reminder_done = "REMINDER_DONE"
    reminders_auto_created = "REMINDERS_AUTO_CREATED"
    survey_answered = "SURVEY_ANSWERED"
    notification_sent = "NOTIFICATION_SENT"
    contact = "CONTACT"
    note = "NOTE"


def blank_to_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

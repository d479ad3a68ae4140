"""
Domain events raised by the order lifecycle and their synchronous handlers.

Handlers run inside the transaction of the status change that published the
event; if any of them raises, the whole transition is rolled back.
"""
import secrets
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Type

import structlog
from slugify import slugify
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Account, Receivable, Reminder, ServiceOrder, Survey
from ..schemas.common import HistoryType, Priority, ReceivableStatus, ReminderStatus, ReminderType, SurveyStatus
from .history import record_history
from .time_rules import local_today

log = structlog.get_logger(__name__)

SERVICE_REVENUE_ACCOUNT = "1.01"


@dataclass(frozen=True)
class OrderFinalized:
    order_id: int
    number: str
    customer_id: int
    vehicle_id: int
    total: float
    finalized_at: datetime


@dataclass(frozen=True)
class MaintenanceRule:
    keywords: tuple
    reminder_type: ReminderType
    label: str
    km_offset: int
    days_offset: int
    priority: Priority


# Keywords are matched against slugified service text (lower case, no accents).
MAINTENANCE_RULES = (
    MaintenanceRule(("oleo",), ReminderType.oil_change, "Oil change", 10000, 180, Priority.high),
    MaintenanceRule(("revisao",), ReminderType.inspection, "Scheduled inspection", 15000, 365, Priority.high),
    MaintenanceRule(
        ("alinhamento", "balanceamento"), ReminderType.alignment, "Alignment and balancing", 20000, 180, Priority.medium
    ),
    MaintenanceRule(("freio",), ReminderType.brakes, "Brake inspection", 30000, 365, Priority.high),
)

OPEN_REMINDER_STATUSES = (ReminderStatus.pending.value, ReminderStatus.sent.value)


def match_rules(texts: List[str]) -> List[MaintenanceRule]:
    haystack = " ".join(slugify(t or "", separator=" ") for t in texts)
    return [rule for rule in MAINTENANCE_RULES if any(k in haystack for k in rule.keywords)]


class ReminderGenerator:
    name = "reminders"

    def __call__(self, db: Session, event: OrderFinalized) -> List[Reminder]:
        order = db.get(ServiceOrder, event.order_id)
        return self.generate_for_order(db, order)

    def generate_for_order(self, db: Session, order: ServiceOrder) -> List[Reminder]:
        texts = []
        for item in order.services:
            texts.append(item.description)
            if item.service_type is not None:
                texts.append(item.service_type.name)
        rules = match_rules(texts)
        if not rules:
            return []

        open_types = {
            r.type
            for r in db.query(Reminder.type)
            .filter(Reminder.vehicle_id == order.vehicle_id, Reminder.status.in_(OPEN_REMINDER_STATUSES))
            .all()
        }
        today = local_today()
        base_km = order.odometer or (order.vehicle.odometer if order.vehicle else 0) or 0
        created = []
        for rule in rules:
            if rule.reminder_type.value in open_types:
                continue
            reminder = Reminder(
                customer_id=order.customer_id,
                vehicle_id=order.vehicle_id,
                order_id=order.id,
                type=rule.reminder_type.value,
                description=rule.label,
                due_date=today + timedelta(days=rule.days_offset),
                due_km=base_km + rule.km_offset,
                status=ReminderStatus.pending.value,
                priority=rule.priority.value,
                notes=f"Created automatically after OS {order.number}",
            )
            db.add(reminder)
            open_types.add(rule.reminder_type.value)
            created.append(reminder)
        if created:
            db.flush()
            record_history(
                db,
                order.customer_id,
                HistoryType.reminders_auto_created,
                f"{len(created)} reminder(s) created after OS {order.number}",
                "service_orders",
                order.id,
            )
            log.info("reminders_generated", order_id=order.id, types=[r.type for r in created])
        return created


class SurveyIssuer:
    name = "survey"

    def __call__(self, db: Session, event: OrderFinalized) -> Optional[Survey]:
        if db.query(Survey).filter(Survey.order_id == event.order_id).first():
            return None
        survey = Survey(
            order_id=event.order_id,
            customer_id=event.customer_id,
            token=secrets.token_hex(16),
            status=SurveyStatus.pending.value,
        )
        db.add(survey)
        db.flush()
        log.info("survey_issued", order_id=event.order_id, survey_id=survey.id)
        return survey


class ReceivableCreator:
    name = "receivable"

    def __call__(self, db: Session, event: OrderFinalized) -> Optional[Receivable]:
        if not event.total or event.total <= 0:
            return None
        if db.query(Receivable).filter(Receivable.order_id == event.order_id).first():
            return None
        order = db.get(ServiceOrder, event.order_id)
        account = db.query(Account).filter(Account.code == SERVICE_REVENUE_ACCOUNT).first()
        today = local_today()
        receivable = Receivable(
            customer_id=event.customer_id,
            order_id=event.order_id,
            account_id=account.id if account else None,
            description=f"OS {event.number} - {order.customer.name}",
            amount=event.total,
            issued_on=today,
            due_on=today + timedelta(days=settings.receivable_due_days),
            status=ReceivableStatus.open.value,
        )
        db.add(receivable)
        db.flush()
        log.info("receivable_created", order_id=event.order_id, receivable_id=receivable.id, amount=event.total)
        return receivable


class HistoryRecorder:
    name = "history"

    def __call__(self, db: Session, event: OrderFinalized):
        return record_history(
            db,
            event.customer_id,
            HistoryType.order_finalized,
            f"OS {event.number} finalized. Total: {event.total:.2f}",
            "service_orders",
            event.order_id,
        )


Handler = Callable[[Session, Any], Any]


class EventBus:
    def __init__(self):
        self._handlers: Dict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: Type) -> List[Handler]:
        return list(self._handlers[event_type])

    def publish(self, db: Session, event) -> Dict[str, Any]:
        """Run every handler for the event in subscription order and collect their results."""
        results: Dict[str, Any] = {}
        for handler in self._handlers[type(event)]:
            key = getattr(handler, "name", None) or getattr(handler, "__name__", type(handler).__name__)
            results[key] = handler(db, event)
        log.info("event_published", event_type=type(event).__name__, handlers=list(results.keys()))
        return results


def build_event_bus() -> EventBus:
    bus = EventBus()
    bus.subscribe(OrderFinalized, ReceivableCreator())
    bus.subscribe(OrderFinalized, SurveyIssuer())
    bus.subscribe(OrderFinalized, ReminderGenerator())
    bus.subscribe(OrderFinalized, HistoryRecorder())
    return bus


event_bus = build_event_bus()

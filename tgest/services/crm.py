"""
Customer relationship views: 360 profile, retention, loss risk, preferences.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.models import (
    Customer,
    CustomerHistory,
    CustomerPreference,
    Notification,
    Reminder,
    ServiceOrder,
    Survey,
    Vehicle,
)
from ..schemas.common import Channel, OrderStatus, ReminderStatus, SurveyStatus
from . import scoring
from .time_rules import days_since, iso, local_day_start_utc, local_today


def visit_stats(db: Session, customer_id: Optional[int] = None) -> Dict[int, Dict[str, Any]]:
    """Finalized-order aggregates per customer: visits, lifetime value, last visit."""
    last_visit = func.max(func.coalesce(ServiceOrder.closed_at, ServiceOrder.opened_at))
    q = (
        db.query(
            ServiceOrder.customer_id,
            func.count(ServiceOrder.id),
            func.coalesce(func.sum(ServiceOrder.total), 0),
            last_visit,
        )
        .filter(ServiceOrder.status == OrderStatus.finalized.value)
        .group_by(ServiceOrder.customer_id)
    )
    if customer_id is not None:
        q = q.filter(ServiceOrder.customer_id == customer_id)
    stats = {}
    for cid, visits, revenue, last in q.all():
        if isinstance(last, str):
            last = datetime.fromisoformat(last)
        stats[cid] = {"total_visits": visits, "lifetime_value": float(revenue or 0), "last_visit": last}
    return stats


def _retention_row(customer: Customer, stats: Optional[Dict[str, Any]], today: date) -> Dict[str, Any]:
    visits = stats["total_visits"] if stats else 0
    value = round(stats["lifetime_value"], 2) if stats else 0.0
    last = stats["last_visit"] if stats else None
    days = days_since(last, today)
    return {
        "customer_id": customer.id,
        "name": customer.name,
        "phone": customer.phone,
        "email": customer.email,
        "last_visit": iso(last),
        "days_since_last_visit": days,
        "total_visits": visits,
        "lifetime_value": value,
        "average_ticket": round(value / visits, 2) if visits else 0.0,
        "retention_status": scoring.retention_status(days),
    }


def retention_analysis(db: Session, today: Optional[date] = None, status: Optional[str] = None) -> Dict[str, Any]:
    today = today or local_today()
    stats = visit_stats(db)
    customers = db.query(Customer).filter(Customer.active.is_(True)).order_by(Customer.name).all()
    rows = [_retention_row(c, stats.get(c.id), today) for c in customers]
    summary = {s: {"count": 0, "lifetime_value": 0.0} for s in scoring.RETENTION_STATUSES}
    for row in rows:
        bucket = summary[row["retention_status"]]
        bucket["count"] += 1
        bucket["lifetime_value"] = round(bucket["lifetime_value"] + row["lifetime_value"], 2)
    if status:
        rows = [r for r in rows if r["retention_status"] == status]
    return {"customers": rows, "summary": summary}


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def stale_reminder_count(db: Session, customer_id: int, today: date) -> int:
    """Reminders already sent whose due date passed more than 30 days ago."""
    return (
        db.query(func.count(Reminder.id))
        .filter(
            Reminder.customer_id == customer_id,
            Reminder.status == ReminderStatus.sent.value,
            Reminder.due_date < today - timedelta(days=30),
        )
        .scalar()
        or 0
    )


def loss_risk(db: Session, customer_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    customer = get_customer(db, customer_id)
    row = _retention_row(customer, visit_stats(db, customer.id).get(customer.id), today)
    risk = scoring.risk_score(
        row["days_since_last_visit"],
        row["total_visits"],
        row["average_ticket"],
        stale_reminder_count(db, customer.id, today),
    )
    return {**row, **risk}


def get_or_create_preferences(db: Session, customer_id: int) -> CustomerPreference:
    get_customer(db, customer_id)
    pref = db.query(CustomerPreference).filter(CustomerPreference.customer_id == customer_id).first()
    if pref is None:
        pref = CustomerPreference(
            customer_id=customer_id,
            receive_reminders=True,
            receive_promotions=True,
            receive_surveys=True,
            preferred_channel=Channel.whatsapp.value,
        )
        db.add(pref)
        db.flush()
    return pref


def update_preferences(db: Session, customer_id: int, changes: Dict[str, Any]) -> CustomerPreference:
    pref = get_or_create_preferences(db, customer_id)
    for field in ("receive_reminders", "receive_promotions", "receive_surveys", "preferred_channel", "best_time", "notes"):
        if field in changes and changes[field] is not None:
            value = changes[field]
            setattr(pref, field, value.value if isinstance(value, Channel) else value)
    pref.updated_at = datetime.utcnow()
    db.flush()
    return pref


def preferences_dict(pref: CustomerPreference) -> Dict[str, Any]:
    return {
        "customer_id": pref.customer_id,
        "receive_reminders": pref.receive_reminders,
        "receive_promotions": pref.receive_promotions,
        "receive_surveys": pref.receive_surveys,
        "preferred_channel": pref.preferred_channel,
        "best_time": pref.best_time,
        "notes": pref.notes,
        "updated_at": iso(pref.updated_at),
    }


def history_dict(entry: CustomerHistory) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "customer_id": entry.customer_id,
        "type": entry.type,
        "description": entry.description,
        "reference_type": entry.reference_type,
        "reference_id": entry.reference_id,
        "user": entry.user,
        "created_at": iso(entry.created_at),
    }


def list_history(db: Session, customer_id: int, limit: int = 50, entry_type: Optional[str] = None) -> List[CustomerHistory]:
    get_customer(db, customer_id)
    q = db.query(CustomerHistory).filter(CustomerHistory.customer_id == customer_id)
    if entry_type:
        q = q.filter(CustomerHistory.type == entry_type)
    return q.order_by(CustomerHistory.created_at.desc(), CustomerHistory.id.desc()).limit(limit).all()


def average_satisfaction(db: Session, customer_id: Optional[int] = None) -> Optional[float]:
    q = db.query(Survey).filter(Survey.status == SurveyStatus.answered.value)
    if customer_id is not None:
        q = q.filter(Survey.customer_id == customer_id)
    answered = q.all()
    if not answered:
        return None
    means = [
        (s.service_rating + s.quality_rating + s.timeliness_rating + s.price_rating) / 4 for s in answered
    ]
    return round(sum(means) / len(means), 2)


def profile(db: Session, customer_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    customer = get_customer(db, customer_id)
    retention = _retention_row(customer, visit_stats(db, customer.id).get(customer.id), today)
    total_orders = db.query(func.count(ServiceOrder.id)).filter(ServiceOrder.customer_id == customer.id).scalar() or 0
    open_orders = (
        db.query(func.count(ServiceOrder.id))
        .filter(
            ServiceOrder.customer_id == customer.id,
            ServiceOrder.status.notin_([OrderStatus.finalized.value, OrderStatus.cancelled.value]),
        )
        .scalar()
        or 0
    )
    vehicles = db.query(func.count(Vehicle.id)).filter(Vehicle.customer_id == customer.id).scalar() or 0
    pending_reminders = (
        db.query(func.count(Reminder.id))
        .filter(
            Reminder.customer_id == customer.id,
            Reminder.status.in_([ReminderStatus.pending.value, ReminderStatus.sent.value]),
        )
        .scalar()
        or 0
    )
    recent = list_history(db, customer.id, limit=10)
    return {
        "customer": {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "email": customer.email,
            "tax_id": customer.tax_id,
            "active": customer.active,
            "created_at": iso(customer.created_at),
        },
        "total_orders": total_orders,
        "open_orders": open_orders,
        "finalized_orders": retention["total_visits"],
        "lifetime_value": retention["lifetime_value"],
        "average_ticket": retention["average_ticket"],
        "last_visit": retention["last_visit"],
        "days_since_last_visit": retention["days_since_last_visit"],
        "retention_status": retention["retention_status"],
        "vehicles": vehicles,
        "average_satisfaction": average_satisfaction(db, customer.id),
        "pending_reminders": pending_reminders,
        "preferences": preferences_dict(get_or_create_preferences(db, customer.id)),
        "recent_history": [history_dict(h) for h in recent],
    }


def dashboard(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    retention = retention_analysis(db, today)
    open_reminders = db.query(Reminder).filter(
        Reminder.status.in_([ReminderStatus.pending.value, ReminderStatus.sent.value])
    )
    overdue = open_reminders.filter(Reminder.due_date < today).count()
    since = local_day_start_utc(today - timedelta(days=30))
    notifications_30d = db.query(func.count(Notification.id)).filter(Notification.created_at >= since).scalar() or 0
    surveys_answered = (
        db.query(func.count(Survey.id)).filter(Survey.status == SurveyStatus.answered.value).scalar() or 0
    )
    at_risk = [
        r for r in retention["customers"]
        if r["retention_status"] in (scoring.AT_RISK, scoring.INACTIVE)
    ]
    at_risk.sort(key=lambda r: r["lifetime_value"], reverse=True)
    return {
        "retention": retention["summary"],
        "reminders": {"open": open_reminders.count(), "overdue": overdue},
        "surveys_answered": surveys_answered,
        "average_satisfaction": average_satisfaction(db),
        "notifications_last_30_days": notifications_30d,
        "top_customers_at_risk": at_risk[:10],
    }

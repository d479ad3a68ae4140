from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Reminder
from ..schemas.common import NotificationStatus, ReminderStatus
from ..schemas.crm import AutoCreateRequest, ChannelChoice, ReminderCreate, ReminderStatusChange, ReminderUpdate
from ..services import reminders as reminder_service
from ..services.events import OPEN_REMINDER_STATUSES, ReminderGenerator
from ..services.lifecycle import parse_status
from ..services.notifications import NotificationSender, get_sender
from ..services.orders import get_order
from ..services.time_rules import iso, local_today
from .notifications import notification_dict


router = APIRouter(prefix="/api/lembretes", tags=["reminders"])


def reminder_dict(r: Reminder) -> Dict[str, Any]:
    return {
        "id": r.id,
        "customer_id": r.customer_id,
        "customer_name": r.customer.name if r.customer else None,
        "vehicle_id": r.vehicle_id,
        "plate": r.vehicle.plate if r.vehicle else None,
        "order_id": r.order_id,
        "type": r.type,
        "description": r.description,
        "due_date": iso(r.due_date),
        "due_km": r.due_km,
        "status": r.status,
        "priority": r.priority,
        "last_sent_at": iso(r.last_sent_at),
        "times_sent": r.times_sent or 0,
        "notes": r.notes,
        "created_at": iso(r.created_at),
    }


@router.get("")
def list_reminders(
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Reminder)
    if status:
        q = q.filter(Reminder.status == parse_status(ReminderStatus, status).value)
    if customer_id is not None:
        q = q.filter(Reminder.customer_id == customer_id)
    if vehicle_id is not None:
        q = q.filter(Reminder.vehicle_id == vehicle_id)
    return [reminder_dict(r) for r in q.order_by(Reminder.due_date.asc(), Reminder.id.asc()).all()]


@router.get("/vencidos")
def due_reminders(db: Session = Depends(get_db)):
    today = local_today()
    rows = (
        db.query(Reminder)
        .filter(Reminder.status.in_(OPEN_REMINDER_STATUSES), Reminder.due_date.isnot(None))
        .order_by(Reminder.due_date.asc())
        .all()
    )
    return [{**reminder_dict(r), **reminder_service.urgency(r.due_date, today)} for r in rows]


@router.get("/{reminder_id}")
def get_reminder(reminder_id: int, db: Session = Depends(get_db)):
    return reminder_dict(reminder_service.get_reminder(db, reminder_id))


@router.post("", status_code=201)
def create_reminder(body: ReminderCreate, db: Session = Depends(get_db)):
    data = body.model_dump()
    data["type"] = body.type.value
    data["priority"] = body.priority.value
    with transaction(db):
        reminder = reminder_service.create_reminder(db, data)
    return reminder_dict(reminder)


@router.put("/{reminder_id}")
def update_reminder(reminder_id: int, body: ReminderUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)
    with transaction(db):
        reminder = reminder_service.get_reminder(db, reminder_id)
        for k, v in changes.items():
            if k in ("type", "priority"):
                if v is None:
                    continue
                v = v.value
            if k == "description" and not v:
                continue
            setattr(reminder, k, v)
    return reminder_dict(reminder)


@router.patch("/{reminder_id}/status")
def change_reminder_status(reminder_id: int, body: ReminderStatusChange, db: Session = Depends(get_db)):
    with transaction(db):
        reminder = reminder_service.get_reminder(db, reminder_id)
        reminder_service.change_status(db, reminder, body.status)
    return reminder_dict(reminder)


@router.delete("/{reminder_id}")
def delete_reminder(reminder_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        reminder = reminder_service.get_reminder(db, reminder_id)
        db.delete(reminder)
    return {"message": "Reminder deleted", "id": reminder_id}


@router.post("/{reminder_id}/enviar")
def send_reminder(
    reminder_id: int,
    body: Optional[ChannelChoice] = None,
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_sender),
):
    body = body or ChannelChoice()
    with transaction(db):
        reminder = reminder_service.get_reminder(db, reminder_id)
        result = reminder_service.send_reminder(db, sender, reminder, body.channel)
    delivered = result["notification"].status != NotificationStatus.error.value
    return {
        "message": "Reminder sent" if delivered else "Reminder could not be delivered",
        "reminder": reminder_dict(result["reminder"]),
        "notification": notification_dict(result["notification"]),
    }


@router.post("/auto-criar", status_code=201)
def auto_create(body: AutoCreateRequest, db: Session = Depends(get_db)):
    with transaction(db):
        order = get_order(db, body.order_id)
        created = ReminderGenerator().generate_for_order(db, order)
    return {
        "message": f"{len(created)} reminder(s) created",
        "reminders": [reminder_dict(r) for r in created],
    }

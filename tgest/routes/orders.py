import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import ChecklistItem, OrderCommunication, ServiceOrder
from ..schemas.common import OrderStatus
from ..schemas.orders import (
    ChecklistItemCreate,
    ChecklistItemUpdate,
    CommunicationCreate,
    OrderCreate,
    OrderUpdate,
    PartItemCreate,
    ServiceItemCreate,
    StatusChange,
)
from ..services import orders as order_service
from ..services.lifecycle import OPEN_ORDER_STATUSES, parse_status
from ..services.surveys import survey_link
from ..services.time_rules import days_since, iso, local_day_start_utc, local_today
from ..storage.local_provider import get_storage, photo_key
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/api/ordens-servico", tags=["service-orders"])


def service_item_dict(s) -> Dict[str, Any]:
    return {
        "id": s.id,
        "service_type_id": s.service_type_id,
        "mechanic_id": getattr(s, "mechanic_id", None),
        "description": s.description,
        "quantity": s.quantity,
        "unit_price": s.unit_price,
        "line_total": s.line_total,
    }


def part_item_dict(p) -> Dict[str, Any]:
    return {
        "id": p.id,
        "part_id": p.part_id,
        "code": p.part.code if p.part else None,
        "name": p.part.name if p.part else None,
        "quantity": p.quantity,
        "unit_price": p.unit_price,
        "line_total": p.line_total,
    }


def checklist_dict(c: ChecklistItem) -> Dict[str, Any]:
    return {
        "id": c.id,
        "item": c.item,
        "status": c.status,
        "notes": c.notes,
        "photo_url": f"/uploads/{c.photo_path}" if c.photo_path else None,
        "created_at": iso(c.created_at),
    }


def communication_dict(c: OrderCommunication) -> Dict[str, Any]:
    return {"id": c.id, "type": c.type, "content": c.content, "author": c.author, "created_at": iso(c.created_at)}


def order_dict(order: ServiceOrder, details: bool = False) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "number": order.number,
        "status": order.status,
        "customer_id": order.customer_id,
        "customer_name": order.customer.name if order.customer else None,
        "vehicle_id": order.vehicle_id,
        "plate": order.vehicle.plate if order.vehicle else None,
        "mechanic_id": order.mechanic_id,
        "mechanic_name": order.mechanic.name if order.mechanic else None,
        "reported_problem": order.reported_problem,
        "diagnosis": order.diagnosis,
        "notes": order.notes,
        "odometer": order.odometer,
        "services_total": order.services_total,
        "parts_total": order.parts_total,
        "discount": order.discount,
        "total": order.total,
        "opened_at": iso(order.opened_at),
        "expected_at": iso(order.expected_at),
        "closed_at": iso(order.closed_at),
    }
    if details:
        c = order.customer
        v = order.vehicle
        data["customer"] = {"id": c.id, "name": c.name, "phone": c.phone, "email": c.email, "tax_id": c.tax_id}
        data["vehicle"] = {
            "id": v.id, "plate": v.plate, "make": v.make, "model": v.model, "year": v.year, "odometer": v.odometer,
        }
        data["mechanic"] = (
            {"id": order.mechanic.id, "name": order.mechanic.name, "specialty": order.mechanic.specialty}
            if order.mechanic else None
        )
        data["services"] = [service_item_dict(s) for s in order.services]
        data["parts"] = [part_item_dict(p) for p in order.parts]
        data["checklist"] = [checklist_dict(i) for i in order.checklist]
        data["communications"] = [communication_dict(i) for i in order.communications]
    return data


def _event_results(results: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    receivable = results.get("receivable")
    if receivable is not None:
        out["receivable"] = {
            "id": receivable.id, "amount": receivable.amount, "due_on": iso(receivable.due_on), "status": receivable.status,
        }
    survey = results.get("survey")
    if survey is not None:
        out["survey"] = {"id": survey.id, "token": survey.token, "link": survey_link(survey)}
    if "reminders" in results:
        out["reminders"] = [
            {"id": r.id, "type": r.type, "description": r.description, "due_date": iso(r.due_date), "due_km": r.due_km}
            for r in results["reminders"] or []
        ]
    return out


@router.get("")
def list_orders(
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    page = max(page, 1)
    limit = min(max(limit, 1), 200)
    q = db.query(ServiceOrder)
    if status:
        q = q.filter(ServiceOrder.status == parse_status(OrderStatus, status).value)
    if customer_id is not None:
        q = q.filter(ServiceOrder.customer_id == customer_id)
    if vehicle_id is not None:
        q = q.filter(ServiceOrder.vehicle_id == vehicle_id)
    if date_from:
        q = q.filter(ServiceOrder.opened_at >= local_day_start_utc(date_from))
    if date_to:
        q = q.filter(ServiceOrder.opened_at < local_day_start_utc(date_to + timedelta(days=1)))
    total = q.count()
    rows = q.order_by(ServiceOrder.opened_at.desc(), ServiceOrder.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "data": [order_dict(o) for o in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0},
    }


@router.get("/kanban")
def kanban(db: Session = Depends(get_db)):
    today = local_today()
    board: Dict[str, List[Dict[str, Any]]] = {s.value: [] for s in OPEN_ORDER_STATUSES}
    rows = (
        db.query(ServiceOrder)
        .filter(ServiceOrder.status.in_(list(board.keys())))
        .order_by(ServiceOrder.opened_at.asc())
        .all()
    )
    for order in rows:
        item = order_dict(order)
        item["days_open"] = days_since(order.opened_at, today) or 0
        board[order.status].append(item)
    return board


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return order_dict(order_service.get_order(db, order_id), details=True)


@router.post("", status_code=201)
def create_order(body: OrderCreate, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.open_order(db, **body.model_dump())
    return order_dict(order, details=True)


@router.put("/{order_id}")
def update_order(order_id: int, body: OrderUpdate, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        order_service.update_order(db, order, body.model_dump(exclude_unset=True))
    return order_dict(order, details=True)


@router.patch("/{order_id}/status")
def change_order_status(order_id: int, body: StatusChange, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        results = order_service.change_status(db, order, body.status, author=body.author)
    return {
        "message": f"Status changed to {order.status}",
        "order": order_dict(order),
        "created": _event_results(results),
    }


# ---------- LINE ITEMS ----------
@router.post("/{order_id}/servicos", status_code=201)
def add_service(order_id: int, body: ServiceItemCreate, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        item = order_service.add_service(db, order, **body.model_dump())
    return {"item": service_item_dict(item), "order": order_dict(order)}


@router.delete("/{order_id}/servicos/{item_id}")
def remove_service(order_id: int, item_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        order_service.remove_service(db, order, item_id)
    return {"message": "Service removed", "order": order_dict(order)}


@router.post("/{order_id}/pecas", status_code=201)
def add_part(order_id: int, body: PartItemCreate, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        item = order_service.add_part(db, order, body.part_id, body.quantity, body.unit_price)
    return {"item": part_item_dict(item), "order": order_dict(order)}


@router.delete("/{order_id}/pecas/{item_id}")
def remove_part(order_id: int, item_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        order = order_service.get_order(db, order_id)
        order_service.remove_part(db, order, item_id)
    return {"message": "Part removed and returned to stock", "order": order_dict(order)}


# ---------- CHECKLIST ----------
def _checklist_item(db: Session, order_id: int, item_id: int) -> ChecklistItem:
    item = db.get(ChecklistItem, item_id)
    if not item or item.order_id != order_id:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return item


@router.get("/{order_id}/checklist")
def list_checklist(order_id: int, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return [checklist_dict(i) for i in order.checklist]


@router.post("/{order_id}/checklist", status_code=201)
def add_checklist_item(order_id: int, body: ChecklistItemCreate, db: Session = Depends(get_db)):
    if not body.item:
        raise HTTPException(status_code=400, detail="Item is required")
    with transaction(db):
        order = order_service.get_order(db, order_id)
        item = ChecklistItem(order_id=order.id, item=body.item, status=body.status.value, notes=body.notes)
        db.add(item)
    db.refresh(item)
    return checklist_dict(item)


@router.put("/{order_id}/checklist/{item_id}")
def update_checklist_item(order_id: int, item_id: int, body: ChecklistItemUpdate, db: Session = Depends(get_db)):
    item = _checklist_item(db, order_id, item_id)
    changes = body.model_dump(exclude_unset=True)
    with transaction(db):
        for k, v in changes.items():
            if k == "status" and v is not None:
                v = v.value
            if v is None and k in ("item", "status"):
                continue
            setattr(item, k, v)
    db.refresh(item)
    return checklist_dict(item)


@router.post("/{order_id}/checklist/{item_id}/foto")
def upload_checklist_photo(
    order_id: int,
    item_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    item = _checklist_item(db, order_id, item_id)
    key = photo_key(file.filename)
    storage.save(file.file, key)
    previous = item.photo_path
    with transaction(db):
        item.photo_path = key
    if previous and previous != key:
        storage.delete(previous)
    db.refresh(item)
    return {"message": "Photo uploaded", "item": checklist_dict(item), "url": storage.public_url(key)}


# ---------- COMMUNICATIONS ----------
@router.get("/{order_id}/comunicacoes")
def list_communications(order_id: int, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return [communication_dict(c) for c in order.communications]


@router.post("/{order_id}/comunicacoes", status_code=201)
def add_communication(order_id: int, body: CommunicationCreate, db: Session = Depends(get_db)):
    if not body.content:
        raise HTTPException(status_code=400, detail="Content is required")
    with transaction(db):
        order = order_service.get_order(db, order_id)
        entry = OrderCommunication(order_id=order.id, type=body.type.value, content=body.content, author=body.author)
        db.add(entry)
    db.refresh(entry)
    return communication_dict(entry)

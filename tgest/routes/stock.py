from datetime import date, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import NotFoundError
from ..models.models import Part, PurchaseOrder, StockMovement
from ..schemas.catalog import PartResponse
from ..schemas.common import MovementType, PurchaseOrderStatus
from ..schemas.stock import PurchaseOrderCreate, PurchaseOrderStatusChange, StockAdjustment
from ..services import purchasing, stock
from ..services.lifecycle import parse_status
from ..services.settings_store import get_int
from ..services.time_rules import iso, local_day_start_utc, local_today


router = APIRouter(prefix="/api/estoque", tags=["stock"])


def movement_dict(m: StockMovement) -> Dict[str, Any]:
    return {
        "id": m.id,
        "part_id": m.part_id,
        "part_name": m.part.name if m.part else None,
        "type": m.type,
        "quantity": m.quantity,
        "previous_stock": m.previous_stock,
        "new_stock": m.new_stock,
        "reason": m.reason,
        "notes": m.notes,
        "reference_type": m.reference_type,
        "reference_id": m.reference_id,
        "user": m.user,
        "created_at": iso(m.created_at),
    }


def purchase_order_dict(po: PurchaseOrder) -> Dict[str, Any]:
    return {
        "id": po.id,
        "number": po.number,
        "supplier_id": po.supplier_id,
        "supplier_name": po.supplier.name if po.supplier else None,
        "status": po.status,
        "expected_at": iso(po.expected_at),
        "received_at": iso(po.received_at),
        "total": po.total,
        "notes": po.notes,
        "created_at": iso(po.created_at),
        "items": [
            {
                "id": i.id,
                "part_id": i.part_id,
                "part_name": i.part.name if i.part else None,
                "quantity": i.quantity,
                "unit_cost": i.unit_cost,
                "line_total": i.line_total,
            }
            for i in po.items
        ],
    }


@router.post("/ajuste")
def adjust_stock(body: StockAdjustment, db: Session = Depends(get_db)):
    with transaction(db):
        result = stock.adjust(db, body.part_id, body.quantity, body.reason, body.notes, body.user)
    return {
        "message": "Stock adjusted",
        "part": PartResponse.model_validate(result["part"]).model_dump(),
        "previous_stock": result["previous_stock"],
        "new_stock": result["new_stock"],
        "adjusted_quantity": result["adjusted_quantity"],
    }


@router.get("/movimentacoes")
def list_movements(
    part_id: Optional[int] = None,
    type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    q = db.query(StockMovement)
    if part_id is not None:
        q = q.filter(StockMovement.part_id == part_id)
    if type:
        q = q.filter(StockMovement.type == parse_status(MovementType, type).value)
    if date_from:
        q = q.filter(StockMovement.created_at >= local_day_start_utc(date_from))
    if date_to:
        q = q.filter(StockMovement.created_at < local_day_start_utc(date_to + timedelta(days=1)))
    rows = q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(max(limit, 1)).all()
    return [movement_dict(m) for m in rows]


@router.get("/movimentacoes/peca/{part_id}")
def part_movements(part_id: int, db: Session = Depends(get_db)):
    part = db.get(Part, part_id)
    if not part:
        raise NotFoundError("Part not found")
    rows = (
        db.query(StockMovement)
        .filter(StockMovement.part_id == part_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .all()
    )
    return {
        "part": PartResponse.model_validate(part).model_dump(),
        "movements": [movement_dict(m) for m in rows],
    }


@router.get("/estatisticas")
def stock_statistics(db: Session = Depends(get_db)):
    return stock.movement_statistics(db, get_int(db, "stock_alert_days", 30), local_today())


@router.get("/giro")
def stock_turnover(date_from: date, date_to: date, db: Session = Depends(get_db)):
    return {
        "date_from": date_from.isoformat(),
        "date_to": date_to.isoformat(),
        "parts": stock.turnover(db, date_from, date_to),
    }


# ---------- PURCHASE ORDERS ----------
@router.get("/ordens-compra")
def list_purchase_orders(status: Optional[str] = None, supplier_id: Optional[int] = None, db: Session = Depends(get_db)):
    q = db.query(PurchaseOrder)
    if status:
        q = q.filter(PurchaseOrder.status == parse_status(PurchaseOrderStatus, status).value)
    if supplier_id is not None:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    return [purchase_order_dict(po) for po in q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()]


@router.get("/ordens-compra/{purchase_order_id}")
def get_purchase_order(purchase_order_id: int, db: Session = Depends(get_db)):
    return purchase_order_dict(purchasing.get_purchase_order(db, purchase_order_id))


@router.post("/ordens-compra", status_code=201)
def create_purchase_order(body: PurchaseOrderCreate, db: Session = Depends(get_db)):
    with transaction(db):
        po = purchasing.create_purchase_order(
            db, body.supplier_id, [i.model_dump() for i in body.items], body.expected_at, body.notes
        )
    return purchase_order_dict(po)


@router.patch("/ordens-compra/{purchase_order_id}/status")
def change_purchase_order_status(
    purchase_order_id: int, body: PurchaseOrderStatusChange, db: Session = Depends(get_db)
):
    with transaction(db):
        po = purchasing.get_purchase_order(db, purchase_order_id)
        purchasing.change_status(db, po, body.status)
    return purchase_order_dict(po)

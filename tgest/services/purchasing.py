"""
Purchase orders to suppliers. Receiving one brings its items into stock.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.models import Part, PurchaseOrder, PurchaseOrderItem, Supplier
from ..schemas.common import PurchaseOrderStatus
from . import stock
from .lifecycle import ensure_purchase_order_transition
from .sequences import PURCHASE_ORDER_PREFIX, next_number
from .totals import line_total

log = structlog.get_logger(__name__)


def get_purchase_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    po = db.get(PurchaseOrder, purchase_order_id)
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def create_purchase_order(
    db: Session,
    supplier_id: int,
    items: Iterable[Dict[str, Any]],
    expected_at=None,
    notes: Optional[str] = None,
) -> PurchaseOrder:
    if not db.get(Supplier, supplier_id):
        raise NotFoundError("Supplier not found")
    items = list(items)
    if not items:
        raise ValidationError("At least one item is required")

    po = PurchaseOrder(
        number=next_number(db, PURCHASE_ORDER_PREFIX),
        supplier_id=supplier_id,
        status=PurchaseOrderStatus.pending.value,
        expected_at=expected_at,
        notes=notes,
    )
    db.add(po)
    for item in items:
        part = db.get(Part, item["part_id"])
        if not part:
            raise NotFoundError(f"Part {item['part_id']} not found")
        quantity = item.get("quantity") or 0
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than zero")
        unit_cost = item.get("unit_cost")
        if unit_cost is None:
            unit_cost = part.cost_price or 0
        po.items.append(PurchaseOrderItem(
            part_id=part.id,
            quantity=quantity,
            unit_cost=unit_cost,
        ))
    po.total = round(sum(line_total(i.quantity, i.unit_cost) for i in po.items), 2)
    db.flush()
    log.info("purchase_order_created", purchase_order_id=po.id, number=po.number, total=po.total)
    return po


def change_status(db: Session, po: PurchaseOrder, target: str) -> PurchaseOrder:
    new_status = ensure_purchase_order_transition(po.status, target)
    po.status = new_status.value
    if new_status == PurchaseOrderStatus.received:
        po.received_at = datetime.utcnow()
        for item in po.items:
            part = stock.lock_part(db, item.part_id)
            stock.receive(db, part, item.quantity, "purchase_orders", po.id)
            if item.unit_cost:
                part.cost_price = item.unit_cost
    db.flush()
    log.info("purchase_order_transitioned", purchase_order_id=po.id, status=po.status)
    return po

"""
Part stock bookkeeping.

Stock is only ever changed through the functions below, each of which writes a
StockMovement row with the before/after quantities. None of them commit.
"""
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import InsufficientStockError, NegativeStockError, NotFoundError, ValidationError
from ..models.models import Part, StockMovement
from ..schemas.common import MovementType
from .time_rules import local_day_start_utc

log = structlog.get_logger(__name__)

ORDER_USAGE_REASON = "Used in service order"
ORDER_RETURN_REASON = "Removed from service order"
PURCHASE_RECEIPT_REASON = "Purchase order receipt"


def lock_part(db: Session, part_id: int) -> Part:
    part = db.query(Part).filter(Part.id == part_id).with_for_update().first()
    if not part:
        raise NotFoundError("Part not found")
    return part


def _move(
    db: Session,
    part: Part,
    delta: int,
    movement_type: MovementType,
    reason: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    notes: Optional[str] = None,
    user: Optional[str] = None,
) -> StockMovement:
    previous = part.stock or 0
    new = previous + delta
    if new < 0:
        raise NegativeStockError(
            f"Adjustment would leave {part.name} with negative stock ({previous} {delta:+d})"
        )
    part.stock = new
    part.updated_at = datetime.utcnow()
    movement = StockMovement(
        part_id=part.id,
        type=movement_type.value,
        quantity=abs(delta),
        previous_stock=previous,
        new_stock=new,
        reason=reason,
        notes=notes,
        reference_type=reference_type,
        reference_id=reference_id,
        user=user,
    )
    db.add(movement)
    db.flush()
    log.info(
        "stock_moved",
        part_id=part.id,
        type=movement.type,
        delta=delta,
        previous_stock=previous,
        new_stock=new,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    return movement


def consume(db: Session, part: Part, quantity: int, reference_type: str, reference_id: int) -> StockMovement:
    """Take ``quantity`` units out for an order; fails without side effects when short."""
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    available = part.stock or 0
    if quantity > available:
        raise InsufficientStockError(part.name, available, quantity)
    return _move(db, part, -quantity, MovementType.exit, ORDER_USAGE_REASON, reference_type, reference_id)


def restore(db: Session, part: Part, quantity: int, reference_type: str, reference_id: int) -> StockMovement:
    return _move(db, part, quantity, MovementType.ret, ORDER_RETURN_REASON, reference_type, reference_id)


def receive(db: Session, part: Part, quantity: int, reference_type: str, reference_id: int) -> StockMovement:
    return _move(db, part, quantity, MovementType.entry, PURCHASE_RECEIPT_REASON, reference_type, reference_id)


def adjust(
    db: Session,
    part_id: int,
    quantity: int,
    reason: str,
    notes: Optional[str] = None,
    user: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Apply a manual, signed stock correction.

    Args:
        db: Database session
        part_id: Part to adjust
        quantity: Signed delta (positive adds, negative removes)
        reason: Mandatory justification
        notes: Free text
        user: Who made the adjustment

    Returns:
        Dict with the part, previous/new stock and the applied delta
    """
    if not reason or not reason.strip():
        raise ValidationError("Reason is required")
    if not quantity:
        raise ValidationError("Quantity must not be zero")
    part = lock_part(db, part_id)
    movement_type = MovementType.entry if quantity > 0 else MovementType.exit
    movement = _move(db, part, quantity, movement_type, reason.strip(), "manual_adjustment", None, notes, user)
    return {
        "part": part,
        "previous_stock": movement.previous_stock,
        "new_stock": movement.new_stock,
        "adjusted_quantity": quantity,
    }


def low_stock_parts(db: Session) -> List[Part]:
    return (
        db.query(Part)
        .filter(Part.active.is_(True), Part.stock <= Part.min_stock)
        .order_by(Part.stock.asc(), Part.name.asc())
        .all()
    )


def movement_statistics(db: Session, idle_days: int, today: date) -> Dict[str, Any]:
    by_type = dict(
        db.query(StockMovement.type, func.count(StockMovement.id)).group_by(StockMovement.type).all()
    )
    top_rows = (
        db.query(
            Part.id,
            Part.name,
            Part.code,
            func.count(StockMovement.id).label("movements"),
            func.sum(StockMovement.quantity).label("quantity"),
        )
        .join(StockMovement, StockMovement.part_id == Part.id)
        .group_by(Part.id, Part.name, Part.code)
        .order_by(func.count(StockMovement.id).desc())
        .limit(10)
        .all()
    )
    cutoff = local_day_start_utc(today - timedelta(days=idle_days))
    last_moves = (
        db.query(StockMovement.part_id, func.max(StockMovement.created_at).label("last_move"))
        .group_by(StockMovement.part_id)
        .subquery()
    )
    idle_rows = (
        db.query(Part, last_moves.c.last_move)
        .outerjoin(last_moves, last_moves.c.part_id == Part.id)
        .filter(Part.active.is_(True))
        .filter((last_moves.c.last_move.is_(None)) | (last_moves.c.last_move < cutoff))
        .order_by(Part.name)
        .all()
    )
    return {
        "by_type": {t.value: by_type.get(t.value, 0) for t in MovementType},
        "most_moved": [
            {"part_id": r.id, "name": r.name, "code": r.code, "movements": r.movements, "quantity": int(r.quantity or 0)}
            for r in top_rows
        ],
        "idle_parts": [
            {
                "part_id": part.id,
                "name": part.name,
                "stock": part.stock,
                "last_movement": last_move.isoformat() if last_move else None,
            }
            for part, last_move in idle_rows
        ],
        "idle_days": idle_days,
    }


def turnover(db: Session, date_from: date, date_to: date) -> List[Dict[str, Any]]:
    """Quantity in/out per part in the period and out/stock turnover ratio."""
    start = local_day_start_utc(date_from)
    end = local_day_start_utc(date_to + timedelta(days=1))
    rows = (
        db.query(StockMovement.part_id, StockMovement.type, func.sum(StockMovement.quantity))
        .filter(StockMovement.created_at >= start, StockMovement.created_at < end)
        .group_by(StockMovement.part_id, StockMovement.type)
        .all()
    )
    totals: Dict[int, Dict[str, int]] = {}
    for part_id, movement_type, qty in rows:
        bucket = totals.setdefault(part_id, {"in": 0, "out": 0})
        if movement_type in (MovementType.entry.value, MovementType.ret.value):
            bucket["in"] += int(qty or 0)
        else:
            bucket["out"] += int(qty or 0)
    if not totals:
        return []
    parts = {p.id: p for p in db.query(Part).filter(Part.id.in_(list(totals.keys()))).all()}
    report = []
    for part_id, bucket in totals.items():
        part = parts[part_id]
        report.append({
            "part_id": part_id,
            "name": part.name,
            "code": part.code,
            "stock": part.stock,
            "quantity_in": bucket["in"],
            "quantity_out": bucket["out"],
            "turnover": round(bucket["out"] / max(part.stock or 0, 1), 2),
        })
    report.sort(key=lambda r: r["turnover"], reverse=True)
    return report

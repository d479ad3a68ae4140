"""
Service order lifecycle: creation, line items, status transitions.

Functions here flush but never commit; routes wrap each call in
``transaction(db)`` so a failure leaves no partial writes.
"""
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import NotFoundError, OrderClosedError, ValidationError
from ..models.models import Customer, Mechanic, OrderPart, OrderService, ServiceOrder, ServiceType, Vehicle
from ..schemas.common import HistoryType, OrderStatus
from . import stock
from .events import EventBus, OrderFinalized, event_bus
from .history import log_order_event, record_history
from .lifecycle import ensure_order_transition, is_order_closed
from .sequences import ORDER_PREFIX, next_number
from .totals import recompute_totals

log = structlog.get_logger(__name__)

ORDER_REFERENCE = "service_orders"


def get_order(db: Session, order_id: int) -> ServiceOrder:
    order = db.get(ServiceOrder, order_id)
    if not order:
        raise NotFoundError("Service order not found")
    return order


def check_parties(db: Session, customer_id: Optional[int], vehicle_id: Optional[int], mechanic_id: Optional[int] = None):
    if not customer_id or not vehicle_id:
        raise ValidationError("customer_id and vehicle_id are required")
    customer = db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise NotFoundError("Vehicle not found")
    if vehicle.customer_id != customer.id:
        raise ValidationError("Vehicle does not belong to this customer")
    if mechanic_id is not None and not db.get(Mechanic, mechanic_id):
        raise NotFoundError("Mechanic not found")
    return customer, vehicle


def open_order(
    db: Session,
    customer_id: int,
    vehicle_id: int,
    mechanic_id: Optional[int] = None,
    reported_problem: Optional[str] = None,
    diagnosis: Optional[str] = None,
    notes: Optional[str] = None,
    odometer: Optional[int] = None,
    expected_at=None,
    discount: float = 0,
    origin: Optional[str] = None,
) -> ServiceOrder:
    """
    Create a service order in AWAITING_DIAGNOSIS with the next OS number.

    Args:
        db: Database session
        customer_id: Owning customer
        vehicle_id: Vehicle being serviced (must belong to the customer)
        mechanic_id: Optional assigned mechanic
        reported_problem: Customer complaint
        diagnosis: Initial diagnosis
        notes: Free text
        odometer: Odometer reading at check-in
        expected_at: Expected completion date
        discount: Discount applied on the total
        origin: Text for the opening entry of the communication log

    Returns:
        The flushed ServiceOrder
    """
    customer, vehicle = check_parties(db, customer_id, vehicle_id, mechanic_id)
    if discount is not None and discount < 0:
        raise ValidationError("Discount cannot be negative")

    order = ServiceOrder(
        number=next_number(db, ORDER_PREFIX),
        customer_id=customer.id,
        vehicle_id=vehicle.id,
        mechanic_id=mechanic_id,
        status=OrderStatus.awaiting_diagnosis.value,
        reported_problem=reported_problem,
        diagnosis=diagnosis,
        notes=notes,
        odometer=odometer,
        expected_at=expected_at,
        discount=discount or 0,
        opened_at=datetime.utcnow(),
    )
    db.add(order)
    db.flush()
    recompute_totals(order)

    if odometer and odometer > (vehicle.odometer or 0):
        vehicle.odometer = odometer
    log_order_event(db, order.id, origin or f"OS {order.number} created")
    record_history(
        db, customer.id, HistoryType.order_created, f"OS {order.number} opened", ORDER_REFERENCE, order.id
    )
    log.info("order_created", order_id=order.id, number=order.number, customer_id=customer.id)
    return order


def update_order(db: Session, order: ServiceOrder, changes: Dict[str, Any]) -> ServiceOrder:
    if "mechanic_id" in changes and changes["mechanic_id"] is not None:
        if not db.get(Mechanic, changes["mechanic_id"]):
            raise NotFoundError("Mechanic not found")
    if changes.get("discount") is not None and changes["discount"] < 0:
        raise ValidationError("Discount cannot be negative")
    if "discount" in changes and (changes["discount"] or 0) != (order.discount or 0) and is_order_closed(order.status):
        raise OrderClosedError(f"OS {order.number} is {order.status} and its totals can no longer change")
    for field in ("mechanic_id", "expected_at", "diagnosis", "notes", "reported_problem", "odometer", "discount"):
        if field not in changes:
            continue
        value = changes[field]
        if field == "discount":
            value = value or 0
        setattr(order, field, value)
    order.updated_at = datetime.utcnow()
    recompute_totals(order)
    return order


def _ensure_editable(order: ServiceOrder) -> None:
    if is_order_closed(order.status):
        raise OrderClosedError(f"OS {order.number} is {order.status}; line items can no longer change")


def add_service(
    db: Session,
    order: ServiceOrder,
    description: Optional[str] = None,
    service_type_id: Optional[int] = None,
    quantity: float = 1,
    unit_price: Optional[float] = None,
    mechanic_id: Optional[int] = None,
) -> OrderService:
    _ensure_editable(order)
    service_type = None
    if service_type_id is not None:
        service_type = db.get(ServiceType, service_type_id)
        if not service_type:
            raise NotFoundError("Service type not found")
    description = description or (service_type.name if service_type else None)
    if not description:
        raise ValidationError("description or service_type_id is required")
    if unit_price is None:
        unit_price = service_type.default_price if service_type else 0
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    item = OrderService(
        service_type_id=service_type_id,
        mechanic_id=mechanic_id,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
    )
    order.services.append(item)
    recompute_totals(order)
    order.updated_at = datetime.utcnow()
    db.flush()
    return item


def remove_service(db: Session, order: ServiceOrder, item_id: int) -> None:
    _ensure_editable(order)
    item = next((s for s in order.services if s.id == item_id), None)
    if not item:
        raise NotFoundError("Service item not found")
    order.services.remove(item)
    recompute_totals(order)
    order.updated_at = datetime.utcnow()
    db.flush()


def add_part(
    db: Session,
    order: ServiceOrder,
    part_id: int,
    quantity: int,
    unit_price: Optional[float] = None,
) -> OrderPart:
    """Attach a part to the order, taking the quantity out of stock."""
    _ensure_editable(order)
    part = stock.lock_part(db, part_id)
    if not part.active:
        raise ValidationError(f"Part {part.name} is inactive")
    if unit_price is None:
        unit_price = part.sale_price or 0
    stock.consume(db, part, quantity, ORDER_REFERENCE, order.id)

    item = OrderPart(
        part_id=part.id,
        quantity=quantity,
        unit_price=unit_price,
        unit_cost=part.cost_price or 0,
    )
    order.parts.append(item)
    recompute_totals(order)
    order.updated_at = datetime.utcnow()
    db.flush()
    return item


def remove_part(db: Session, order: ServiceOrder, item_id: int) -> None:
    """Detach a part line, putting exactly its quantity back into stock."""
    _ensure_editable(order)
    item = next((p for p in order.parts if p.id == item_id), None)
    if not item:
        raise NotFoundError("Part item not found")
    part = stock.lock_part(db, item.part_id)
    stock.restore(db, part, item.quantity, ORDER_REFERENCE, order.id)
    order.parts.remove(item)
    recompute_totals(order)
    order.updated_at = datetime.utcnow()
    db.flush()


def change_status(
    db: Session,
    order: ServiceOrder,
    target: str,
    author: Optional[str] = None,
    bus: Optional[EventBus] = None,
) -> Dict[str, Any]:
    """
    Move an order to ``target`` following the transition table.

    Reaching FINALIZED stamps the completion time and publishes OrderFinalized;
    the handlers' results are returned keyed by handler name.
    """
    previous = order.status
    new_status = ensure_order_transition(order.status, target)
    order.status = new_status.value
    order.updated_at = datetime.utcnow()
    log_order_event(db, order.id, f"Status changed to: {new_status.value}", author or "System")

    results: Dict[str, Any] = {}
    if new_status == OrderStatus.finalized:
        order.closed_at = datetime.utcnow()
        db.flush()
        event = OrderFinalized(
            order_id=order.id,
            number=order.number,
            customer_id=order.customer_id,
            vehicle_id=order.vehicle_id,
            total=order.total or 0,
            finalized_at=order.closed_at,
        )
        results = (bus or event_bus).publish(db, event)
    db.flush()
    log.info("order_transitioned", order_id=order.id, previous=previous, status=order.status)
    return results

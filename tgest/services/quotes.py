"""
Quote lifecycle and conversion into a service order.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import AlreadyConvertedError, NotFoundError, OrderClosedError, ValidationError
from ..models.models import OrderPart, OrderService, Part, Quote, QuotePart, QuoteService, ServiceOrder, ServiceType
from ..schemas.common import QuoteStatus
from . import stock
from .history import log_order_event
from .lifecycle import ensure_quote_transition
from .orders import ORDER_REFERENCE, check_parties, open_order
from .sequences import QUOTE_PREFIX, next_number
from .settings_store import get_int
from .time_rules import local_today
from .totals import recompute_totals

log = structlog.get_logger(__name__)

OPEN_QUOTE_STATUSES = (QuoteStatus.pending.value, QuoteStatus.sent.value)


def get_quote(db: Session, quote_id: int) -> Quote:
    quote = db.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("Quote not found")
    return quote


def is_expired(quote: Quote, today: Optional[date] = None) -> bool:
    """Validity is informational only; the stored status is never flipped."""
    today = today or local_today()
    return bool(quote.valid_until and quote.valid_until < today and quote.status in OPEN_QUOTE_STATUSES)


def _ensure_editable(quote: Quote) -> None:
    if quote.status == QuoteStatus.converted.value:
        raise OrderClosedError(f"Quote {quote.number} was already converted")


def add_service(
    db: Session,
    quote: Quote,
    description: Optional[str] = None,
    service_type_id: Optional[int] = None,
    quantity: float = 1,
    unit_price: Optional[float] = None,
) -> QuoteService:
    _ensure_editable(quote)
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
    item = QuoteService(
        service_type_id=service_type_id,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
    )
    quote.services.append(item)
    recompute_totals(quote)
    quote.updated_at = datetime.utcnow()
    db.flush()
    return item


def add_part(db: Session, quote: Quote, part_id: int, quantity: int, unit_price: Optional[float] = None) -> QuotePart:
    """Quote a part. Stock is not reserved; it is checked again on conversion."""
    _ensure_editable(quote)
    part = db.get(Part, part_id)
    if not part:
        raise NotFoundError("Part not found")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")
    if unit_price is None:
        unit_price = part.sale_price or 0
    item = QuotePart(
        part_id=part.id,
        quantity=quantity,
        unit_price=unit_price,
    )
    quote.parts.append(item)
    recompute_totals(quote)
    quote.updated_at = datetime.utcnow()
    db.flush()
    return item


def remove_item(db: Session, quote: Quote, kind: str, item_id: int) -> None:
    _ensure_editable(quote)
    items = quote.services if kind == "service" else quote.parts
    item = next((i for i in items if i.id == item_id), None)
    if not item:
        raise NotFoundError("Quote item not found")
    items.remove(item)
    recompute_totals(quote)
    quote.updated_at = datetime.utcnow()
    db.flush()


def create_quote(
    db: Session,
    customer_id: int,
    vehicle_id: int,
    reported_problem: Optional[str] = None,
    notes: Optional[str] = None,
    valid_until: Optional[date] = None,
    discount: float = 0,
    services: Iterable[Dict[str, Any]] = (),
    parts: Iterable[Dict[str, Any]] = (),
) -> Quote:
    """
    Create a PENDING quote with the next ORC number and optional line items.

    Args:
        db: Database session
        customer_id: Customer the quote is for
        vehicle_id: Vehicle being quoted
        reported_problem: Customer complaint
        notes: Free text printed on the PDF
        valid_until: Validity date (defaults to today + quote_validity_days)
        discount: Discount on the total
        services: Dicts with description/service_type_id/quantity/unit_price
        parts: Dicts with part_id/quantity/unit_price

    Returns:
        The flushed Quote
    """
    check_parties(db, customer_id, vehicle_id)
    if discount is not None and discount < 0:
        raise ValidationError("Discount cannot be negative")
    if valid_until is None:
        valid_until = local_today() + timedelta(days=get_int(db, "quote_validity_days", 15))

    quote = Quote(
        number=next_number(db, QUOTE_PREFIX),
        customer_id=customer_id,
        vehicle_id=vehicle_id,
        status=QuoteStatus.pending.value,
        reported_problem=reported_problem,
        notes=notes,
        valid_until=valid_until,
        discount=discount or 0,
    )
    db.add(quote)
    db.flush()
    for s in services:
        add_service(db, quote, s.get("description"), s.get("service_type_id"), s.get("quantity") or 1, s.get("unit_price"))
    for p in parts:
        add_part(db, quote, p["part_id"], p.get("quantity") or 1, p.get("unit_price"))
    recompute_totals(quote)
    log.info("quote_created", quote_id=quote.id, number=quote.number)
    return quote


def update_quote(db: Session, quote: Quote, changes: Dict[str, Any]) -> Quote:
    _ensure_editable(quote)
    if changes.get("discount") is not None and changes["discount"] < 0:
        raise ValidationError("Discount cannot be negative")
    for field in ("reported_problem", "notes", "valid_until", "discount"):
        if field in changes:
            value = changes[field]
            if field == "discount":
                value = value or 0
            setattr(quote, field, value)
    quote.updated_at = datetime.utcnow()
    recompute_totals(quote)
    return quote


def change_status(db: Session, quote: Quote, target: str) -> Quote:
    previous = quote.status
    new_status = ensure_quote_transition(quote.status, target)
    quote.status = new_status.value
    quote.updated_at = datetime.utcnow()
    db.flush()
    log.info("quote_transitioned", quote_id=quote.id, previous=previous, status=quote.status)
    return quote


def convert_to_order(db: Session, quote: Quote, author: Optional[str] = None) -> ServiceOrder:
    """
    Turn a quote into a service order, copying every line item.

    Part stock is validated again here because quoting never reserved it; an
    INSUFFICIENT_STOCK error aborts the conversion and the caller's
    transaction discards the half-built order.
    """
    if quote.status == QuoteStatus.converted.value:
        raise AlreadyConvertedError(f"Quote {quote.number} was already converted")

    notes = f"Converted from quote {quote.number}."
    if quote.notes:
        notes = f"{notes} {quote.notes}"
    order = open_order(
        db,
        customer_id=quote.customer_id,
        vehicle_id=quote.vehicle_id,
        reported_problem=quote.reported_problem,
        notes=notes,
        discount=quote.discount or 0,
        origin=f"OS created from quote {quote.number}",
    )

    for s in quote.services:
        order.services.append(OrderService(
            service_type_id=s.service_type_id,
            description=s.description,
            quantity=s.quantity,
            unit_price=s.unit_price,
        ))
    for p in quote.parts:
        part = stock.lock_part(db, p.part_id)
        stock.consume(db, part, p.quantity, ORDER_REFERENCE, order.id)
        order.parts.append(OrderPart(
            part_id=part.id,
            quantity=p.quantity,
            unit_price=p.unit_price,
            unit_cost=part.cost_price or 0,
        ))
    recompute_totals(order)

    quote.status = QuoteStatus.converted.value
    quote.order_id = order.id
    quote.updated_at = datetime.utcnow()
    db.flush()
    log_order_event(db, order.id, f"Line items copied from quote {quote.number}", author or "System")
    log.info("quote_converted", quote_id=quote.id, order_id=order.id, order_number=order.number)
    return order

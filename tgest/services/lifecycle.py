"""
Status transition tables for service orders, quotes and purchase orders.

Every status change goes through ``ensure_*_transition``; an unknown value is a
validation error and a known value that is not reachable from the current
status raises IllegalTransitionError.
"""
from typing import Dict, FrozenSet, Type
import enum

from ..errors import IllegalTransitionError, ValidationError
from ..schemas.common import OrderStatus, QuoteStatus, PurchaseOrderStatus


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.awaiting_diagnosis: frozenset({OrderStatus.awaiting_approval, OrderStatus.cancelled}),
    OrderStatus.awaiting_approval: frozenset(
        {OrderStatus.in_repair, OrderStatus.awaiting_diagnosis, OrderStatus.cancelled}
    ),
    OrderStatus.in_repair: frozenset({OrderStatus.ready_for_pickup, OrderStatus.cancelled}),
    OrderStatus.ready_for_pickup: frozenset(
        {OrderStatus.finalized, OrderStatus.in_repair, OrderStatus.cancelled}
    ),
    OrderStatus.finalized: frozenset(),
    OrderStatus.cancelled: frozenset(),
}

# CONVERTED is only reachable through the convert operation.
QUOTE_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.pending: frozenset(
        {QuoteStatus.sent, QuoteStatus.approved, QuoteStatus.rejected, QuoteStatus.expired}
    ),
    QuoteStatus.sent: frozenset({QuoteStatus.approved, QuoteStatus.rejected, QuoteStatus.expired}),
    QuoteStatus.expired: frozenset({QuoteStatus.sent}),
    QuoteStatus.approved: frozenset(),
    QuoteStatus.rejected: frozenset(),
    QuoteStatus.converted: frozenset(),
}

PURCHASE_ORDER_TRANSITIONS: Dict[PurchaseOrderStatus, FrozenSet[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.pending: frozenset({PurchaseOrderStatus.approved, PurchaseOrderStatus.cancelled}),
    PurchaseOrderStatus.approved: frozenset({PurchaseOrderStatus.received, PurchaseOrderStatus.cancelled}),
    PurchaseOrderStatus.received: frozenset(),
    PurchaseOrderStatus.cancelled: frozenset(),
}

OPEN_ORDER_STATUSES = (
    OrderStatus.awaiting_diagnosis,
    OrderStatus.awaiting_approval,
    OrderStatus.in_repair,
    OrderStatus.ready_for_pickup,
)


def parse_status(enum_cls: Type[enum.Enum], value) -> enum.Enum:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid status '{value}'. Allowed: {allowed}")


def _ensure(table, enum_cls, entity: str, current, target):
    current = parse_status(enum_cls, current)
    target = parse_status(enum_cls, target)
    if target not in table[current]:
        raise IllegalTransitionError(entity, current.value, target.value)
    return target


def ensure_order_transition(current, target) -> OrderStatus:
    return _ensure(ORDER_TRANSITIONS, OrderStatus, "service order", current, target)


def ensure_quote_transition(current, target) -> QuoteStatus:
    return _ensure(QUOTE_TRANSITIONS, QuoteStatus, "quote", current, target)


def ensure_purchase_order_transition(current, target) -> PurchaseOrderStatus:
    return _ensure(PURCHASE_ORDER_TRANSITIONS, PurchaseOrderStatus, "purchase order", current, target)


def is_order_closed(status) -> bool:
    return not ORDER_TRANSITIONS[OrderStatus(status)]

"""
Customer history service.
Append-only trail of customer-relevant events shown in the CRM profile.
"""
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import CustomerHistory, OrderCommunication
from ..schemas.common import CommunicationType, HistoryType

log = structlog.get_logger(__name__)


def record_history(
    db: Session,
    customer_id: int,
    entry_type: HistoryType,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    user: Optional[str] = None,
) -> CustomerHistory:
    """
    Append a history entry for a customer.

    Args:
        db: Database session (the caller owns the transaction)
        customer_id: Customer the event belongs to
        entry_type: Event kind (ORDER_CREATED, REMINDER_SENT, ...)
        description: Human readable text
        reference_type: Table of the related record (service_orders, reminders, ...)
        reference_id: Id of the related record
        user: Who triggered the event, when known

    Returns:
        The new CustomerHistory row (flushed, not committed)
    """
    entry = CustomerHistory(
        customer_id=customer_id,
        type=HistoryType(entry_type).value,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
        user=user,
    )
    db.add(entry)
    db.flush()
    log.info("customer_history_recorded", customer_id=customer_id, type=entry.type, reference_id=reference_id)
    return entry


def log_order_event(db: Session, order_id: int, content: str, author: str = "System") -> OrderCommunication:
    """Append a SYSTEM line to an order's communication log."""
    entry = OrderCommunication(
        order_id=order_id,
        type=CommunicationType.system.value,
        content=content,
        author=author,
    )
    db.add(entry)
    db.flush()
    return entry

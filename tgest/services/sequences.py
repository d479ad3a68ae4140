"""
Human-facing document numbers (OS2024-0001, ORC2024-0001, OC2024-0001).

Counters live in the sequence_counters table and are bumped with a single
UPDATE inside the caller's transaction, so two concurrent inserts can never
read the same value.
"""
from typing import Optional

from sqlalchemy import update, select
from sqlalchemy.orm import Session

from ..models.models import SequenceCounter
from .time_rules import local_today

ORDER_PREFIX = "OS"
QUOTE_PREFIX = "ORC"
PURCHASE_ORDER_PREFIX = "OC"


def next_value(db: Session, name: str) -> int:
    """
    Increment and return the counter called ``name``, creating it at 1.

    Must be called inside an open transaction; the new value becomes
    durable only when that transaction commits.
    """
    result = db.execute(
        update(SequenceCounter)
        .where(SequenceCounter.name == name)
        .values(value=SequenceCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # A concurrent first-of-year insert fails on the primary key instead of
        # handing out the same number twice.
        db.add(SequenceCounter(name=name, value=1))
        db.flush()
        return 1
    return db.execute(select(SequenceCounter.value).where(SequenceCounter.name == name)).scalar_one()


def format_number(prefix: str, year: int, value: int) -> str:
    return f"{prefix}{year}-{value:04d}"


def next_number(db: Session, prefix: str, year: Optional[int] = None) -> str:
    year = year or local_today().year
    value = next_value(db, f"{prefix}{year}")
    return format_number(prefix, year, value)

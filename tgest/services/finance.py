"""
Receivables, payables and cash flow.
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.models import Account, CashFlowEntry, Payable, Receivable
from ..schemas.common import PayableStatus, ReceivableStatus
from .time_rules import local_today

log = structlog.get_logger(__name__)

CHART_OF_ACCOUNTS = (
    ("1.01", "Service revenue", "REVENUE"),
    ("1.02", "Parts revenue", "REVENUE"),
    ("1.03", "Other revenue", "REVENUE"),
    ("2.01", "Parts purchases", "EXPENSE"),
    ("2.02", "Salaries", "EXPENSE"),
    ("2.03", "Commissions", "EXPENSE"),
    ("2.04", "Rent", "EXPENSE"),
    ("2.05", "Electricity", "EXPENSE"),
    ("2.06", "Water", "EXPENSE"),
    ("2.07", "Telephone and internet", "EXPENSE"),
    ("2.08", "Taxes", "EXPENSE"),
    ("2.09", "Maintenance", "EXPENSE"),
    ("2.10", "Tools and equipment", "EXPENSE"),
    ("2.11", "Marketing", "EXPENSE"),
    ("2.12", "Other expenses", "EXPENSE"),
)

OPEN = "OPEN"


def seed_accounts(db: Session) -> int:
    existing = {code for (code,) in db.query(Account.code).all()}
    created = 0
    for code, name, kind in CHART_OF_ACCOUNTS:
        if code not in existing:
            db.add(Account(code=code, name=name, kind=kind))
            created += 1
    return created


def overdue_info(status: str, due_on: date, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    overdue = status in (OPEN, ReceivableStatus.overdue.value) and due_on < today
    return {"overdue": overdue, "days_overdue": (today - due_on).days if overdue else 0}


def settle_receivable(
    db: Session,
    receivable: Receivable,
    received_on: Optional[date] = None,
    payment_method: Optional[str] = None,
) -> CashFlowEntry:
    """Mark a receivable RECEIVED and book the cash inflow."""
    if receivable.status not in (ReceivableStatus.open.value, ReceivableStatus.overdue.value):
        raise ValidationError(f"Receivable is {receivable.status} and cannot be received")
    receivable.status = ReceivableStatus.received.value
    receivable.received_on = received_on or local_today()
    if payment_method:
        receivable.payment_method = payment_method
    entry = CashFlowEntry(
        kind="IN",
        account_id=receivable.account_id,
        description=receivable.description,
        amount=receivable.amount,
        occurred_on=receivable.received_on,
        receivable_id=receivable.id,
    )
    db.add(entry)
    db.flush()
    log.info("receivable_settled", receivable_id=receivable.id, amount=receivable.amount)
    return entry


def settle_payable(
    db: Session,
    payable: Payable,
    paid_on: Optional[date] = None,
    payment_method: Optional[str] = None,
) -> CashFlowEntry:
    """Mark a payable PAID and book the cash outflow."""
    if payable.status not in (PayableStatus.open.value, PayableStatus.overdue.value):
        raise ValidationError(f"Payable is {payable.status} and cannot be paid")
    payable.status = PayableStatus.paid.value
    payable.paid_on = paid_on or local_today()
    if payment_method:
        payable.payment_method = payment_method
    entry = CashFlowEntry(
        kind="OUT",
        account_id=payable.account_id,
        description=payable.description,
        amount=payable.amount,
        occurred_on=payable.paid_on,
        payable_id=payable.id,
    )
    db.add(entry)
    db.flush()
    log.info("payable_settled", payable_id=payable.id, amount=payable.amount)
    return entry


def resolve_account(db: Session, account_code: Optional[str]) -> Optional[Account]:
    if not account_code:
        return None
    account = db.query(Account).filter(Account.code == account_code).first()
    if not account:
        raise NotFoundError(f"Account {account_code} not found")
    return account


def cash_flow(db: Session, date_from: date, date_to: date) -> Dict[str, Any]:
    """Daily inflow/outflow with a running balance that starts from the balance before date_from."""
    if date_from > date_to:
        raise ValidationError("date_from must not be after date_to")

    def signed_sum(q):
        total = 0.0
        for kind, amount in q:
            total += amount if kind == "IN" else -amount
        return total

    opening = signed_sum(
        db.query(CashFlowEntry.kind, CashFlowEntry.amount).filter(CashFlowEntry.occurred_on < date_from).all()
    )
    rows = (
        db.query(CashFlowEntry.occurred_on, CashFlowEntry.kind, func.sum(CashFlowEntry.amount))
        .filter(CashFlowEntry.occurred_on >= date_from, CashFlowEntry.occurred_on <= date_to)
        .group_by(CashFlowEntry.occurred_on, CashFlowEntry.kind)
        .order_by(CashFlowEntry.occurred_on)
        .all()
    )
    per_day: Dict[date, Dict[str, float]] = {}
    for day, kind, amount in rows:
        bucket = per_day.setdefault(day, {"inflow": 0.0, "outflow": 0.0})
        bucket["inflow" if kind == "IN" else "outflow"] += float(amount or 0)

    balance = opening
    days: List[Dict[str, Any]] = []
    for day in sorted(per_day):
        bucket = per_day[day]
        net = bucket["inflow"] - bucket["outflow"]
        balance += net
        days.append({
            "date": day.isoformat(),
            "inflow": round(bucket["inflow"], 2),
            "outflow": round(bucket["outflow"], 2),
            "net": round(net, 2),
            "balance": round(balance, 2),
        })
    return {
        "opening_balance": round(opening, 2),
        "closing_balance": round(balance, 2),
        "total_inflow": round(sum(d["inflow"] for d in days), 2),
        "total_outflow": round(sum(d["outflow"] for d in days), 2),
        "days": days,
    }


def summary(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()

    def side(model, open_status):
        open_rows = db.query(model).filter(model.status.in_([open_status, "OVERDUE"])).all()
        overdue = [r for r in open_rows if r.due_on < today]
        return {
            "open_count": len(open_rows),
            "open_amount": round(sum(r.amount for r in open_rows), 2),
            "overdue_count": len(overdue),
            "overdue_amount": round(sum(r.amount for r in overdue), 2),
        }

    month_start = today.replace(day=1)
    month = cash_flow(db, month_start, today)
    return {
        "receivables": side(Receivable, ReceivableStatus.open.value),
        "payables": side(Payable, PayableStatus.open.value),
        "month": {
            "start": month_start.isoformat(),
            "inflow": month["total_inflow"],
            "outflow": month["total_outflow"],
            "balance": round(month["total_inflow"] - month["total_outflow"], 2),
        },
        "upcoming_receivables_7d": db.query(func.count(Receivable.id))
        .filter(
            Receivable.status == ReceivableStatus.open.value,
            Receivable.due_on >= today,
            Receivable.due_on <= today + timedelta(days=7),
        )
        .scalar()
        or 0,
    }

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import NotFoundError, ValidationError
from ..models.models import Account, Customer, Payable, Receivable, ServiceOrder, Supplier
from ..schemas.common import PayableStatus, ReceivableStatus
from ..schemas.finance import PayableCreate, ReceivableCreate, Settlement
from ..services import finance
from ..services.lifecycle import parse_status
from ..services.time_rules import iso, local_today


router = APIRouter(prefix="/api/financeiro", tags=["finance"])


def _account(a: Optional[Account]) -> Optional[Dict[str, Any]]:
    return {"id": a.id, "code": a.code, "name": a.name, "kind": a.kind} if a else None


def receivable_dict(r: Receivable, today: Optional[date] = None) -> Dict[str, Any]:
    return {
        "id": r.id,
        "customer_id": r.customer_id,
        "customer_name": r.customer.name if r.customer else None,
        "order_id": r.order_id,
        "account": _account(r.account),
        "description": r.description,
        "amount": r.amount,
        "issued_on": iso(r.issued_on),
        "due_on": iso(r.due_on),
        "received_on": iso(r.received_on),
        "status": r.status,
        "payment_method": r.payment_method,
        "notes": r.notes,
        **finance.overdue_info(r.status, r.due_on, today),
    }


def payable_dict(p: Payable, today: Optional[date] = None) -> Dict[str, Any]:
    return {
        "id": p.id,
        "supplier_id": p.supplier_id,
        "supplier_name": p.supplier.name if p.supplier else None,
        "account": _account(p.account),
        "description": p.description,
        "amount": p.amount,
        "issued_on": iso(p.issued_on),
        "due_on": iso(p.due_on),
        "paid_on": iso(p.paid_on),
        "status": p.status,
        "payment_method": p.payment_method,
        "notes": p.notes,
        **finance.overdue_info(p.status, p.due_on, today),
    }


@router.get("/plano-contas")
def chart_of_accounts(db: Session = Depends(get_db)):
    return [_account(a) for a in db.query(Account).order_by(Account.code).all()]


# ---------- RECEIVABLES ----------
@router.get("/contas-receber")
def list_receivables(
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Receivable)
    if status:
        q = q.filter(Receivable.status == parse_status(ReceivableStatus, status).value)
    if customer_id is not None:
        q = q.filter(Receivable.customer_id == customer_id)
    today = local_today()
    return [receivable_dict(r, today) for r in q.order_by(Receivable.due_on.asc(), Receivable.id.asc()).all()]


@router.post("/contas-receber", status_code=201)
def create_receivable(body: ReceivableCreate, db: Session = Depends(get_db)):
    if body.customer_id is not None and not db.get(Customer, body.customer_id):
        raise NotFoundError("Customer not found")
    if body.order_id is not None and not db.get(ServiceOrder, body.order_id):
        raise NotFoundError("Service order not found")
    with transaction(db):
        account = finance.resolve_account(db, body.account_code)
        receivable = Receivable(
            customer_id=body.customer_id,
            order_id=body.order_id,
            account_id=account.id if account else None,
            description=body.description,
            amount=body.amount,
            issued_on=body.issued_on or local_today(),
            due_on=body.due_on,
            status=ReceivableStatus.open.value,
            payment_method=body.payment_method,
            notes=body.notes,
        )
        db.add(receivable)
    db.refresh(receivable)
    return receivable_dict(receivable)


@router.post("/contas-receber/{receivable_id}/receber")
def receive(receivable_id: int, body: Optional[Settlement] = None, db: Session = Depends(get_db)):
    body = body or Settlement()
    with transaction(db):
        receivable = db.get(Receivable, receivable_id)
        if not receivable:
            raise NotFoundError("Receivable not found")
        finance.settle_receivable(db, receivable, body.settled_on, body.payment_method)
    return {"message": "Payment received", "receivable": receivable_dict(receivable)}


@router.delete("/contas-receber/{receivable_id}")
def cancel_receivable(receivable_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        receivable = db.get(Receivable, receivable_id)
        if not receivable:
            raise NotFoundError("Receivable not found")
        if receivable.status not in (ReceivableStatus.open.value, ReceivableStatus.overdue.value):
            raise ValidationError(f"Receivable is {receivable.status} and cannot be cancelled")
        receivable.status = ReceivableStatus.cancelled.value
    return {"message": "Receivable cancelled", "id": receivable_id}


# ---------- PAYABLES ----------
@router.get("/contas-pagar")
def list_payables(
    status: Optional[str] = None,
    supplier_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Payable)
    if status:
        q = q.filter(Payable.status == parse_status(PayableStatus, status).value)
    if supplier_id is not None:
        q = q.filter(Payable.supplier_id == supplier_id)
    today = local_today()
    return [payable_dict(p, today) for p in q.order_by(Payable.due_on.asc(), Payable.id.asc()).all()]


@router.post("/contas-pagar", status_code=201)
def create_payable(body: PayableCreate, db: Session = Depends(get_db)):
    if body.supplier_id is not None and not db.get(Supplier, body.supplier_id):
        raise NotFoundError("Supplier not found")
    with transaction(db):
        account = finance.resolve_account(db, body.account_code)
        payable = Payable(
            supplier_id=body.supplier_id,
            account_id=account.id if account else None,
            description=body.description,
            amount=body.amount,
            issued_on=body.issued_on or local_today(),
            due_on=body.due_on,
            status=PayableStatus.open.value,
            payment_method=body.payment_method,
            notes=body.notes,
        )
        db.add(payable)
    db.refresh(payable)
    return payable_dict(payable)


@router.post("/contas-pagar/{payable_id}/pagar")
def pay(payable_id: int, body: Optional[Settlement] = None, db: Session = Depends(get_db)):
    body = body or Settlement()
    with transaction(db):
        payable = db.get(Payable, payable_id)
        if not payable:
            raise NotFoundError("Payable not found")
        finance.settle_payable(db, payable, body.settled_on, body.payment_method)
    return {"message": "Payment registered", "payable": payable_dict(payable)}


@router.delete("/contas-pagar/{payable_id}")
def cancel_payable(payable_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        payable = db.get(Payable, payable_id)
        if not payable:
            raise NotFoundError("Payable not found")
        if payable.status not in (PayableStatus.open.value, PayableStatus.overdue.value):
            raise ValidationError(f"Payable is {payable.status} and cannot be cancelled")
        payable.status = PayableStatus.cancelled.value
    return {"message": "Payable cancelled", "id": payable_id}


# ---------- CASH FLOW ----------
@router.get("/fluxo-caixa")
def cash_flow(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    today = local_today()
    date_to = date_to or today
    date_from = date_from or date_to.replace(day=1)
    return {"date_from": date_from.isoformat(), "date_to": date_to.isoformat(), **finance.cash_flow(db, date_from, date_to)}


@router.get("/resumo")
def summary(db: Session = Depends(get_db)):
    return finance.summary(db)

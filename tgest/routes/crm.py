from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import ValidationError
from ..schemas.common import HistoryType
from ..schemas.crm import HistoryCreate, PreferencesUpdate
from ..services import crm, scoring
from ..services.history import record_history
from ..services.lifecycle import parse_status


router = APIRouter(prefix="/api/crm", tags=["crm"])


@router.get("/clientes/{customer_id}/perfil")
def customer_profile(customer_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        data = crm.profile(db, customer_id)
    return data


@router.get("/clientes/{customer_id}/historico")
def customer_history(
    customer_id: int,
    limit: int = 50,
    type: Optional[str] = None,
    db: Session = Depends(get_db),
):
    entry_type = parse_status(HistoryType, type).value if type else None
    return [crm.history_dict(h) for h in crm.list_history(db, customer_id, max(limit, 1), entry_type)]


@router.post("/clientes/{customer_id}/historico", status_code=201)
def add_history(customer_id: int, body: HistoryCreate, db: Session = Depends(get_db)):
    with transaction(db):
        crm.get_customer(db, customer_id)
        entry = record_history(db, customer_id, body.type, body.description, user=body.user)
    return crm.history_dict(entry)


@router.get("/retencao")
def retention(status: Optional[str] = None, db: Session = Depends(get_db)):
    if status and status not in scoring.RETENTION_STATUSES:
        allowed = ", ".join(scoring.RETENTION_STATUSES)
        raise ValidationError(f"Invalid status '{status}'. Allowed: {allowed}")
    return crm.retention_analysis(db, status=status)


@router.get("/clientes/{customer_id}/risco-perda")
def loss_risk(customer_id: int, db: Session = Depends(get_db)):
    return crm.loss_risk(db, customer_id)


@router.get("/clientes/{customer_id}/preferencias")
def get_preferences(customer_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        pref = crm.get_or_create_preferences(db, customer_id)
    return crm.preferences_dict(pref)


@router.put("/clientes/{customer_id}/preferencias")
def update_preferences(customer_id: int, body: PreferencesUpdate, db: Session = Depends(get_db)):
    with transaction(db):
        pref = crm.update_preferences(db, customer_id, body.model_dump(exclude_unset=True))
    return crm.preferences_dict(pref)


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    return crm.dashboard(db)

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Mechanic, ServiceOrder
from ..schemas.catalog import MechanicCreate, MechanicResponse, MechanicUpdate
from ..schemas.common import OrderStatus
from ..services.lifecycle import OPEN_ORDER_STATUSES


router = APIRouter(prefix="/api/mecanicos", tags=["mechanics"])


def _ensure_unique_tax_id(db: Session, tax_id: Optional[str], exclude_id: Optional[int] = None):
    if not tax_id:
        return
    q = db.query(Mechanic).filter(Mechanic.tax_id == tax_id)
    if exclude_id is not None:
        q = q.filter(Mechanic.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail="A mechanic with this CPF already exists")


@router.get("", response_model=List[MechanicResponse])
def list_mechanics(active: Optional[bool] = None, db: Session = Depends(get_db)):
    q = db.query(Mechanic)
    if active is not None:
        q = q.filter(Mechanic.active.is_(active))
    return q.order_by(Mechanic.name.asc()).all()


@router.get("/{mechanic_id}")
def get_mechanic(mechanic_id: int, db: Session = Depends(get_db)):
    mechanic = db.get(Mechanic, mechanic_id)
    if not mechanic:
        raise HTTPException(status_code=404, detail="Mechanic not found")
    counts = dict(
        db.query(ServiceOrder.status, func.count(ServiceOrder.id))
        .filter(ServiceOrder.mechanic_id == mechanic.id)
        .group_by(ServiceOrder.status)
        .all()
    )
    data = MechanicResponse.model_validate(mechanic).model_dump()
    data["open_orders"] = sum(counts.get(s.value, 0) for s in OPEN_ORDER_STATUSES)
    data["finalized_orders"] = counts.get(OrderStatus.finalized.value, 0)
    return data


@router.post("", response_model=MechanicResponse, status_code=201)
def create_mechanic(body: MechanicCreate, db: Session = Depends(get_db)):
    if not (body.name or "").strip():
        raise HTTPException(status_code=400, detail="Name is required")
    _ensure_unique_tax_id(db, body.tax_id)
    with transaction(db):
        mechanic = Mechanic(**body.model_dump(), active=True)
        db.add(mechanic)
    db.refresh(mechanic)
    return mechanic


@router.put("/{mechanic_id}", response_model=MechanicResponse)
def update_mechanic(mechanic_id: int, body: MechanicUpdate, db: Session = Depends(get_db)):
    mechanic = db.get(Mechanic, mechanic_id)
    if not mechanic:
        raise HTTPException(status_code=404, detail="Mechanic not found")
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")
    if "tax_id" in changes:
        _ensure_unique_tax_id(db, changes["tax_id"], exclude_id=mechanic.id)
    with transaction(db):
        for k, v in changes.items():
            setattr(mechanic, k, v)
    db.refresh(mechanic)
    return mechanic


@router.delete("/{mechanic_id}")
def delete_mechanic(mechanic_id: int, db: Session = Depends(get_db)):
    mechanic = db.get(Mechanic, mechanic_id)
    if not mechanic:
        raise HTTPException(status_code=404, detail="Mechanic not found")
    with transaction(db):
        mechanic.active = False
    return {"message": "Mechanic deactivated", "id": mechanic_id}

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Part, Supplier
from ..schemas.catalog import PartCreate, PartResponse, PartUpdate
from ..services.stock import low_stock_parts


router = APIRouter(prefix="/api/pecas", tags=["parts"])


def _ensure_unique_code(db: Session, code: Optional[str], exclude_id: Optional[int] = None):
    if not code:
        return
    q = db.query(Part).filter(Part.code == code)
    if exclude_id is not None:
        q = q.filter(Part.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=f"Part code {code} already exists")


def _check_supplier(db: Session, supplier_id: Optional[int]):
    if supplier_id is not None and not db.get(Supplier, supplier_id):
        raise HTTPException(status_code=404, detail="Supplier not found")


@router.get("", response_model=List[PartResponse])
def list_parts(
    active: Optional[bool] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    db: Session = Depends(get_db),
):
    q = db.query(Part)
    if active is not None:
        q = q.filter(Part.active.is_(active))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Part.name.ilike(term), Part.code.ilike(term), Part.make.ilike(term)))
    if low_stock:
        q = q.filter(Part.stock <= Part.min_stock)
    return q.order_by(Part.name.asc()).all()


@router.get("/alertas/estoque-baixo")
def low_stock_alerts(db: Session = Depends(get_db)):
    parts = low_stock_parts(db)
    return [
        {
            **PartResponse.model_validate(p).model_dump(),
            "missing": max((p.min_stock or 0) - (p.stock or 0), 0),
        }
        for p in parts
    ]


@router.get("/{part_id}", response_model=PartResponse)
def get_part(part_id: int, db: Session = Depends(get_db)):
    part = db.get(Part, part_id)
    if not part:
        raise HTTPException(status_code=404, detail="Part not found")
    return part


@router.post("", response_model=PartResponse, status_code=201)
def create_part(body: PartCreate, db: Session = Depends(get_db)):
    if not (body.name or "").strip():
        raise HTTPException(status_code=400, detail="Name is required")
    _ensure_unique_code(db, body.code)
    _check_supplier(db, body.supplier_id)
    with transaction(db):
        part = Part(**body.model_dump(), active=True)
        db.add(part)
    db.refresh(part)
    return part


@router.put("/{part_id}", response_model=PartResponse)
def update_part(part_id: int, body: PartUpdate, db: Session = Depends(get_db)):
    part = db.get(Part, part_id)
    if not part:
        raise HTTPException(status_code=404, detail="Part not found")
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")
    if "code" in changes:
        _ensure_unique_code(db, changes["code"], exclude_id=part.id)
    if "supplier_id" in changes:
        _check_supplier(db, changes["supplier_id"])
    with transaction(db):
        for k, v in changes.items():
            setattr(part, k, v)
        part.updated_at = datetime.utcnow()
    db.refresh(part)
    return part


@router.delete("/{part_id}")
def delete_part(part_id: int, db: Session = Depends(get_db)):
    part = db.get(Part, part_id)
    if not part:
        raise HTTPException(status_code=404, detail="Part not found")
    with transaction(db):
        part.active = False
        part.updated_at = datetime.utcnow()
    return {"message": "Part deactivated", "id": part_id}

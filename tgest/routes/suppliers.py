from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Supplier
from ..schemas.catalog import SupplierCreate, SupplierResponse, SupplierUpdate


router = APIRouter(prefix="/api/fornecedores", tags=["suppliers"])


def _ensure_unique_tax_id(db: Session, tax_id: Optional[str], exclude_id: Optional[int] = None):
    if not tax_id:
        return
    q = db.query(Supplier).filter(Supplier.tax_id == tax_id)
    if exclude_id is not None:
        q = q.filter(Supplier.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail="A supplier with this CNPJ already exists")


@router.get("", response_model=List[SupplierResponse])
def list_suppliers(
    search: Optional[str] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Supplier)
    if active is not None:
        q = q.filter(Supplier.active.is_(active))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Supplier.name.ilike(term), Supplier.tax_id.ilike(term), Supplier.contact_name.ilike(term)))
    return q.order_by(Supplier.name.asc()).all()


@router.get("/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.post("", response_model=SupplierResponse, status_code=201)
def create_supplier(body: SupplierCreate, db: Session = Depends(get_db)):
    if not (body.name or "").strip():
        raise HTTPException(status_code=400, detail="Name is required")
    _ensure_unique_tax_id(db, body.tax_id)
    with transaction(db):
        supplier = Supplier(**body.model_dump(), active=True)
        db.add(supplier)
    db.refresh(supplier)
    return supplier


@router.put("/{supplier_id}", response_model=SupplierResponse)
def update_supplier(supplier_id: int, body: SupplierUpdate, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")
    if "tax_id" in changes:
        _ensure_unique_tax_id(db, changes["tax_id"], exclude_id=supplier.id)
    with transaction(db):
        for k, v in changes.items():
            setattr(supplier, k, v)
    db.refresh(supplier)
    return supplier


@router.delete("/{supplier_id}")
def delete_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    with transaction(db):
        supplier.active = False
    return {"message": "Supplier deactivated", "id": supplier_id}

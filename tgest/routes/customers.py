from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Customer, Vehicle
from ..schemas.customers import CustomerCreate, CustomerResponse, CustomerUpdate, VehicleResponse


router = APIRouter(prefix="/api/clientes", tags=["customers"])


def _ensure_unique_tax_id(db: Session, tax_id: Optional[str], exclude_id: Optional[int] = None):
    if not tax_id:
        return
    q = db.query(Customer).filter(Customer.tax_id == tax_id)
    if exclude_id is not None:
        q = q.filter(Customer.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail="A customer with this CPF/CNPJ already exists")


@router.get("", response_model=List[CustomerResponse])
def list_customers(
    active: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Customer)
    if active is not None:
        q = q.filter(Customer.active.is_(active))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(term), Customer.phone.ilike(term), Customer.tax_id.ilike(term)))
    return q.order_by(Customer.name.asc()).all()


@router.get("/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    data = CustomerResponse.model_validate(customer).model_dump()
    vehicles = db.query(Vehicle).filter(Vehicle.customer_id == customer.id).order_by(Vehicle.plate).all()
    data["vehicles"] = [VehicleResponse.model_validate(v).model_dump() for v in vehicles]
    return data


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(body: CustomerCreate, db: Session = Depends(get_db)):
    if not body.name or not body.phone:
        raise HTTPException(status_code=400, detail="Name and phone are required")
    _ensure_unique_tax_id(db, body.tax_id)
    with transaction(db):
        customer = Customer(**body.model_dump(), active=True)
        db.add(customer)
    db.refresh(customer)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: int, body: CustomerUpdate, db: Session = Depends(get_db)):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    changes = body.model_dump(exclude_unset=True)
    for field in ("name", "phone"):
        if field in changes and not (changes[field] or "").strip():
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
    if "tax_id" in changes:
        _ensure_unique_tax_id(db, changes["tax_id"], exclude_id=customer.id)
    with transaction(db):
        for k, v in changes.items():
            setattr(customer, k, v)
        customer.updated_at = datetime.utcnow()
    db.refresh(customer)
    return customer


@router.delete("/{customer_id}")
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    with transaction(db):
        customer.active = False
        customer.updated_at = datetime.utcnow()
    return {"message": "Customer deactivated", "id": customer_id}

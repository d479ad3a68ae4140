from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import Customer, ServiceOrder, Vehicle
from ..schemas.customers import CustomerResponse, VehicleCreate, VehicleResponse, VehicleUpdate
from ..services.time_rules import iso


router = APIRouter(prefix="/api/veiculos", tags=["vehicles"])


def _ensure_unique_plate(db: Session, plate: str, exclude_id: Optional[int] = None):
    q = db.query(Vehicle).filter(Vehicle.plate == plate)
    if exclude_id is not None:
        q = q.filter(Vehicle.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=f"Plate {plate} is already registered")


@router.get("", response_model=List[VehicleResponse])
def list_vehicles(
    customer_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Vehicle)
    if customer_id is not None:
        q = q.filter(Vehicle.customer_id == customer_id)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Vehicle.plate.ilike(term), Vehicle.model.ilike(term), Vehicle.make.ilike(term)))
    return q.order_by(Vehicle.plate.asc()).all()


@router.get("/{vehicle_id}")
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    data = VehicleResponse.model_validate(vehicle).model_dump()
    data["customer"] = CustomerResponse.model_validate(vehicle.customer).model_dump() if vehicle.customer else None
    orders = (
        db.query(ServiceOrder)
        .filter(ServiceOrder.vehicle_id == vehicle.id)
        .order_by(ServiceOrder.opened_at.desc())
        .all()
    )
    data["orders"] = [
        {
            "id": o.id,
            "number": o.number,
            "status": o.status,
            "total": o.total,
            "odometer": o.odometer,
            "opened_at": iso(o.opened_at),
            "closed_at": iso(o.closed_at),
        }
        for o in orders
    ]
    return data


@router.post("", response_model=VehicleResponse, status_code=201)
def create_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    if not body.plate or not body.make or not body.model:
        raise HTTPException(status_code=400, detail="Plate, make and model are required")
    if not db.get(Customer, body.customer_id):
        raise HTTPException(status_code=404, detail="Customer not found")
    _ensure_unique_plate(db, body.plate)
    with transaction(db):
        vehicle = Vehicle(**body.model_dump(exclude={"odometer"}), odometer=body.odometer or 0)
        db.add(vehicle)
    db.refresh(vehicle)
    return vehicle


@router.put("/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(vehicle_id: int, body: VehicleUpdate, db: Session = Depends(get_db)):
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    changes = body.model_dump(exclude_unset=True)
    if changes.get("customer_id") is not None and not db.get(Customer, changes["customer_id"]):
        raise HTTPException(status_code=404, detail="Customer not found")
    if changes.get("plate"):
        _ensure_unique_plate(db, changes["plate"], exclude_id=vehicle.id)
    with transaction(db):
        for k, v in changes.items():
            if v is None and k in ("customer_id", "plate", "make", "model"):
                continue
            setattr(vehicle, k, v)
        vehicle.updated_at = datetime.utcnow()
    db.refresh(vehicle)
    return vehicle


@router.delete("/{vehicle_id}")
def delete_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    vehicle = db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    if db.query(ServiceOrder.id).filter(ServiceOrder.vehicle_id == vehicle.id).first():
        raise HTTPException(status_code=409, detail="Vehicle has service orders and cannot be deleted")
    with transaction(db):
        db.delete(vehicle)
    return {"message": "Vehicle deleted", "id": vehicle_id}

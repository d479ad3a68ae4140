from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Customer, Vehicle


router = APIRouter(prefix="/api", tags=["search"])


@router.get("/busca-rapida")
def quick_search(q: Optional[str] = None, db: Session = Depends(get_db)):
    """Plate lookup plus up to five customers whose name matches."""
    term = (q or "").strip()
    if not term:
        raise HTTPException(status_code=400, detail="Search term is required")

    plate = term.upper().replace(" ", "").replace("-", "")
    vehicle = db.query(Vehicle).filter(Vehicle.plate == plate).first()
    if vehicle is None:
        vehicle = db.query(Vehicle).filter(Vehicle.plate.ilike(f"%{plate}%")).order_by(Vehicle.plate).first()
    customers = (
        db.query(Customer)
        .filter(Customer.name.ilike(f"%{term}%"))
        .order_by(Customer.name)
        .limit(5)
        .all()
    )
    return {
        "vehicle": {
            "id": vehicle.id,
            "plate": vehicle.plate,
            "make": vehicle.make,
            "model": vehicle.model,
            "customer_id": vehicle.customer_id,
            "customer_name": vehicle.customer.name if vehicle.customer else None,
        } if vehicle else None,
        "customers": [
            {"id": c.id, "name": c.name, "phone": c.phone, "email": c.email} for c in customers
        ],
    }

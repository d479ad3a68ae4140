from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..models.models import ServiceCategory, ServiceType
from ..schemas.catalog import ServiceCategoryResponse, ServiceTypeCreate, ServiceTypeResponse, ServiceTypeUpdate


router = APIRouter(prefix="/api/servicos", tags=["services"])


def _check_category(db: Session, category_id: Optional[int]):
    if category_id is not None and not db.get(ServiceCategory, category_id):
        raise HTTPException(status_code=404, detail="Category not found")


@router.get("/categorias", response_model=List[ServiceCategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    return db.query(ServiceCategory).order_by(ServiceCategory.name.asc()).all()


@router.get("", response_model=List[ServiceTypeResponse])
def list_service_types(
    category_id: Optional[int] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    q = db.query(ServiceType)
    if category_id is not None:
        q = q.filter(ServiceType.category_id == category_id)
    if active is not None:
        q = q.filter(ServiceType.active.is_(active))
    return q.order_by(ServiceType.name.asc()).all()


@router.get("/{service_type_id}", response_model=ServiceTypeResponse)
def get_service_type(service_type_id: int, db: Session = Depends(get_db)):
    service_type = db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service not found")
    return service_type


@router.post("", response_model=ServiceTypeResponse, status_code=201)
def create_service_type(body: ServiceTypeCreate, db: Session = Depends(get_db)):
    if not (body.name or "").strip():
        raise HTTPException(status_code=400, detail="Name is required")
    _check_category(db, body.category_id)
    with transaction(db):
        service_type = ServiceType(**body.model_dump(), active=True)
        db.add(service_type)
    db.refresh(service_type)
    return service_type


@router.put("/{service_type_id}", response_model=ServiceTypeResponse)
def update_service_type(service_type_id: int, body: ServiceTypeUpdate, db: Session = Depends(get_db)):
    service_type = db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service not found")
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")
    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    with transaction(db):
        for k, v in changes.items():
            setattr(service_type, k, v)
    db.refresh(service_type)
    return service_type


@router.delete("/{service_type_id}")
def delete_service_type(service_type_id: int, db: Session = Depends(get_db)):
    service_type = db.get(ServiceType, service_type_id)
    if not service_type:
        raise HTTPException(status_code=404, detail="Service not found")
    with transaction(db):
        service_type.active = False
    return {"message": "Service deactivated", "id": service_type_id}

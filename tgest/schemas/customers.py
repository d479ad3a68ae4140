from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from .common import blank_to_none


class CustomerBase(BaseModel):
    name: str
    phone: str
    tax_id: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("tax_id", "email", "address", "city", "state", "zip_code", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    notes: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("tax_id", "email", "address", "city", "state", "zip_code", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class CustomerResponse(CustomerBase):
    id: int
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VehicleBase(BaseModel):
    customer_id: int
    plate: str
    make: str
    model: str
    year: Optional[int] = None
    color: Optional[str] = None
    odometer: Optional[int] = 0
    chassis: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("color", "chassis", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @field_validator("plate", mode="before")
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper().replace(" ", "") if isinstance(v, str) else v


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(BaseModel):
    customer_id: Optional[int] = None
    plate: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    odometer: Optional[int] = None
    chassis: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("color", "chassis", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)

    @field_validator("plate", mode="before")
    @classmethod
    def normalize_plate(cls, v):
        return v.strip().upper().replace(" ", "") if isinstance(v, str) else v


class VehicleResponse(VehicleBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

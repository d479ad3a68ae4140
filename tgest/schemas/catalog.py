from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import blank_to_none


# ---------- PARTS ----------
class PartBase(BaseModel):
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    make: Optional[str] = None
    cost_price: float = Field(default=0, ge=0)
    sale_price: float = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=5, ge=0)
    location: Optional[str] = None
    supplier_id: Optional[int] = None

    @field_validator("code", "description", "make", "location", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PartCreate(PartBase):
    pass


class PartUpdate(BaseModel):
    """Stock is not editable here; it only moves through /api/estoque/ajuste and orders."""
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    make: Optional[str] = None
    cost_price: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    location: Optional[str] = None
    supplier_id: Optional[int] = None
    active: Optional[bool] = None

    @field_validator("code", "description", "make", "location", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PartResponse(PartBase):
    id: int
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---------- SERVICE TYPES ----------
class ServiceCategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class ServiceTypeBase(BaseModel):
    name: str
    category_id: Optional[int] = None
    description: Optional[str] = None
    default_price: float = Field(default=0, ge=0)
    estimated_minutes: int = Field(default=60, gt=0)

    @field_validator("description", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class ServiceTypeCreate(ServiceTypeBase):
    pass


class ServiceTypeUpdate(BaseModel):
    name: Optional[str] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    default_price: Optional[float] = Field(default=None, ge=0)
    estimated_minutes: Optional[int] = Field(default=None, gt=0)
    active: Optional[bool] = None


class ServiceTypeResponse(ServiceTypeBase):
    id: int
    active: bool
    category: Optional[ServiceCategoryResponse] = None

    class Config:
        from_attributes = True


# ---------- MECHANICS ----------
class MechanicBase(BaseModel):
    name: str
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    salary: Optional[float] = None
    commission_percent: float = Field(default=0, ge=0, le=100)
    hired_on: Optional[date] = None

    @field_validator("tax_id", "phone", "email", "specialty", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class MechanicCreate(MechanicBase):
    pass


class MechanicUpdate(BaseModel):
    name: Optional[str] = None
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    specialty: Optional[str] = None
    salary: Optional[float] = None
    commission_percent: Optional[float] = Field(default=None, ge=0, le=100)
    hired_on: Optional[date] = None
    active: Optional[bool] = None

    @field_validator("tax_id", "phone", "email", "specialty", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class MechanicResponse(MechanicBase):
    id: int
    active: bool

    class Config:
        from_attributes = True


# ---------- SUPPLIERS ----------
class SupplierBase(BaseModel):
    name: str
    tax_id: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("tax_id", "contact_name", "phone", "email", "address", "city", "state", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return blank_to_none(v)


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    tax_id: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    notes: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("tax_id", "contact_name", "phone", "email", "address", "city", "state", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return blank_to_none(v)


class SupplierResponse(SupplierBase):
    id: int
    active: bool

    class Config:
        from_attributes = True

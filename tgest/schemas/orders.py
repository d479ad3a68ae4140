from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import ChecklistStatus, CommunicationType, blank_to_none


class StatusChange(BaseModel):
    # Kept as plain text so unknown values reach the transition table and come back as VALIDATION_ERROR
    status: str
    author: Optional[str] = None


# ---------- LINE ITEMS ----------
class ServiceItemCreate(BaseModel):
    description: Optional[str] = None
    service_type_id: Optional[int] = None
    quantity: float = Field(default=1, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    mechanic_id: Optional[int] = None

    @field_validator("description", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PartItemCreate(BaseModel):
    part_id: int
    quantity: int = Field(default=1, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)


# ---------- SERVICE ORDERS ----------
class OrderCreate(BaseModel):
    customer_id: int
    vehicle_id: int
    mechanic_id: Optional[int] = None
    reported_problem: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    odometer: Optional[int] = Field(default=None, ge=0)
    expected_at: Optional[date] = None
    discount: float = Field(default=0, ge=0)

    @field_validator("reported_problem", "diagnosis", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class OrderUpdate(BaseModel):
    mechanic_id: Optional[int] = None
    expected_at: Optional[date] = None
    reported_problem: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    odometer: Optional[int] = Field(default=None, ge=0)
    discount: Optional[float] = Field(default=None, ge=0)

    @field_validator("reported_problem", "diagnosis", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


# ---------- CHECKLIST / COMMUNICATIONS ----------
class ChecklistItemCreate(BaseModel):
    item: str
    status: ChecklistStatus = ChecklistStatus.not_checked
    notes: Optional[str] = None

    @field_validator("item", mode="before")
    @classmethod
    def strip_item(cls, v):
        return v.strip() if isinstance(v, str) else v


class ChecklistItemUpdate(BaseModel):
    item: Optional[str] = None
    status: Optional[ChecklistStatus] = None
    notes: Optional[str] = None


class ChecklistBulkCreate(BaseModel):
    items: List[ChecklistItemCreate]


class CommunicationCreate(BaseModel):
    type: CommunicationType
    content: str
    author: Optional[str] = None

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, v):
        return v.strip() if isinstance(v, str) else v


# ---------- QUOTES ----------
class QuoteCreate(BaseModel):
    customer_id: int
    vehicle_id: int
    reported_problem: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[date] = None
    discount: float = Field(default=0, ge=0)
    services: List[ServiceItemCreate] = []
    parts: List[PartItemCreate] = []

    @field_validator("reported_problem", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class QuoteUpdate(BaseModel):
    reported_problem: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[date] = None
    discount: Optional[float] = Field(default=None, ge=0)

    @field_validator("reported_problem", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class QuoteConvert(BaseModel):
    author: Optional[str] = None

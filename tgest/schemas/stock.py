from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import blank_to_none


class StockAdjustment(BaseModel):
    part_id: int
    quantity: int
    reason: str
    notes: Optional[str] = None
    user: Optional[str] = None

    @field_validator("notes", "user", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PurchaseOrderItemCreate(BaseModel):
    part_id: int
    quantity: int = Field(gt=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    items: List[PurchaseOrderItemCreate]
    expected_at: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PurchaseOrderStatusChange(BaseModel):
    status: str

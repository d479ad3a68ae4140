from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import blank_to_none


class ReceivableCreate(BaseModel):
    description: str
    amount: float = Field(gt=0)
    due_on: date
    issued_on: Optional[date] = None
    customer_id: Optional[int] = None
    order_id: Optional[int] = None
    account_code: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("account_code", "payment_method", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class PayableCreate(BaseModel):
    description: str
    amount: float = Field(gt=0)
    due_on: date
    issued_on: Optional[date] = None
    supplier_id: Optional[int] = None
    account_code: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("account_code", "payment_method", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class Settlement(BaseModel):
    settled_on: Optional[date] = None
    payment_method: Optional[str] = None

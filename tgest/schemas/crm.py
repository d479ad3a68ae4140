from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import Channel, HistoryType, NotificationType, Priority, ReminderType, blank_to_none


# ---------- HISTORY / PREFERENCES ----------
class HistoryCreate(BaseModel):
    type: HistoryType = HistoryType.note
    description: str
    user: Optional[str] = None


class PreferencesUpdate(BaseModel):
    receive_reminders: Optional[bool] = None
    receive_promotions: Optional[bool] = None
    receive_surveys: Optional[bool] = None
    preferred_channel: Optional[Channel] = None
    best_time: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("best_time", "notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


# ---------- REMINDERS ----------
class ReminderCreate(BaseModel):
    customer_id: int
    vehicle_id: int
    type: ReminderType
    description: str
    due_date: Optional[date] = None
    due_km: Optional[int] = Field(default=None, gt=0)
    priority: Priority = Priority.medium
    order_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


class ReminderUpdate(BaseModel):
    type: Optional[ReminderType] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    due_km: Optional[int] = Field(default=None, gt=0)
    priority: Optional[Priority] = None
    notes: Optional[str] = None


class ReminderStatusChange(BaseModel):
    status: str


class ChannelChoice(BaseModel):
    channel: Channel = Channel.whatsapp


class AutoCreateRequest(BaseModel):
    order_id: int


# ---------- SURVEYS ----------
class SurveyCreate(BaseModel):
    order_id: int


class SurveyAnswer(BaseModel):
    service_rating: int = Field(ge=1, le=5)
    quality_rating: int = Field(ge=1, le=5)
    timeliness_rating: int = Field(ge=1, le=5)
    price_rating: int = Field(ge=1, le=5)
    recommend: Optional[bool] = None
    comment: Optional[str] = None

    @field_validator("comment", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return blank_to_none(v)


# ---------- NOTIFICATIONS ----------
class NotificationCreate(BaseModel):
    customer_id: int
    type: NotificationType
    channel: Channel
    message: str
    subject: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None


class BulkNotificationCreate(BaseModel):
    customer_ids: List[int]
    type: NotificationType = NotificationType.campaign
    channel: Channel
    message: str
    subject: Optional[str] = None


class CrmSettingsUpdate(BaseModel):
    values: Dict[str, Optional[str]]

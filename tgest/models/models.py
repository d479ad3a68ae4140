from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    Text,
    Index,
    CheckConstraint,
    Computed,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from ..schemas.common import (
    Channel,
    ChecklistStatus,
    CommunicationType,
    HistoryType,
    MovementType,
    NotificationStatus,
    NotificationType,
    OrderStatus,
    PayableStatus,
    Priority,
    PurchaseOrderStatus,
    QuoteStatus,
    ReceivableStatus,
    ReminderStatus,
    ReminderType,
    SurveyStatus,
)


def int_pk() -> Mapped[int]:
    return mapped_column(Integer, primary_key=True, autoincrement=True)


def one_of(column: str, allowed, name: str) -> CheckConstraint:
    """CHECK constraint limiting a string column to the values of an enum (or plain strings)."""
    values = ", ".join("'%s'" % getattr(v, "value", v) for v in allowed)
    return CheckConstraint(f"{column} IN ({values})", name=name)


# ---------- CUSTOMERS / VEHICLES ----------
class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(20), unique=True)  # CPF / CNPJ
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200))
    address: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(2))
    zip_code: Mapped[Optional[str]] = mapped_column(String(10))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    vehicles = relationship("Vehicle", back_populates="customer")
    preference = relationship("CustomerPreference", back_populates="customer", uselist=False)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[int] = int_pk()
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    plate: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    make: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    year: Mapped[Optional[int]] = mapped_column(Integer)
    color: Mapped[Optional[str]] = mapped_column(String(30))
    odometer: Mapped[int] = mapped_column(Integer, default=0)  # km
    chassis: Mapped[Optional[str]] = mapped_column(String(30))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    customer = relationship("Customer", back_populates="vehicles")


# ---------- CATALOG ----------
class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(20), unique=True)  # CNPJ
    contact_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    address: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(2))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Part(Base):
    __tablename__ = "parts"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_parts_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_parts_min_stock_non_negative"),
    )

    id: Mapped[int] = int_pk()
    code: Mapped[Optional[str]] = mapped_column(String(50), unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    make: Mapped[Optional[str]] = mapped_column(String(50))
    cost_price: Mapped[float] = mapped_column(Float, default=0)
    sale_price: Mapped[float] = mapped_column(Float, default=0)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, default=5)
    location: Mapped[Optional[str]] = mapped_column(String(50))
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id"))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    supplier = relationship("Supplier")


class Mechanic(Base):
    __tablename__ = "mechanics"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(14), unique=True)  # CPF
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    specialty: Mapped[Optional[str]] = mapped_column(String(100))
    salary: Mapped[Optional[float]] = mapped_column(Float)
    commission_percent: Mapped[float] = mapped_column(Float, default=0)
    hired_on: Mapped[Optional[date]] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ServiceCategory(Base):
    __tablename__ = "service_categories"

    id: Mapped[int] = int_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))


class ServiceType(Base):
    __tablename__ = "service_types"

    id: Mapped[int] = int_pk()
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_categories.id"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    default_price: Mapped[float] = mapped_column(Float, default=0)
    estimated_minutes: Mapped[int] = mapped_column(Integer, default=60)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    category = relationship("ServiceCategory")


# ---------- SERVICE ORDERS ----------
class ServiceOrder(Base):
    __tablename__ = "service_orders"
    __table_args__ = (
        one_of("status", OrderStatus, "ck_service_orders_status"),
        CheckConstraint("discount >= 0", name="ck_service_orders_discount"),
    )

    id: Mapped[int] = int_pk()
    number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)
    mechanic_id: Mapped[Optional[int]] = mapped_column(ForeignKey("mechanics.id"))
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="AWAITING_DIAGNOSIS", index=True)
    reported_problem: Mapped[Optional[str]] = mapped_column(Text)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    odometer: Mapped[Optional[int]] = mapped_column(Integer)
    parts_total: Mapped[float] = mapped_column(Float, default=0)
    services_total: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    total: Mapped[float] = mapped_column(Float, default=0)
    opened_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expected_at: Mapped[Optional[date]] = mapped_column(Date)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")
    mechanic = relationship("Mechanic")
    services = relationship("OrderService", back_populates="order", cascade="all, delete-orphan")
    parts = relationship("OrderPart", back_populates="order", cascade="all, delete-orphan")
    checklist = relationship("ChecklistItem", back_populates="order", cascade="all, delete-orphan")
    communications = relationship(
        "OrderCommunication", back_populates="order", cascade="all, delete-orphan", order_by="OrderCommunication.id"
    )


class OrderService(Base):
    __tablename__ = "order_services"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_services_quantity"),
    )

    id: Mapped[int] = int_pk()
    order_id: Mapped[int] = mapped_column(ForeignKey("service_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    service_type_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_types.id"))
    mechanic_id: Mapped[Optional[int]] = mapped_column(ForeignKey("mechanics.id"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, Computed("quantity * unit_price", persisted=True))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    order = relationship("ServiceOrder", back_populates="services")
    service_type = relationship("ServiceType")


class OrderPart(Base):
    __tablename__ = "order_parts"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_parts_quantity"),
    )

    id: Mapped[int] = int_pk()
    order_id: Mapped[int] = mapped_column(ForeignKey("service_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id: Mapped[int] = mapped_column(ForeignKey("parts.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    unit_cost: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, Computed("quantity * unit_price", persisted=True))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    order = relationship("ServiceOrder", back_populates="parts")
    part = relationship("Part")


class ChecklistItem(Base):
    __tablename__ = "order_checklist"
    __table_args__ = (
        one_of("status", ChecklistStatus, "ck_order_checklist_status"),
    )

    id: Mapped[int] = int_pk()
    order_id: Mapped[int] = mapped_column(ForeignKey("service_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="NOT_CHECKED")  # OK, DAMAGED, NOT_CHECKED
    notes: Mapped[Optional[str]] = mapped_column(Text)
    photo_path: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    order = relationship("ServiceOrder", back_populates="checklist")


class OrderCommunication(Base):
    __tablename__ = "order_communications"
    __table_args__ = (
        one_of("type", CommunicationType, "ck_order_communications_type"),
    )

    id: Mapped[int] = int_pk()
    order_id: Mapped[int] = mapped_column(ForeignKey("service_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # EMAIL, SMS, WHATSAPP, PHONE, SYSTEM
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    order = relationship("ServiceOrder", back_populates="communications")


# ---------- QUOTES ----------
class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (
        one_of("status", QuoteStatus, "ck_quotes_status"),
        CheckConstraint("discount >= 0", name="ck_quotes_discount"),
    )

    id: Mapped[int] = int_pk()
    number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    reported_problem: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    valid_until: Mapped[Optional[date]] = mapped_column(Date)
    parts_total: Mapped[float] = mapped_column(Float, default=0)
    services_total: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    total: Mapped[float] = mapped_column(Float, default=0)
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_orders.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")
    order = relationship("ServiceOrder")
    services = relationship("QuoteService", back_populates="quote", cascade="all, delete-orphan")
    parts = relationship("QuotePart", back_populates="quote", cascade="all, delete-orphan")


class QuoteService(Base):
    __tablename__ = "quote_services"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_quote_services_quantity"),
    )

    id: Mapped[int] = int_pk()
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    service_type_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_types.id"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, Computed("quantity * unit_price", persisted=True))

    quote = relationship("Quote", back_populates="services")


class QuotePart(Base):
    __tablename__ = "quote_parts"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_quote_parts_quantity"),
    )

    id: Mapped[int] = int_pk()
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    part_id: Mapped[int] = mapped_column(ForeignKey("parts.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, Computed("quantity * unit_price", persisted=True))

    quote = relationship("Quote", back_populates="parts")
    part = relationship("Part")


# ---------- STOCK ----------
class StockMovement(Base):
    __tablename__ = "stock_movements"
    __table_args__ = (
        one_of("type", MovementType, "ck_stock_movements_type"),
        CheckConstraint("new_stock >= 0", name="ck_stock_movements_new_stock"),
    )

    id: Mapped[int] = int_pk()
    part_id: Mapped[int] = mapped_column(ForeignKey("parts.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # ENTRY, EXIT, ADJUSTMENT, RETURN
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    reference_type: Mapped[Optional[str]] = mapped_column(String(30))
    reference_id: Mapped[Optional[int]] = mapped_column(Integer)
    user: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    part = relationship("Part")


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __table_args__ = (
        one_of("status", PurchaseOrderStatus, "ck_purchase_orders_status"),
    )

    id: Mapped[int] = int_pk()
    number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING")  # PENDING, APPROVED, RECEIVED, CANCELLED
    expected_at: Mapped[Optional[date]] = mapped_column(Date)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    total: Mapped[float] = mapped_column(Float, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    supplier = relationship("Supplier")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity"),
    )

    id: Mapped[int] = int_pk()
    purchase_order_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    part_id: Mapped[int] = mapped_column(ForeignKey("parts.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[float] = mapped_column(Float, default=0)
    line_total: Mapped[float] = mapped_column(Float, Computed("quantity * unit_cost", persisted=True))

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    part = relationship("Part")


# ---------- FINANCE ----------
class Account(Base):
    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        one_of("kind", ("REVENUE", "EXPENSE"), "ck_chart_of_accounts_kind"),
    )

    id: Mapped[int] = int_pk()
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(10), nullable=False)  # REVENUE, EXPENSE


class Receivable(Base):
    __tablename__ = "receivables"
    __table_args__ = (
        one_of("status", ReceivableStatus, "ck_receivables_status"),
        CheckConstraint("amount > 0", name="ck_receivables_amount"),
    )

    id: Mapped[int] = int_pk()
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"), index=True)
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_orders.id"), index=True)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("chart_of_accounts.id"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    issued_on: Mapped[date] = mapped_column(Date, nullable=False)
    due_on: Mapped[date] = mapped_column(Date, nullable=False)
    received_on: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="OPEN")  # OPEN, RECEIVED, OVERDUE, CANCELLED
    payment_method: Mapped[Optional[str]] = mapped_column(String(30))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")
    account = relationship("Account")


class Payable(Base):
    __tablename__ = "payables"
    __table_args__ = (
        one_of("status", PayableStatus, "ck_payables_status"),
        CheckConstraint("amount > 0", name="ck_payables_amount"),
    )

    id: Mapped[int] = int_pk()
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id"), index=True)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("chart_of_accounts.id"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    issued_on: Mapped[date] = mapped_column(Date, nullable=False)
    due_on: Mapped[date] = mapped_column(Date, nullable=False)
    paid_on: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="OPEN")  # OPEN, PAID, OVERDUE, CANCELLED
    payment_method: Mapped[Optional[str]] = mapped_column(String(30))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    supplier = relationship("Supplier")
    account = relationship("Account")


class CashFlowEntry(Base):
    __tablename__ = "cash_flow"
    __table_args__ = (
        one_of("kind", ("IN", "OUT"), "ck_cash_flow_kind"),
    )

    id: Mapped[int] = int_pk()
    kind: Mapped[str] = mapped_column(String(5), nullable=False)  # IN, OUT
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("chart_of_accounts.id"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    occurred_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    receivable_id: Mapped[Optional[int]] = mapped_column(ForeignKey("receivables.id"))
    payable_id: Mapped[Optional[int]] = mapped_column(ForeignKey("payables.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# ---------- CRM ----------
class Reminder(Base):
    __tablename__ = "reminders"
    __table_args__ = (
        one_of("type", ReminderType, "ck_reminders_type"),
        one_of("status", ReminderStatus, "ck_reminders_status"),
        one_of("priority", Priority, "ck_reminders_priority"),
    )

    id: Mapped[int] = int_pk()
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("service_orders.id"))
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    due_km: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    priority: Mapped[str] = mapped_column(String(10), default="MEDIUM")
    last_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    times_sent: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    customer = relationship("Customer")
    vehicle = relationship("Vehicle")


class Survey(Base):
    __tablename__ = "satisfaction_surveys"
    __table_args__ = (
        one_of("status", SurveyStatus, "ck_surveys_status"),
        one_of("channel", Channel, "ck_surveys_channel"),
    )

    id: Mapped[int] = int_pk()
    order_id: Mapped[int] = mapped_column(ForeignKey("service_orders.id"), nullable=False, unique=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    service_rating: Mapped[Optional[int]] = mapped_column(Integer)
    quality_rating: Mapped[Optional[int]] = mapped_column(Integer)
    timeliness_rating: Mapped[Optional[int]] = mapped_column(Integer)
    price_rating: Mapped[Optional[int]] = mapped_column(Integer)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    would_recommend: Mapped[Optional[bool]] = mapped_column(Boolean)
    channel: Mapped[Optional[str]] = mapped_column(String(20))
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")
    order = relationship("ServiceOrder")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        one_of("type", NotificationType, "ck_notifications_type"),
        one_of("channel", Channel, "ck_notifications_channel"),
        one_of("status", NotificationStatus, "ck_notifications_status"),
    )

    id: Mapped[int] = int_pk()
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # REMINDER, QUOTE, ORDER_READY, SURVEY, CAMPAIGN
    channel: Mapped[str] = mapped_column(String(20), nullable=False)  # WHATSAPP, SMS, EMAIL
    recipient: Mapped[str] = mapped_column(String(200), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(30))
    reference_id: Mapped[Optional[int]] = mapped_column(Integer)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")


class CustomerHistory(Base):
    __tablename__ = "customer_history"
    __table_args__ = (
        Index("ix_customer_history_customer_created", "customer_id", "created_at"),
        one_of("type", HistoryType, "ck_customer_history_type"),
    )

    id: Mapped[int] = int_pk()
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_type: Mapped[Optional[str]] = mapped_column(String(30))
    reference_id: Mapped[Optional[int]] = mapped_column(Integer)
    user: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class CustomerPreference(Base):
    __tablename__ = "customer_preferences"
    __table_args__ = (
        one_of("preferred_channel", Channel, "ck_customer_preferences_channel"),
    )

    id: Mapped[int] = int_pk()
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), unique=True, nullable=False)
    receive_reminders: Mapped[bool] = mapped_column(Boolean, default=True)
    receive_promotions: Mapped[bool] = mapped_column(Boolean, default=True)
    receive_surveys: Mapped[bool] = mapped_column(Boolean, default=True)
    preferred_channel: Mapped[str] = mapped_column(String(20), default="WHATSAPP")
    best_time: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    customer = relationship("Customer", back_populates="preference")


# ---------- SYSTEM ----------
class SettingValue(Base):
    __tablename__ = "settings_values"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(30), primary_key=True)  # e.g. OS2024
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

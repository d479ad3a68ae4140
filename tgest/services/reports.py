"""
Management reports over finalized service orders.
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import (
    Customer,
    Mechanic,
    OrderPart,
    OrderService,
    Part,
    ServiceCategory,
    ServiceOrder,
    ServiceType,
)
from ..schemas.common import OrderStatus
from . import scoring
from .time_rules import local_day_start_utc, local_today

FINALIZED = OrderStatus.finalized.value


def _period(q, column, date_from: Optional[date], date_to: Optional[date]):
    if date_from:
        q = q.filter(column >= local_day_start_utc(date_from))
    if date_to:
        q = q.filter(column < local_day_start_utc(date_to + timedelta(days=1)))
    return q


def profitability(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
    """
    Gross profit per finalized order.

    Revenue is services + parts less the order discount; cost is the parts'
    unit cost captured when they were added to the order.
    """
    q = db.query(ServiceOrder).filter(ServiceOrder.status == FINALIZED)
    orders = _period(q, ServiceOrder.closed_at, date_from, date_to).order_by(ServiceOrder.closed_at.desc()).all()
    rows = []
    for order in orders:
        gross_revenue = round((order.services_total or 0) + (order.parts_total or 0), 2)
        revenue = round(gross_revenue - (order.discount or 0), 2)
        cost = round(sum((p.quantity or 0) * (p.unit_cost or 0) for p in order.parts), 2)
        profit = round(revenue - cost, 2)
        rows.append({
            "order_id": order.id,
            "number": order.number,
            "customer": order.customer.name if order.customer else None,
            "closed_at": order.closed_at.isoformat() if order.closed_at else None,
            "services_revenue": order.services_total or 0,
            "parts_revenue": order.parts_total or 0,
            "gross_revenue": gross_revenue,
            "discount": order.discount or 0,
            "revenue": revenue,
            "parts_cost": cost,
            "gross_profit": profit,
            "margin_percent": round(profit / revenue * 100, 2) if revenue else 0,
        })
    total_revenue = round(sum(r["revenue"] for r in rows), 2)
    total_discount = round(sum(r["discount"] for r in rows), 2)
    total_cost = round(sum(r["parts_cost"] for r in rows), 2)
    margins = [r["margin_percent"] for r in rows if r["revenue"]]
    return {
        "orders": rows,
        "summary": {
            "orders": len(rows),
            "discounts": total_discount,
            "revenue": total_revenue,
            "parts_cost": total_cost,
            "gross_profit": round(total_revenue - total_cost, 2),
            "average_margin_percent": round(sum(margins) / len(margins), 2) if margins else 0,
        },
    }


def services_by_category(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Dict[str, Any]]:
    category_name = func.coalesce(ServiceCategory.name, "Uncategorized")
    q = (
        db.query(
            category_name.label("category"),
            func.count(OrderService.id),
            func.coalesce(func.sum(OrderService.line_total), 0),
        )
        .join(ServiceOrder, ServiceOrder.id == OrderService.order_id)
        .outerjoin(ServiceType, ServiceType.id == OrderService.service_type_id)
        .outerjoin(ServiceCategory, ServiceCategory.id == ServiceType.category_id)
        .filter(ServiceOrder.status == FINALIZED)
    )
    rows = _period(q, ServiceOrder.closed_at, date_from, date_to).group_by(category_name).all()
    grand_total = sum(float(r[2] or 0) for r in rows)
    report = [
        {
            "category": name,
            "services": count,
            "revenue": round(float(revenue or 0), 2),
            "revenue_percent": round(float(revenue or 0) / grand_total * 100, 2) if grand_total else 0,
        }
        for name, count, revenue in rows
    ]
    report.sort(key=lambda r: r["revenue"], reverse=True)
    return report


def mechanic_performance(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[Dict[str, Any]]:
    report = []
    for mechanic in db.query(Mechanic).filter(Mechanic.active.is_(True)).order_by(Mechanic.name).all():
        q = _period(
            db.query(ServiceOrder).filter(ServiceOrder.mechanic_id == mechanic.id),
            ServiceOrder.opened_at,
            date_from,
            date_to,
        )
        orders = q.all()
        finalized = [o for o in orders if o.status == FINALIZED]
        revenue = round(sum(o.total or 0 for o in finalized), 2)
        durations = [
            (o.closed_at - o.opened_at).total_seconds() / 86400 for o in finalized if o.closed_at and o.opened_at
        ]
        report.append({
            "mechanic_id": mechanic.id,
            "name": mechanic.name,
            "specialty": mechanic.specialty,
            "total_orders": len(orders),
            "finalized_orders": len(finalized),
            "revenue": revenue,
            "average_ticket": round(revenue / len(finalized), 2) if finalized else 0,
            "average_days": round(sum(durations) / len(durations), 1) if durations else None,
            "commission": round(revenue * (mechanic.commission_percent or 0) / 100, 2),
        })
    report.sort(key=lambda r: r["revenue"], reverse=True)
    return report


def abc_customers(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
    q = (
        db.query(Customer.id, Customer.name, func.count(ServiceOrder.id), func.sum(ServiceOrder.total))
        .join(ServiceOrder, ServiceOrder.customer_id == Customer.id)
        .filter(ServiceOrder.status == FINALIZED)
    )
    rows = _period(q, ServiceOrder.closed_at, date_from, date_to).group_by(Customer.id, Customer.name).all()
    ranked = scoring.abc_curve([
        {"customer_id": cid, "name": name, "orders": count, "revenue": round(float(total or 0), 2)}
        for cid, name, count, total in rows
    ])
    return {"items": ranked, "summary": scoring.abc_summary(ranked)}


def abc_parts(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
    q = (
        db.query(
            Part.id,
            Part.code,
            Part.name,
            func.sum(OrderPart.quantity),
            func.sum(OrderPart.line_total),
            func.sum(OrderPart.quantity * OrderPart.unit_cost),
        )
        .join(OrderPart, OrderPart.part_id == Part.id)
        .join(ServiceOrder, ServiceOrder.id == OrderPart.order_id)
        .filter(ServiceOrder.status == FINALIZED)
    )
    rows = _period(q, ServiceOrder.closed_at, date_from, date_to).group_by(Part.id, Part.code, Part.name).all()
    items = []
    for pid, code, name, qty, revenue, cost in rows:
        revenue = float(revenue or 0)
        cost = float(cost or 0)
        items.append({
            "part_id": pid,
            "code": code,
            "name": name,
            "quantity": int(qty or 0),
            "revenue": round(revenue, 2),
            "cost": round(cost, 2),
            "margin_percent": round((revenue - cost) / revenue * 100, 2) if revenue else 0,
        })
    ranked = scoring.abc_curve(items)
    return {"items": ranked, "summary": scoring.abc_summary(ranked)}


def dashboard(db: Session, days: int = 30, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    date_from = today - timedelta(days=days)
    q = _period(db.query(ServiceOrder).filter(ServiceOrder.status == FINALIZED), ServiceOrder.closed_at, date_from, today)
    finalized = q.all()
    revenue = round(sum(o.total or 0 for o in finalized), 2)
    opened = _period(db.query(func.count(ServiceOrder.id)), ServiceOrder.opened_at, date_from, today).scalar() or 0
    return {
        "period": {"from": date_from.isoformat(), "to": today.isoformat(), "days": days},
        "revenue": revenue,
        "orders_opened": opened,
        "orders_finalized": len(finalized),
        "average_ticket": round(revenue / len(finalized), 2) if finalized else 0,
        "top_categories": services_by_category(db, date_from, today)[:5],
        "top_customers": abc_customers(db, date_from, today)["items"][:5],
        "profitability": profitability(db, date_from, today)["summary"],
    }

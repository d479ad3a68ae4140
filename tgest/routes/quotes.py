from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import ValidationError
from ..models.models import Quote
from ..pdf.quote_pdf import build_quote_pdf
from ..schemas.common import QuoteStatus
from ..schemas.orders import (
    PartItemCreate,
    QuoteConvert,
    QuoteCreate,
    QuoteUpdate,
    ServiceItemCreate,
    StatusChange,
)
from ..services import quotes as quote_service
from ..services.lifecycle import parse_status
from ..services.settings_store import get_value
from ..services.time_rules import iso, local_today
from .orders import order_dict, part_item_dict, service_item_dict


router = APIRouter(prefix="/api/orcamentos", tags=["quotes"])


def quote_dict(quote: Quote, details: bool = False, today=None) -> Dict[str, Any]:
    data = {
        "id": quote.id,
        "number": quote.number,
        "status": quote.status,
        "expired": quote_service.is_expired(quote, today),
        "customer_id": quote.customer_id,
        "customer_name": quote.customer.name if quote.customer else None,
        "vehicle_id": quote.vehicle_id,
        "plate": quote.vehicle.plate if quote.vehicle else None,
        "reported_problem": quote.reported_problem,
        "notes": quote.notes,
        "valid_until": iso(quote.valid_until),
        "services_total": quote.services_total,
        "parts_total": quote.parts_total,
        "discount": quote.discount,
        "total": quote.total,
        "order_id": quote.order_id,
        "created_at": iso(quote.created_at),
    }
    if details:
        data["services"] = [service_item_dict(s) for s in quote.services]
        data["parts"] = [part_item_dict(p) for p in quote.parts]
    return data


@router.get("")
def list_quotes(
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    q = db.query(Quote)
    if status:
        q = q.filter(Quote.status == parse_status(QuoteStatus, status).value)
    if customer_id is not None:
        q = q.filter(Quote.customer_id == customer_id)
    today = local_today()
    return [quote_dict(x, today=today) for x in q.order_by(Quote.created_at.desc(), Quote.id.desc()).all()]


@router.get("/estatisticas")
def quote_statistics(db: Session = Depends(get_db)):
    rows = (
        db.query(Quote.status, func.count(Quote.id), func.coalesce(func.sum(Quote.total), 0))
        .group_by(Quote.status)
        .all()
    )
    by_status = {s.value: {"count": 0, "value": 0.0} for s in QuoteStatus}
    for status, count, value in rows:
        by_status[status] = {"count": count, "value": round(float(value or 0), 2)}
    total = sum(v["count"] for v in by_status.values())
    approved = by_status[QuoteStatus.approved.value]["count"]
    return {
        "total": total,
        "total_value": round(sum(v["value"] for v in by_status.values()), 2),
        "by_status": by_status,
        "conversion_rate": round(approved / total * 100, 2) if total else 0,
    }


@router.get("/{quote_id}")
def get_quote(quote_id: int, db: Session = Depends(get_db)):
    return quote_dict(quote_service.get_quote(db, quote_id), details=True)


@router.post("", status_code=201)
def create_quote(body: QuoteCreate, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.create_quote(
            db,
            customer_id=body.customer_id,
            vehicle_id=body.vehicle_id,
            reported_problem=body.reported_problem,
            notes=body.notes,
            valid_until=body.valid_until,
            discount=body.discount,
            services=[s.model_dump() for s in body.services],
            parts=[p.model_dump() for p in body.parts],
        )
    return quote_dict(quote, details=True)


@router.put("/{quote_id}")
def update_quote(quote_id: int, body: QuoteUpdate, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        quote_service.update_quote(db, quote, body.model_dump(exclude_unset=True))
    return quote_dict(quote, details=True)


@router.patch("/{quote_id}/status")
def change_quote_status(quote_id: int, body: StatusChange, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        quote_service.change_status(db, quote, body.status)
    return quote_dict(quote)


@router.post("/{quote_id}/servicos", status_code=201)
def add_service(quote_id: int, body: ServiceItemCreate, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        item = quote_service.add_service(
            db, quote, body.description, body.service_type_id, body.quantity, body.unit_price
        )
    return {"item": service_item_dict(item), "quote": quote_dict(quote)}


@router.delete("/{quote_id}/servicos/{item_id}")
def remove_service(quote_id: int, item_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        quote_service.remove_item(db, quote, "service", item_id)
    return {"message": "Service removed", "quote": quote_dict(quote)}


@router.post("/{quote_id}/pecas", status_code=201)
def add_part(quote_id: int, body: PartItemCreate, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        item = quote_service.add_part(db, quote, body.part_id, body.quantity, body.unit_price)
    return {"item": part_item_dict(item), "quote": quote_dict(quote)}


@router.delete("/{quote_id}/pecas/{item_id}")
def remove_part(quote_id: int, item_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        quote_service.remove_item(db, quote, "part", item_id)
    return {"message": "Part removed", "quote": quote_dict(quote)}


@router.post("/{quote_id}/converter", status_code=201)
def convert_quote(quote_id: int, body: Optional[QuoteConvert] = None, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        order = quote_service.convert_to_order(db, quote, author=body.author if body else None)
    return {"message": f"Quote {quote.number} converted into OS {order.number}", "order": order_dict(order, details=True)}


@router.get("/{quote_id}/pdf")
def quote_pdf(quote_id: int, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    pdf_bytes = build_quote_pdf(quote, get_value(db, "workshop_name") or "tGest")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="orcamento-{quote.number}.pdf"'},
    )


@router.delete("/{quote_id}")
def delete_quote(quote_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        quote = quote_service.get_quote(db, quote_id)
        if quote.status == QuoteStatus.converted.value:
            raise ValidationError("Converted quotes cannot be deleted")
        db.delete(quote)
    return {"message": "Quote deleted", "id": quote_id}

from contextlib import contextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import SurveyExpiredError, ValidationError
from ..models.models import Survey
from ..schemas.common import NotificationStatus, SurveyStatus
from ..schemas.crm import ChannelChoice, SurveyAnswer, SurveyCreate
from ..services import surveys as survey_service
from ..services.lifecycle import parse_status
from ..services.notifications import NotificationSender, get_sender
from ..services.time_rules import iso
from .notifications import notification_dict


router = APIRouter(prefix="/api/pesquisas", tags=["surveys"])


def survey_dict(s: Survey, include_token: bool = True) -> Dict[str, Any]:
    data = {
        "id": s.id,
        "order_id": s.order_id,
        "order_number": s.order.number if s.order else None,
        "customer_id": s.customer_id,
        "customer_name": s.customer.name if s.customer else None,
        "status": s.status,
        "service_rating": s.service_rating,
        "quality_rating": s.quality_rating,
        "timeliness_rating": s.timeliness_rating,
        "price_rating": s.price_rating,
        "recommend": s.would_recommend,
        "comment": s.comment,
        "channel": s.channel,
        "sent_at": iso(s.sent_at),
        "answered_at": iso(s.answered_at),
        "created_at": iso(s.created_at),
    }
    if include_token:
        data["token"] = s.token
        data["link"] = survey_service.survey_link(s)
    return data


@contextmanager
def _public_transaction(db: Session):
    """Like ``transaction`` but keeps the EXPIRED mark when the survey turns out to be expired."""
    try:
        yield db
        db.commit()
    except SurveyExpiredError:
        db.commit()
        raise
    except Exception:
        db.rollback()
        raise


@router.get("")
def list_surveys(status: Optional[str] = None, db: Session = Depends(get_db)):
    q = db.query(Survey)
    if status:
        q = q.filter(Survey.status == parse_status(SurveyStatus, status).value)
    return [survey_dict(s) for s in q.order_by(Survey.created_at.desc(), Survey.id.desc()).all()]


@router.get("/estatisticas")
def survey_statistics(db: Session = Depends(get_db)):
    return survey_service.statistics(db)


@router.get("/nps")
def nps(db: Session = Depends(get_db)):
    return survey_service.nps_report(db)


@router.get("/token/{token}")
def open_survey(token: str, db: Session = Depends(get_db)):
    with _public_transaction(db):
        survey = survey_service.open_by_token(db, token)
    order = survey.order
    return {
        "id": survey.id,
        "status": survey.status,
        "customer_name": survey.customer.name if survey.customer else None,
        "order_number": order.number if order else None,
        "plate": order.vehicle.plate if order and order.vehicle else None,
        "closed_at": iso(order.closed_at) if order else None,
    }


@router.post("/responder/{token}")
def answer_survey(token: str, body: SurveyAnswer, db: Session = Depends(get_db)):
    answers = body.model_dump()
    answers["would_recommend"] = answers.pop("recommend")
    with _public_transaction(db):
        result = survey_service.respond(db, token, answers)
    return {"message": "Thank you for your feedback!", "average": result["average"]}


@router.post("", status_code=201)
def create_survey(body: SurveyCreate, db: Session = Depends(get_db)):
    with transaction(db):
        survey = survey_service.issue_for_order(db, body.order_id)
    return survey_dict(survey)


@router.post("/{survey_id}/enviar")
def send_survey(
    survey_id: int,
    body: Optional[ChannelChoice] = None,
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_sender),
):
    body = body or ChannelChoice()
    with transaction(db):
        survey = survey_service.get_survey(db, survey_id)
        result = survey_service.send_survey(db, sender, survey, body.channel)
    delivered = result["notification"].status != NotificationStatus.error.value
    return {
        "message": "Survey sent" if delivered else "Survey could not be delivered",
        "link": result["link"],
        "survey": survey_dict(result["survey"]),
        "notification": notification_dict(result["notification"]),
    }


@router.delete("/{survey_id}")
def delete_survey(survey_id: int, db: Session = Depends(get_db)):
    with transaction(db):
        survey = survey_service.get_survey(db, survey_id)
        if survey.status == SurveyStatus.answered.value:
            raise ValidationError("Answered surveys cannot be deleted")
        db.delete(survey)
    return {"message": "Survey deleted", "id": survey_id}

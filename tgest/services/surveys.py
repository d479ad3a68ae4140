"""
Satisfaction surveys: public token flow, sending and aggregates.
"""
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConflictError, NotFoundError, SurveyExpiredError, ValidationError
from ..models.models import ServiceOrder, Survey
from ..schemas.common import Channel, HistoryType, NotificationStatus, NotificationType, OrderStatus, SurveyStatus
from . import scoring
from .history import record_history
from .notifications import NotificationSender, notify

log = structlog.get_logger(__name__)

RATING_FIELDS = ("service_rating", "quality_rating", "timeliness_rating", "price_rating")


def get_survey(db: Session, survey_id: int) -> Survey:
    survey = db.get(Survey, survey_id)
    if not survey:
        raise NotFoundError("Survey not found")
    return survey


def survey_link(survey: Survey) -> str:
    return f"{settings.public_base_url.rstrip('/')}/pesquisa/{survey.token}"


def issue_for_order(db: Session, order_id: int) -> Survey:
    order = db.get(ServiceOrder, order_id)
    if not order:
        raise NotFoundError("Service order not found")
    if order.status != OrderStatus.finalized.value:
        raise ValidationError("Surveys can only be issued for finalized orders")
    if db.query(Survey).filter(Survey.order_id == order.id).first():
        raise ConflictError(f"OS {order.number} already has a survey")
    survey = Survey(
        order_id=order.id,
        customer_id=order.customer_id,
        token=secrets.token_hex(16),
        status=SurveyStatus.pending.value,
    )
    db.add(survey)
    db.flush()
    return survey


def open_by_token(db: Session, token: str, now: Optional[datetime] = None) -> Survey:
    """
    Resolve a public survey link.

    Answered surveys are rejected; surveys older than SURVEY_EXPIRY_DAYS are
    marked EXPIRED and rejected with SurveyExpiredError; the caller commits
    before re-raising so the mark survives the rollback.
    """
    survey = db.query(Survey).filter(Survey.token == token).first()
    if not survey:
        raise NotFoundError("Survey not found")
    if survey.status == SurveyStatus.answered.value:
        raise ValidationError("This survey was already answered")
    now = now or datetime.utcnow()
    started = survey.sent_at or survey.created_at
    if survey.status == SurveyStatus.expired.value or (
        started and now - started > timedelta(days=settings.survey_expiry_days)
    ):
        survey.status = SurveyStatus.expired.value
        db.flush()
        raise SurveyExpiredError("This survey has expired")
    return survey


def respond(db: Session, token: str, answers: Dict[str, Any]) -> Dict[str, Any]:
    survey = open_by_token(db, token)
    for field in RATING_FIELDS:
        value = answers.get(field)
        if value is None:
            raise ValidationError("All four ratings are required")
        if not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationError(f"{field} must be between 1 and 5")
    for field in RATING_FIELDS:
        setattr(survey, field, answers[field])
    survey.comment = answers.get("comment")
    survey.would_recommend = answers.get("would_recommend")
    survey.status = SurveyStatus.answered.value
    survey.answered_at = datetime.utcnow()
    average = round(sum(answers[f] for f in RATING_FIELDS) / len(RATING_FIELDS), 2)
    record_history(
        db,
        survey.customer_id,
        HistoryType.survey_answered,
        f"Satisfaction survey answered. Average: {average:.1f}",
        "satisfaction_surveys",
        survey.id,
    )
    db.flush()
    log.info("survey_answered", survey_id=survey.id, average=average)
    return {"survey": survey, "average": average}


def send_survey(db: Session, sender: NotificationSender, survey: Survey, channel: Channel) -> Dict[str, Any]:
    if survey.status == SurveyStatus.answered.value:
        raise ValidationError("This survey was already answered")
    link = survey_link(survey)
    order_number = survey.order.number if survey.order else ""
    message = (
        f"Hello {survey.customer.name}! Your opinion matters. "
        f"Rate the service on OS {order_number}: {link}"
    )
    notification = notify(
        db,
        sender,
        survey.customer_id,
        NotificationType.survey,
        channel,
        message,
        reference_type="satisfaction_surveys",
        reference_id=survey.id,
    )
    if notification.status == NotificationStatus.error.value:
        db.flush()
        log.warning("survey_not_delivered", survey_id=survey.id, error=notification.error_message)
        return {"survey": survey, "notification": notification, "link": link}

    survey.status = SurveyStatus.sent.value
    survey.sent_at = datetime.utcnow()
    survey.channel = Channel(channel).value
    db.flush()
    return {"survey": survey, "notification": notification, "link": link}


def statistics(db: Session) -> Dict[str, Any]:
    answered = db.query(Survey).filter(Survey.status == SurveyStatus.answered.value).all()
    total = db.query(Survey).count()
    averages = {}
    for field in RATING_FIELDS:
        values = [getattr(s, field) for s in answered if getattr(s, field) is not None]
        averages[field] = round(sum(values) / len(values), 2) if values else None
    distribution = {str(n): 0 for n in range(1, 6)}
    overall = []
    for s in answered:
        mean = sum(getattr(s, f) for f in RATING_FIELDS) / len(RATING_FIELDS)
        overall.append((mean, s))
        distribution[str(int(round(mean)))] += 1
    comments = [
        {"survey_id": s.id, "comment": s.comment, "answered_at": s.answered_at.isoformat() if s.answered_at else None}
        for s in sorted(answered, key=lambda x: x.answered_at or datetime.min, reverse=True)
        if s.comment
    ][:10]
    worst = [
        {"survey_id": s.id, "order_id": s.order_id, "customer_id": s.customer_id, "average": round(mean, 2)}
        for mean, s in sorted(overall, key=lambda x: x[0])
        if mean < 3
    ][:10]
    return {
        "total": total,
        "answered": len(answered),
        "response_rate": round(len(answered) / total * 100, 2) if total else 0,
        "averages": averages,
        "overall_average": round(sum(m for m, _ in overall) / len(overall), 2) if overall else None,
        "distribution": distribution,
        "latest_comments": comments,
        "worst_ratings": worst,
    }


def nps_report(db: Session) -> Dict[str, Any]:
    rows = (
        db.query(Survey.would_recommend)
        .filter(Survey.status == SurveyStatus.answered.value, Survey.would_recommend.isnot(None))
        .all()
    )
    total = len(rows)
    promoters = sum(1 for (r,) in rows if r)
    detractors = total - promoters
    score = scoring.nps(promoters, detractors, total)
    return {
        "total_responses": total,
        "promoters": promoters,
        "detractors": detractors,
        "promoters_percent": round(promoters / total * 100, 2) if total else 0,
        "detractors_percent": round(detractors / total * 100, 2) if total else 0,
        "nps": score,
        "classification": scoring.classify_nps(score),
    }

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import DomainError, NotFoundError, ValidationError
from ..models.models import Notification
from ..schemas.common import Channel, NotificationStatus, NotificationType
from ..schemas.crm import BulkNotificationCreate, CrmSettingsUpdate, NotificationCreate
from ..services import notifications as notification_service
from ..services.lifecycle import parse_status
from ..services.settings_store import CRM_PREFIXES, set_value, values_with_prefix
from ..services.time_rules import iso


router = APIRouter(prefix="/api/notificacoes", tags=["notifications"])


def notification_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "customer_id": n.customer_id,
        "type": n.type,
        "channel": n.channel,
        "recipient": n.recipient,
        "subject": n.subject,
        "message": n.message,
        "status": n.status,
        "reference_type": n.reference_type,
        "reference_id": n.reference_id,
        "attempts": n.attempts or 0,
        "error_message": n.error_message,
        "sent_at": iso(n.sent_at),
        "created_at": iso(n.created_at),
    }


@router.get("")
def list_notifications(
    status: Optional[str] = None,
    type: Optional[str] = None,
    channel: Optional[str] = None,
    customer_id: Optional[int] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    q = db.query(Notification)
    if status:
        q = q.filter(Notification.status == parse_status(NotificationStatus, status).value)
    if type:
        q = q.filter(Notification.type == parse_status(NotificationType, type).value)
    if channel:
        q = q.filter(Notification.channel == parse_status(Channel, channel).value)
    if customer_id is not None:
        q = q.filter(Notification.customer_id == customer_id)
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(max(limit, 1)).all()
    return [notification_dict(n) for n in rows]


@router.get("/estatisticas")
def notification_statistics(db: Session = Depends(get_db)):
    return notification_service.statistics(db)


@router.get("/configuracoes")
def get_crm_settings(db: Session = Depends(get_db)):
    return values_with_prefix(db, CRM_PREFIXES)


@router.put("/configuracoes")
def update_crm_settings(body: CrmSettingsUpdate, db: Session = Depends(get_db)):
    unknown = [k for k in body.values if not k.startswith(CRM_PREFIXES)]
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
    with transaction(db):
        for key, value in body.values.items():
            set_value(db, key, value)
    return values_with_prefix(db, CRM_PREFIXES)


@router.post("/enviar", status_code=201)
def send_notification(
    body: NotificationCreate,
    db: Session = Depends(get_db),
    sender: notification_service.NotificationSender = Depends(notification_service.get_sender),
):
    with transaction(db):
        notification = notification_service.notify(
            db,
            sender,
            body.customer_id,
            body.type,
            body.channel,
            body.message,
            subject=body.subject,
            reference_type=body.reference_type,
            reference_id=body.reference_id,
        )
    return notification_dict(notification)


@router.post("/enviar-em-lote")
def send_bulk(
    body: BulkNotificationCreate,
    db: Session = Depends(get_db),
    sender: notification_service.NotificationSender = Depends(notification_service.get_sender),
):
    """Send one message to many customers; a failure for one customer does not stop the others."""
    if not body.customer_ids:
        raise ValidationError("customer_ids must not be empty")
    sent, failed, skipped = [], [], []
    for customer_id in body.customer_ids:
        try:
            with transaction(db):
                notification = notification_service.notify(
                    db, sender, customer_id, body.type, body.channel, body.message, subject=body.subject
                )
        except DomainError as exc:
            skipped.append({"customer_id": customer_id, "reason": exc.message})
            continue
        row = notification_dict(notification)
        (sent if notification.status == NotificationStatus.sent.value else failed).append(row)
    return {
        "total": len(body.customer_ids),
        "sent": len(sent),
        "failed": len(failed),
        "skipped": skipped,
        "notifications": sent + failed,
    }


@router.post("/{notification_id}/reenviar")
def resend_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    sender: notification_service.NotificationSender = Depends(notification_service.get_sender),
):
    with transaction(db):
        notification = db.get(Notification, notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        notification_service.resend(db, sender, notification)
    return notification_dict(notification)

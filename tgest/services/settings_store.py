"""
Runtime-editable business parameters (settings_values table).
"""
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..models.models import SettingValue


DEFAULT_VALUES: Dict[str, tuple] = {
    "quote_validity_days": ("15", "Days a quote stays valid"),
    "stock_alert_days": ("30", "Days without movement before a part is flagged as idle"),
    "default_margin_percent": ("40", "Default markup applied to parts"),
    "workshop_name": ("tGest Oficina", "Name printed on documents"),
    "crm_whatsapp_enabled": ("false", "Send notifications over WhatsApp"),
    "crm_whatsapp_api_token": ("", "WhatsApp provider token"),
    "crm_whatsapp_phone": ("", "WhatsApp sender number"),
    "crm_sms_enabled": ("false", "Send notifications over SMS"),
    "crm_sms_api_key": ("", "SMS provider key"),
    "crm_email_enabled": ("false", "Send notifications over e-mail"),
    "crm_email_smtp_host": ("", "SMTP host"),
    "crm_email_from": ("", "Sender address"),
}

CRM_PREFIXES = ("crm_whatsapp", "crm_sms", "crm_email")


def seed_defaults(db: Session) -> int:
    existing = {row.key for row in db.query(SettingValue.key).all()}
    created = 0
    for key, (value, description) in DEFAULT_VALUES.items():
        if key not in existing:
            db.add(SettingValue(key=key, value=value, description=description))
            created += 1
    return created


def get_value(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = db.query(SettingValue).filter(SettingValue.key == key).first()
    if row is not None:
        return row.value
    if default is None and key in DEFAULT_VALUES:
        return DEFAULT_VALUES[key][0]
    return default


def get_int(db: Session, key: str, default: int = 0) -> int:
    raw = get_value(db, key)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def set_value(db: Session, key: str, value: Optional[str]) -> SettingValue:
    row = db.query(SettingValue).filter(SettingValue.key == key).first()
    if row is None:
        row = SettingValue(key=key)
        db.add(row)
    row.value = "" if value is None else str(value)
    row.updated_at = datetime.utcnow()
    return row


def values_with_prefix(db: Session, prefixes: Iterable[str]) -> Dict[str, Optional[str]]:
    prefixes = tuple(prefixes)
    rows = db.query(SettingValue).order_by(SettingValue.key).all()
    return {row.key: row.value for row in rows if row.key.startswith(prefixes)}

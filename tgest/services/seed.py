"""
Reference data every installation needs: service categories, chart of
accounts and default settings. Safe to run on every startup.
"""
import structlog
from sqlalchemy.orm import Session

from ..models.models import ServiceCategory
from .finance import seed_accounts
from .settings_store import seed_defaults

log = structlog.get_logger(__name__)

SERVICE_CATEGORIES = (
    ("Motor", "Engine repair and maintenance"),
    ("Freios", "Brake system"),
    ("Suspensão", "Suspension and steering"),
    ("Elétrica", "Electrical system"),
    ("Transmissão", "Gearbox and clutch"),
    ("Ar Condicionado", "Air conditioning"),
    ("Pneus e Rodas", "Tyres, wheels and alignment"),
    ("Funilaria", "Bodywork"),
    ("Pintura", "Paint"),
    ("Revisão", "Scheduled inspections"),
)


def seed_categories(db: Session) -> int:
    existing = {name for (name,) in db.query(ServiceCategory.name).all()}
    created = 0
    for name, description in SERVICE_CATEGORIES:
        if name not in existing:
            db.add(ServiceCategory(name=name, description=description))
            created += 1
    return created


def seed_reference_data(db: Session) -> None:
    created = {
        "categories": seed_categories(db),
        "accounts": seed_accounts(db),
        "settings": seed_defaults(db),
    }
    db.commit()
    if any(created.values()):
        log.info("reference_data_seeded", **created)

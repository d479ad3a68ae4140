from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy import create_engine
from .config import settings


def build_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 10)
        kwargs.setdefault("pool_recycle", 3600)  # Recycle connections after 1 hour
    return create_engine(url, future=True, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.database_url)

# IMPORTANT: do not use scoped_session with async frameworks; create a fresh Session per request
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block of writes as one unit.

    Commits when the block finishes and rolls back (re-raising) on any error,
    so a failure half-way through a multi-row operation leaves nothing behind.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise

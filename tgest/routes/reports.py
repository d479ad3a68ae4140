from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import reports


router = APIRouter(prefix="/api/relatorios", tags=["reports"])


@router.get("/lucratividade")
def profitability(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    return reports.profitability(db, date_from, date_to)


@router.get("/servicos-por-categoria")
def services_by_category(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    return reports.services_by_category(db, date_from, date_to)


@router.get("/desempenho-mecanicos")
def mechanic_performance(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    return reports.mechanic_performance(db, date_from, date_to)


@router.get("/curva-abc/clientes")
def abc_customers(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    return reports.abc_customers(db, date_from, date_to)


@router.get("/curva-abc/pecas")
def abc_parts(date_from: Optional[date] = None, date_to: Optional[date] = None, db: Session = Depends(get_db)):
    return reports.abc_parts(db, date_from, date_to)


@router.get("/dashboard")
def dashboard(days: int = Query(default=30, ge=1, le=3650), db: Session = Depends(get_db)):
    return reports.dashboard(db, days)

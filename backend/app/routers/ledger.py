"""
账目路由
"""
from datetime import date, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import Employee, LedgerEntryType
from app.models.schemas import FinancialSummaryResponse, LedgerEntryCreate, LedgerEntryResponse
from app.services.ledger_service import LedgerService
from app.security.auth import get_current_user, require_ledger_writer

router = APIRouter(prefix="/ledger", tags=["账目"])


@router.get("", response_model=List[LedgerEntryResponse])
def list_entries(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    entry_type: Optional[LedgerEntryType] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """账目列表"""
    return LedgerService(db).get_entries(start_date, end_date, entry_type)


@router.post("", response_model=LedgerEntryResponse)
def create_entry(
    data: LedgerEntryCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_ledger_writer)
):
    """记一笔账"""
    return LedgerService(db).create_entry(data, created_by=current_user.name)


@router.get("/summary", response_model=FinancialSummaryResponse)
def get_summary(
    period: str = Query("custom"),
    start_date: date = Query(default_factory=lambda: date.today() - timedelta(days=30)),
    end_date: date = Query(default_factory=date.today),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """收支汇总"""
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="结束日期不能早于开始日期")
    return LedgerService(db).get_financial_summary(period, start_date, end_date)


@router.get("/receivable", response_model=List[LedgerEntryResponse])
def list_receivable(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """挂账列表"""
    return LedgerService(db).get_accounts_receivable()

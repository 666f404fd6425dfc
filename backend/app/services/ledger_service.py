"""
账目服务 - 财务流水
账目只追加，不在夜审中修改或删除
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.ontology import LedgerEntry, LedgerEntryType
from app.models.schemas import LedgerEntryCreate

logger = logging.getLogger(__name__)


class LedgerService:
    """账目服务"""

    def __init__(self, db: Session):
        self.db = db

    def create_entry(self, data: LedgerEntryCreate, created_by: str, commit: bool = True) -> LedgerEntry:
        """
        追加一条账目

        commit=False 时仅 flush，由调用方在同一事务中统一提交
        """
        entry = LedgerEntry(**data.model_dump(), created_by=created_by)
        self.db.add(entry)
        if commit:
            self.db.commit()
            self.db.refresh(entry)
        else:
            self.db.flush()
        return entry

    def get_entries(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        entry_type: Optional[LedgerEntryType] = None,
    ) -> List[LedgerEntry]:
        """按日期区间（含两端）查询账目，最新在前"""
        query = self.db.query(LedgerEntry)
        if start_date:
            query = query.filter(LedgerEntry.entry_date >= start_date)
        if end_date:
            query = query.filter(LedgerEntry.entry_date <= end_date)
        if entry_type:
            query = query.filter(LedgerEntry.entry_type == entry_type)
        return query.order_by(LedgerEntry.entry_date.desc(), LedgerEntry.id.desc()).all()

    def get_financial_summary(self, period: str, start_date: date, end_date: date) -> dict:
        """收支汇总"""
        total_income = Decimal('0')
        total_expenses = Decimal('0')
        income_breakdown = {}
        expense_breakdown = {}
        accounts_receivable = Decimal('0')
        accounts_payable = Decimal('0')

        for entry in self.get_entries(start_date, end_date):
            category = entry.category.value
            if entry.entry_type == LedgerEntryType.INCOME:
                total_income += entry.amount
                income_breakdown[category] = income_breakdown.get(category, Decimal('0')) + entry.amount
                if entry.accounts_receivable:
                    accounts_receivable += entry.amount
            else:
                total_expenses += entry.amount
                expense_breakdown[category] = expense_breakdown.get(category, Decimal('0')) + entry.amount
                if entry.accounts_payable:
                    accounts_payable += entry.amount

        return {
            'period': period,
            'start_date': start_date,
            'end_date': end_date,
            'total_income': total_income,
            'total_expenses': total_expenses,
            'net_profit': total_income - total_expenses,
            'income_breakdown': income_breakdown,
            'expense_breakdown': expense_breakdown,
            'accounts_receivable': accounts_receivable,
            'accounts_payable': accounts_payable,
        }

    def get_accounts_receivable(self) -> List[LedgerEntry]:
        """挂账（应收）收入"""
        return self.db.query(LedgerEntry).filter(
            LedgerEntry.entry_type == LedgerEntryType.INCOME,
            LedgerEntry.accounts_receivable == True  # noqa: E712
        ).order_by(LedgerEntry.entry_date.desc()).all()

"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator, ConfigDict
from app.models.ontology import (
    EmployeeRole, BookingStatus, BusinessDayStatus, NightAuditStatus,
    LedgerEntryType, LedgerCategory, PaymentMethod, MenuType
)


# ============== 认证 Schemas ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class EmployeeInfo(BaseModel):
    id: int
    username: str
    name: str
    role: EmployeeRole
    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee: EmployeeInfo


# ============== 营业日 Schemas ==============

class BusinessDayResponse(BaseModel):
    business_date: date
    last_audit_date: Optional[date] = None
    status: BusinessDayStatus
    version: int
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 夜审 Schemas ==============

class NightAuditSteps(BaseModel):
    room_charges_posted: bool = False
    room_status_updated: bool = False
    reports_generated: bool = False
    business_date_rolled: bool = False


class NightAuditSummary(BaseModel):
    total_revenue: Decimal = Decimal("0")
    total_occupied_rooms: int = 0
    total_arrivals: int = 0
    total_departures: int = 0


class NightAuditLogResponse(BaseModel):
    id: str
    business_date: date
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    audited_by: str
    audited_by_name: Optional[str] = None
    status: NightAuditStatus
    steps: NightAuditSteps
    summary: NightAuditSummary
    error: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class NightAuditRunResponse(BaseModel):
    outcome: str
    audit_log_id: Optional[str] = None
    reason: Optional[str] = None
    audit_log: Optional[NightAuditLogResponse] = None


class AuditBlockersResponse(BaseModel):
    business_date: date
    pending_arrivals: int = 0
    pending_departures: int = 0
    unclean_rooms: int = 0


# ============== 账目 Schemas ==============

class LedgerEntryCreate(BaseModel):
    entry_date: date
    entry_type: LedgerEntryType
    category: LedgerCategory
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    payment_method: Optional[PaymentMethod] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    accounts_receivable: bool = False
    accounts_payable: bool = False


class LedgerEntryResponse(BaseModel):
    id: int
    entry_date: date
    entry_type: LedgerEntryType
    category: LedgerCategory
    description: str
    amount: Decimal
    payment_method: Optional[PaymentMethod] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    accounts_receivable: bool = False
    accounts_payable: bool = False
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class FinancialSummaryResponse(BaseModel):
    period: str
    start_date: date
    end_date: date
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    income_breakdown: Dict[str, Decimal]
    expense_breakdown: Dict[str, Decimal]
    accounts_receivable: Decimal
    accounts_payable: Decimal


# ============== 预订 Schemas ==============

class BookingRoomCreate(BaseModel):
    room_type: str
    price: Decimal = Field(default=Decimal("0"), ge=0)
    allocated_room: Optional[str] = None


class BookingRoomResponse(BookingRoomCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class BookingCreate(BaseModel):
    booking_no: Optional[str] = None
    check_in: date
    check_out: date
    guest_first_name: str
    guest_last_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    total_amount: Optional[Decimal] = None
    rooms: List[BookingRoomCreate] = Field(..., min_length=1)

    @field_validator('check_out')
    @classmethod
    def check_out_after_check_in(cls, v, info):
        check_in = info.data.get('check_in')
        if check_in and v <= check_in:
            raise ValueError('离店日期必须晚于入住日期')
        return v


class BookingResponse(BaseModel):
    id: int
    booking_no: str
    status: BookingStatus
    check_in: date
    check_out: date
    guest_first_name: str
    guest_last_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    total_amount: Optional[Decimal] = None
    rooms: List[BookingRoomResponse] = []
    model_config = ConfigDict(from_attributes=True)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


# ============== 小票 Schemas ==============

class ReceiptResponse(BaseModel):
    order_id: int
    menu_type: MenuType
    receipt_url: str

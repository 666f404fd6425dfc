"""
本体对象定义 (Ontology Objects)
前台、财务、餐饮、客房四个业务域的持久化实体
夜审流程只读取预订，只追加账目，只修改营业日与夜审日志
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric
)
from sqlalchemy.orm import relationship
from app.database import Base


BUSINESS_DAY_ID = "current"


# ============== 枚举定义 ==============

class EmployeeRole(str, Enum):
    """员工角色"""
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台
    ACCOUNTANT = "accountant"      # 财务
    CLEANER = "cleaner"            # 客房


class BookingStatus(str, Enum):
    """预订状态"""
    CONFIRMED = "confirmed"      # 已确认
    CHECKED_IN = "checked_in"    # 在住
    CHECKED_OUT = "checked_out"  # 已离店
    CANCELLED = "cancelled"      # 已取消


class BusinessDayStatus(str, Enum):
    """营业日状态"""
    OPEN = "open"
    CLOSED = "closed"
    AUDIT_IN_PROGRESS = "audit_in_progress"


class NightAuditStatus(str, Enum):
    """夜审状态"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    FAILED = "failed"


class LedgerEntryType(str, Enum):
    """账目类型"""
    INCOME = "income"
    EXPENSE = "expense"


class LedgerCategory(str, Enum):
    """账目分类"""
    ROOM_BOOKING = "room_booking"
    FOOD_BEVERAGE = "food_beverage"
    SERVICES = "services"
    FACILITIES = "facilities"
    SALARY = "salary"
    UTILITIES = "utilities"
    MAINTENANCE = "maintenance"
    SUPPLIES = "supplies"
    MARKETING = "marketing"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """支付方式"""
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"


class MenuType(str, Enum):
    """菜单类型：餐厅 / 酒吧"""
    FOOD = "food"
    BAR = "bar"


class OrderType(str, Enum):
    """点单类型"""
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"
    ROOM_SERVICE = "room_service"
    DELIVERY = "delivery"


class RoomOccupancyStatus(str, Enum):
    """房间占用状态"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    CLEANING = "cleaning"
    RESERVED = "reserved"


class HousekeepingStatus(str, Enum):
    """清洁状态"""
    CLEAN = "clean"
    DIRTY = "dirty"
    INSPECTED = "inspected"
    NEEDS_ATTENTION = "needs_attention"


# ============== 本体对象定义 ==============

class Employee(Base):
    """员工对象"""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    password_hash = Column(String(255), nullable=False)         # 密码哈希
    name = Column(String(100), nullable=False)                  # 姓名
    role = Column(SQLEnum(EmployeeRole), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class BusinessDay(Base):
    """
    营业日对象（单例，id 固定为 current）
    与自然日解耦，只由夜审推进；version 每次推进 +1，用于条件更新
    """
    __tablename__ = "business_days"

    id = Column(String(20), primary_key=True, default=BUSINESS_DAY_ID)
    business_date = Column(Date, nullable=False)      # 当前营业日
    last_audit_date = Column(Date)                    # 上次夜审的营业日
    status = Column(SQLEnum(BusinessDayStatus), default=BusinessDayStatus.OPEN)
    version = Column(Integer, nullable=False, default=0)
    opened_at = Column(DateTime, default=datetime.utcnow)
    opened_by = Column(String(100), default="system")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class NightAuditLog(Base):
    """
    夜审日志 - 每次夜审一条
    status 进入 completed* 后不再修改
    """
    __tablename__ = "night_audit_logs"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    business_date = Column(Date, nullable=False, index=True)  # 被审计的营业日
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    audited_by = Column(String(50), nullable=False)
    audited_by_name = Column(String(100))
    status = Column(SQLEnum(NightAuditStatus), default=NightAuditStatus.PENDING)

    # 步骤
    room_charges_posted = Column(Boolean, default=False)
    room_status_updated = Column(Boolean, default=False)
    reports_generated = Column(Boolean, default=False)
    business_date_rolled = Column(Boolean, default=False)

    # 汇总
    total_revenue = Column(Numeric(12, 2), default=0)
    total_occupied_rooms = Column(Integer, default=0)
    total_arrivals = Column(Integer, default=0)
    total_departures = Column(Integer, default=0)

    error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def steps(self) -> dict:
        return {
            'room_charges_posted': bool(self.room_charges_posted),
            'room_status_updated': bool(self.room_status_updated),
            'reports_generated': bool(self.reports_generated),
            'business_date_rolled': bool(self.business_date_rolled),
        }

    @property
    def summary(self) -> dict:
        return {
            'total_revenue': self.total_revenue or Decimal('0'),
            'total_occupied_rooms': self.total_occupied_rooms or 0,
            'total_arrivals': self.total_arrivals or 0,
            'total_departures': self.total_departures or 0,
        }


class NightAuditLock(Base):
    """夜审咨询锁：同一营业日只允许一条"""
    __tablename__ = "night_audit_locks"

    business_date = Column(Date, primary_key=True)
    audit_log_id = Column(String(32))
    acquired_at = Column(DateTime, default=datetime.utcnow)


class Booking(Base):
    """预订对象 - 夜审只读"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_no = Column(String(30), unique=True, nullable=False)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.CONFIRMED, index=True)
    check_in = Column(Date, nullable=False, index=True)
    check_out = Column(Date, nullable=False, index=True)
    guest_first_name = Column(String(100), nullable=False)
    guest_last_name = Column(String(100), nullable=False)
    guest_email = Column(String(100))
    guest_phone = Column(String(30))
    total_amount = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rooms = relationship(
        "BookingRoom", back_populates="booking",
        cascade="all, delete-orphan", order_by="BookingRoom.id"
    )

    @property
    def guest_name(self) -> str:
        return f"{self.guest_first_name} {self.guest_last_name}".strip()


class BookingRoom(Base):
    """预订中的房间，price 为每晚房价"""
    __tablename__ = "booking_rooms"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    room_type = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), default=0)
    allocated_room = Column(String(100))  # 如 "DESERT ROSE"

    booking = relationship("Booking", back_populates="rooms")


class LedgerEntry(Base):
    """财务账目 - 只追加"""
    __tablename__ = "accounts_ledger"

    id = Column(Integer, primary_key=True, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    entry_type = Column(SQLEnum(LedgerEntryType), nullable=False)
    category = Column(SQLEnum(LedgerCategory), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod))
    reference_id = Column(String(50))                 # 关联预订/订单
    notes = Column(Text)
    created_by = Column(String(100), nullable=False)
    accounts_receivable = Column(Boolean, default=False)  # 挂账（应收）
    accounts_payable = Column(Boolean, default=False)     # 应付
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class FoodOrder(Base):
    """餐饮订单（menu_type 区分餐厅与酒吧）"""
    __tablename__ = "fb_orders"

    id = Column(Integer, primary_key=True, index=True)
    menu_type = Column(SQLEnum(MenuType), default=MenuType.FOOD, index=True)
    order_number = Column(String(30), nullable=False)
    receipt_no = Column(String(30))
    booking_id = Column(Integer, ForeignKey("bookings.id"))
    order_type = Column(SQLEnum(OrderType), default=OrderType.DINE_IN)
    delivery_location = Column(String(30))
    guest_name = Column(String(100))
    room_name = Column(String(100))
    table_number = Column(String(20))
    waiter_name = Column(String(100))
    subtotal = Column(Numeric(10, 2))
    tax = Column(Numeric(10, 2))
    discount = Column(Numeric(10, 2))
    total_amount = Column(Numeric(10, 2))
    status = Column(String(30), default="pending")
    payment_status = Column(String(20), default="pending")
    payment_method = Column(String(30))
    paid_amount = Column(Numeric(10, 2))
    due_amount = Column(Numeric(10, 2))
    prepared_by = Column(String(100))
    printed_by = Column(String(100))
    receipt_url = Column(String(500))
    receipt_generated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "FoodOrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="FoodOrderItem.id"
    )


class FoodOrderItem(Base):
    """订单明细"""
    __tablename__ = "fb_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("fb_orders.id"), nullable=False)
    name = Column(String(200), nullable=False)
    sku = Column(String(50))
    variant_name = Column(String(100))
    price = Column(Numeric(10, 2), default=0)
    quantity = Column(Integer, default=1)
    special_instructions = Column(Text)

    order = relationship("FoodOrder", back_populates="items")


class HousekeepingRoom(Base):
    """客房状态（客房部视角）"""
    __tablename__ = "room_statuses"

    id = Column(Integer, primary_key=True, index=True)
    room_name = Column(String(100), unique=True, nullable=False)
    suite_type = Column(String(100))
    status = Column(SQLEnum(RoomOccupancyStatus), default=RoomOccupancyStatus.AVAILABLE)
    housekeeping_status = Column(SQLEnum(HousekeepingStatus), default=HousekeepingStatus.CLEAN)
    current_guest_name = Column(String(200))
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

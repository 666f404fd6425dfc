"""
Pytest 配置和共享 fixtures
"""
import os
import tempfile

# 应用导入前指定测试配置
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RECEIPT_STORAGE_DIR", tempfile.mkdtemp(prefix="palace-pms-"))
os.environ.setdefault("EMAIL_ENABLED", "false")

import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.models.ontology import (
    BUSINESS_DAY_ID, Booking, BookingRoom, BookingStatus, BusinessDay, BusinessDayStatus,
    Employee, EmployeeRole, FoodOrder, FoodOrderItem, MenuType, OrderType
)
from app.security.auth import get_password_hash, create_access_token
from app.services.event_bus import event_bus
from app.system.storage.local_storage import LocalObjectStorage
from app.main import app
from core.notification import INotificationChannel, NotificationChannelRegistry
from core.storage import StorageRegistry


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_registries():
    """每个用例前后清空全局注册中心与事件总线"""
    NotificationChannelRegistry().clear()
    StorageRegistry().clear()
    event_bus.clear()
    yield
    NotificationChannelRegistry().clear()
    StorageRegistry().clear()
    event_bus.clear()


# ============== 认证相关 Fixtures ==============

def _create_employee(db_session, username: str, name: str, role: EmployeeRole) -> Employee:
    employee = Employee(
        username=username,
        password_hash=get_password_hash("123456"),
        name=name,
        role=role,
        is_active=True
    )
    db_session.add(employee)
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def manager(db_session):
    return _create_employee(db_session, "manager", "Amina Manager", EmployeeRole.MANAGER)


@pytest.fixture
def receptionist(db_session):
    return _create_employee(db_session, "front1", "Juma Front", EmployeeRole.RECEPTIONIST)


@pytest.fixture
def accountant(db_session):
    return _create_employee(db_session, "accounts1", "Neema Accounts", EmployeeRole.ACCOUNTANT)


@pytest.fixture
def manager_auth_headers(manager):
    """返回经理认证的请求头"""
    return {"Authorization": f"Bearer {create_access_token(manager.id, manager.role)}"}


@pytest.fixture
def receptionist_auth_headers(receptionist):
    """返回前台认证的请求头"""
    return {"Authorization": f"Bearer {create_access_token(receptionist.id, receptionist.role)}"}


@pytest.fixture
def accountant_auth_headers(accountant):
    """返回财务认证的请求头"""
    return {"Authorization": f"Bearer {create_access_token(accountant.id, accountant.role)}"}


# ============== 通知 / 存储 Fixtures ==============

class FakeEmailChannel(INotificationChannel):
    """记录发送内容的邮件渠道"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict] = []

    def send(self, recipient, subject, content, attachments=None, extra=None) -> bool:
        if self.fail:
            return False
        self.sent.append({
            "recipient": recipient,
            "subject": subject,
            "content": content,
            "attachments": attachments or [],
            "extra": extra or {},
        })
        return True

    def get_channel_type(self) -> str:
        return "email"


@pytest.fixture
def email_channel():
    """注册一个假的邮件渠道"""
    channel = FakeEmailChannel()
    NotificationChannelRegistry().register(channel)
    return channel


@pytest.fixture
def storage(tmp_path):
    """以临时目录作为对象存储后端"""
    backend = LocalObjectStorage(str(tmp_path / "files"), "http://files.test/static")
    StorageRegistry().set_backend(backend)
    return backend


# ============== 业务数据 Fixtures ==============

@pytest.fixture
def set_business_date(db_session):
    """把营业日设置为指定日期"""
    def _set(business_date: date, version: int = 0) -> BusinessDay:
        day = db_session.get(BusinessDay, BUSINESS_DAY_ID)
        if day is None:
            day = BusinessDay(id=BUSINESS_DAY_ID, opened_by="test")
            db_session.add(day)
        day.business_date = business_date
        day.status = BusinessDayStatus.OPEN
        day.version = version
        db_session.commit()
        db_session.refresh(day)
        return day
    return _set


@pytest.fixture
def make_booking(db_session):
    """创建预订，rooms 为 (房型, 房价, 房号) 列表"""
    counter = {"n": 0}

    def _make(
        check_in: date,
        check_out: date,
        status: BookingStatus = BookingStatus.CONFIRMED,
        last_name: str = "Guest",
        rooms: Optional[List[tuple]] = None,
    ) -> Booking:
        counter["n"] += 1
        rooms = rooms if rooms is not None else [("Deluxe", Decimal("150.00"), "101")]
        booking = Booking(
            booking_no=f"BK-TEST-{counter['n']:03d}",
            status=status,
            check_in=check_in,
            check_out=check_out,
            guest_first_name="Test",
            guest_last_name=last_name,
            rooms=[
                BookingRoom(room_type=room_type, price=price, allocated_room=room_no)
                for room_type, price, room_no in rooms
            ],
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking
    return _make


@pytest.fixture
def make_food_order(db_session):
    """创建餐饮订单"""
    def _make(menu_type: MenuType = MenuType.FOOD, created_at: Optional[datetime] = None,
              items: Optional[List[dict]] = None, **fields) -> FoodOrder:
        items = items if items is not None else [
            {"name": "grilled octopus", "sku": "FD-OCT-001", "price": Decimal("18.00"), "quantity": 2},
        ]
        order = FoodOrder(
            menu_type=menu_type,
            order_number=fields.pop("order_number", "ORD-0001"),
            order_type=fields.pop("order_type", OrderType.DINE_IN),
            created_at=created_at or datetime(2024, 3, 1, 19, 30),
            items=[FoodOrderItem(**item) for item in items],
            **fields,
        )
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order
    return _make

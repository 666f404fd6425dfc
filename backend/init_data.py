"""
初始化数据脚本
创建：员工账号、营业日、客房状态

默认账号（密码均为 123456）：
  manager      经理     可执行夜审、记账
  accounts1    财务     可记账
  front1       前台
  cleaner1     客房
"""
import sys
sys.path.insert(0, '.')

from app.database import SessionLocal, init_db
from app.models.ontology import (
    Employee, EmployeeRole, HousekeepingRoom, HousekeepingStatus, RoomOccupancyStatus
)
from app.security.auth import get_password_hash
from app.services.business_day_service import BusinessDayService


def init_employees(db):
    """初始化员工账号"""
    employees = [
        ('manager', 'Amina Hassan', EmployeeRole.MANAGER),
        ('accounts1', 'Neema Mushi', EmployeeRole.ACCOUNTANT),
        ('front1', 'Juma Ali', EmployeeRole.RECEPTIONIST),
        ('cleaner1', 'Mwanaisha Omar', EmployeeRole.CLEANER),
    ]
    for username, name, role in employees:
        if not db.query(Employee).filter(Employee.username == username).first():
            db.add(Employee(
                username=username,
                password_hash=get_password_hash('123456'),
                name=name,
                role=role,
            ))
    db.commit()


def init_rooms(db):
    """初始化客房状态"""
    rooms = [
        ('Garden View 1', 'Garden Suite'), ('Garden View 2', 'Garden Suite'),
        ('Ocean View 1', 'Ocean Suite'), ('Ocean View 2', 'Ocean Suite'),
        ('Royal Suite', 'Royal Suite'),
    ]
    for room_name, suite_type in rooms:
        if not db.query(HousekeepingRoom).filter(HousekeepingRoom.room_name == room_name).first():
            db.add(HousekeepingRoom(
                room_name=room_name,
                suite_type=suite_type,
                status=RoomOccupancyStatus.AVAILABLE,
                housekeeping_status=HousekeepingStatus.CLEAN,
            ))
    db.commit()


def main():
    init_db()
    db = SessionLocal()
    try:
        init_employees(db)
        init_rooms(db)
        day = BusinessDayService(db).get_business_day()

        print("=" * 50)
        print("初始化完成")
        print(f"  当前营业日: {day.business_date}")
        print("  经理:  manager   / 123456")
        print("  财务:  accounts1 / 123456")
        print("  前台:  front1    / 123456")
        print("  客房:  cleaner1  / 123456")
        print("=" * 50)
    finally:
        db.close()


if __name__ == '__main__':
    main()

"""
夜审服务 - 营业日结束时的批处理
流程：
0. 按营业日加咨询锁，拒绝同一营业日的并发夜审；超时的残留锁被接管
1. 读取营业日（含版本号）
2. 创建夜审日志（in_progress）
3. 为每个在住预订过一晚房费（整批与 5、6 同一事务，全部成功或全部回滚）
4. 采集报表快照：当日账目、当日餐饮订单、客房状态、明日预抵/预离、今日离店
5. 更新日志步骤与汇总
6. 条件推进营业日
7. 生成并发送 PDF 报表，失败只记为警告
8. 收尾：completed / completed_with_warnings，释放锁，发布事件
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.events import (
    EventType, NightAuditCompletedData, NightAuditFailedData, BusinessDayRolledData
)
from app.models.ontology import (
    Booking, BookingStatus, BusinessDayStatus, FoodOrder, HousekeepingRoom,
    HousekeepingStatus, LedgerCategory, LedgerEntryType, MenuType,
    NightAuditLock, NightAuditLog, NightAuditStatus, PaymentMethod
)
from app.models.schemas import LedgerEntryCreate
from app.services.booking_service import BookingService, nightly_rate
from app.services.business_day_service import BusinessDayService, BusinessDateConflictError
from app.services.event_bus import Event, event_bus
from app.services.ledger_service import LedgerService
from app.services.notification_service import send_night_audit_report
from app.services.report_service import NightAuditReportData, generate_night_audit_pdf

logger = logging.getLogger(__name__)


class NightAuditError(Exception):
    """夜审异常基类"""


class AuditAlreadyRunningError(NightAuditError):
    """同一营业日已有夜审在执行"""

    def __init__(self, business_date: date):
        super().__init__(f"营业日 {business_date.isoformat()} 的夜审正在执行")
        self.business_date = business_date


class NightAuditOutcome(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass
class NightAuditResult:
    """夜审结果：ok / warning(reason) / fatal(reason)"""
    outcome: NightAuditOutcome
    audit_log_id: Optional[str] = None
    reason: Optional[str] = None
    conflict: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome != NightAuditOutcome.FATAL

    def audit_log_id_if_succeeded(self) -> Optional[str]:
        return self.audit_log_id if self.succeeded else None


class NightAuditService:
    """夜审服务"""

    def __init__(
        self,
        db: Session,
        report_renderer: Callable[[NightAuditReportData], bytes] = None,
        report_sender: Callable[[bytes, str, date], bool] = None,
        event_publisher: Callable[[Event], None] = None,
        recipient: Optional[str] = None,
    ):
        self.db = db
        self.business_days = BusinessDayService(db)
        self.bookings = BookingService(db)
        self.ledger = LedgerService(db)
        # 报表渲染、发送、事件发布均可注入，便于测试
        self._render_report = report_renderer or generate_night_audit_pdf
        self._send_report = report_sender or send_night_audit_report
        self._publish_event = event_publisher or event_bus.publish
        self.recipient = recipient or settings.NIGHT_AUDIT_REPORT_RECIPIENT

    # ------------------------------------------------------------------ #
    # 查询
    # ------------------------------------------------------------------ #

    def get_audit_log(self, audit_log_id: str) -> Optional[NightAuditLog]:
        return self.db.get(NightAuditLog, audit_log_id)

    def get_audit_history(self, limit: int = 50) -> List[NightAuditLog]:
        """夜审历史，按营业日倒序"""
        return self.db.query(NightAuditLog).order_by(
            NightAuditLog.business_date.desc(),
            NightAuditLog.started_at.desc()
        ).limit(limit).all()

    def get_audit_blockers(self, business_date: Optional[date] = None) -> dict:
        """夜审前检查：未到店的预抵、未退房的预离、未清洁的房间"""
        business_date = business_date or self.business_days.get_current_business_date()
        unclean_rooms = self.db.query(HousekeepingRoom).filter(
            HousekeepingRoom.housekeeping_status.in_([
                HousekeepingStatus.DIRTY, HousekeepingStatus.NEEDS_ATTENTION
            ])
        ).count()
        return {
            'business_date': business_date,
            'pending_arrivals': len(self.bookings.get_arrivals(business_date)),
            'pending_departures': len(self.bookings.get_departures(business_date)),
            'unclean_rooms': unclean_rooms,
        }

    # ------------------------------------------------------------------ #
    # 锁
    # ------------------------------------------------------------------ #

    def _is_stale(self, lock: NightAuditLock) -> bool:
        if lock.acquired_at is None:
            return False
        ttl = timedelta(minutes=settings.NIGHT_AUDIT_LOCK_TTL_MINUTES)
        return datetime.utcnow() - lock.acquired_at >= ttl

    def _discard_lock(self, lock: NightAuditLock, reason: str) -> None:
        """丢弃残留锁：持锁的日志标记失败，营业日恢复 open（不提交）"""
        if lock.audit_log_id:
            stale_log = self.db.get(NightAuditLog, lock.audit_log_id)
            if stale_log is not None and stale_log.status == NightAuditStatus.IN_PROGRESS:
                stale_log.status = NightAuditStatus.FAILED
                stale_log.error = reason
                stale_log.completed_at = datetime.utcnow()
        day = self.business_days.get_business_day()
        if day.status == BusinessDayStatus.AUDIT_IN_PROGRESS:
            day.status = BusinessDayStatus.OPEN
        self.db.delete(lock)
        self.db.flush()

    def _acquire_lock(self, business_date: date) -> None:
        lock = self.db.get(NightAuditLock, business_date)
        if lock is not None:
            if not self._is_stale(lock):
                raise AuditAlreadyRunningError(business_date)
            logger.warning(
                f"Taking over stale night audit lock for {business_date} (acquired {lock.acquired_at})"
            )
            self._discard_lock(lock, "夜审锁超时，已被后续夜审接管")

        self.db.add(NightAuditLock(business_date=business_date, acquired_at=datetime.utcnow()))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AuditAlreadyRunningError(business_date)

    def _release_lock(self, business_date: date) -> None:
        try:
            self.db.query(NightAuditLock).filter(
                NightAuditLock.business_date == business_date
            ).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"Failed to release night audit lock for {business_date}")

    def clear_lock(self, business_date: Optional[date] = None) -> bool:
        """手工清除夜审锁（夜审进程中断后恢复用），无锁时返回 False"""
        business_date = business_date or self.business_days.get_current_business_date()
        lock = self.db.get(NightAuditLock, business_date)
        if lock is None:
            return False
        self._discard_lock(lock, "夜审锁已被手工清除")
        self.db.commit()
        logger.warning(f"Night audit lock for {business_date} cleared manually")
        return True

    # ------------------------------------------------------------------ #
    # 步骤
    # ------------------------------------------------------------------ #

    def _create_log(self, business_date: date, staff_id: str, staff_name: str) -> NightAuditLog:
        audit_log = NightAuditLog(
            business_date=business_date,
            started_at=datetime.utcnow(),
            audited_by=staff_id,
            audited_by_name=staff_name,
            status=NightAuditStatus.IN_PROGRESS,
            total_revenue=Decimal('0'),
            total_occupied_rooms=0,
            total_arrivals=0,
            total_departures=0,
        )
        self.db.add(audit_log)
        self.db.flush()
        self.db.query(NightAuditLock).filter(
            NightAuditLock.business_date == business_date
        ).update({'audit_log_id': audit_log.id}, synchronize_session=False)
        self.db.commit()
        self.db.refresh(audit_log)
        return audit_log

    def _post_room_charges(self, audit_log: NightAuditLog, business_date: date,
                           in_house: List[Booking]) -> Decimal:
        """每个房费非零的在住预订过一条账，只 flush 不提交"""
        total_revenue = Decimal('0')
        for booking in in_house:
            rate = nightly_rate(booking)
            if rate <= 0:
                continue
            room_label = booking.rooms[0].allocated_room or 'Unassigned'
            self.ledger.create_entry(
                LedgerEntryCreate(
                    entry_date=business_date,
                    entry_type=LedgerEntryType.INCOME,
                    category=LedgerCategory.ROOM_BOOKING,
                    description=f"Night Audit: Room Charge for {booking.guest_last_name} (Room {room_label})",
                    amount=rate,
                    payment_method=PaymentMethod.ONLINE,
                    reference_id=str(booking.id),
                    notes=f"Posted during audit {audit_log.id}",
                    accounts_receivable=True,
                ),
                created_by=settings.NIGHT_AUDIT_SYSTEM_USER,
                commit=False,
            )
            total_revenue += rate
        return total_revenue

    def _collect_snapshots(self, business_date: date, next_date: date) -> dict:
        day_start = datetime.combine(business_date, datetime.min.time())
        day_end = day_start + timedelta(days=1)
        return {
            'ledger_entries': self.ledger.get_entries(business_date, business_date),
            'food_orders': self.db.query(FoodOrder).filter(
                FoodOrder.menu_type == MenuType.FOOD,
                FoodOrder.created_at >= day_start,
                FoodOrder.created_at < day_end
            ).order_by(FoodOrder.created_at).all(),
            'housekeeping_rooms': self.db.query(HousekeepingRoom).order_by(HousekeepingRoom.room_name).all(),
            'arrivals_tomorrow': self.bookings.get_arrivals(next_date),
            'departures_tomorrow': self.bookings.get_departures(next_date),
            'checked_out_today': self.bookings.get_checked_out_on(business_date),
        }

    def _deliver_report(self, report_data: NightAuditReportData) -> None:
        pdf_bytes = self._render_report(report_data)
        self._send_report(pdf_bytes, self.recipient, report_data.business_date)

    def _mark_failed(self, audit_log: Optional[NightAuditLog], reason: str) -> None:
        try:
            day = self.business_days.get_business_day()
            if day.status == BusinessDayStatus.AUDIT_IN_PROGRESS:
                day.status = BusinessDayStatus.OPEN
            if audit_log is not None:
                audit_log.status = NightAuditStatus.FAILED
                audit_log.error = reason
                audit_log.completed_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Failed to record night audit failure")

    # ------------------------------------------------------------------ #
    # 执行
    # ------------------------------------------------------------------ #

    def run(self, staff_id: str, staff_name: str) -> NightAuditResult:
        """执行夜审，返回 ok / warning / fatal"""
        try:
            day = self.business_days.get_business_day()
            business_date = day.business_date or date.today()
            expected_version = day.version
            self._acquire_lock(business_date)
        except AuditAlreadyRunningError as e:
            logger.warning(str(e))
            return NightAuditResult(NightAuditOutcome.FATAL, reason=str(e), conflict=True)
        except Exception as e:
            self.db.rollback()
            reason = str(e) or e.__class__.__name__
            logger.exception(f"Night audit could not start: {reason}")
            return NightAuditResult(NightAuditOutcome.FATAL, reason=reason)

        next_date = business_date + timedelta(days=1)

        audit_log = None
        try:
            day.status = BusinessDayStatus.AUDIT_IN_PROGRESS
            audit_log = self._create_log(business_date, staff_id, staff_name)
            logger.info(f"Night audit {audit_log.id} started for {business_date} by {staff_name}")

            in_house = self.bookings.get_by_status(BookingStatus.CHECKED_IN)
            total_revenue = self._post_room_charges(audit_log, business_date, in_house)

            snapshots = self._collect_snapshots(business_date, next_date)

            audit_log.room_charges_posted = True
            audit_log.total_revenue = total_revenue
            audit_log.total_occupied_rooms = len(in_house)
            audit_log.total_arrivals = len(snapshots['arrivals_tomorrow'])
            audit_log.total_departures = len(snapshots['departures_tomorrow'])

            self.business_days.roll_forward(expected_version, business_date)
            audit_log.business_date_rolled = True
            self.db.commit()
            logger.info(
                f"Night audit {audit_log.id}: posted {total_revenue} for {len(in_house)} in-house bookings"
            )

            report_data = NightAuditReportData(
                business_date=business_date,
                generated_by=staff_name,
                staying_over=in_house,
                total_revenue=total_revenue,
                **snapshots,
            )
            warning = None
            try:
                self._deliver_report(report_data)
                audit_log.reports_generated = True
            except Exception as e:
                warning = str(e) or e.__class__.__name__
                logger.error(f"Night audit {audit_log.id}: report generation failed: {warning}")
                audit_log.error = warning

            audit_log.status = (
                NightAuditStatus.COMPLETED_WITH_WARNINGS if warning else NightAuditStatus.COMPLETED
            )
            audit_log.completed_at = datetime.utcnow()
            audit_log.room_status_updated = True
            audit_log.business_date_rolled = True
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            reason = str(e) or e.__class__.__name__
            logger.exception(f"Night audit failed for {business_date}")
            self._mark_failed(audit_log, reason)
            audit_log_id = audit_log.id if audit_log is not None else None
            self._publish_event(Event(
                event_type=EventType.NIGHT_AUDIT_FAILED,
                data=NightAuditFailedData(
                    audit_log_id=audit_log_id, business_date=business_date, reason=reason
                ).to_dict(),
                source="night_audit_service",
            ))
            return NightAuditResult(
                NightAuditOutcome.FATAL,
                audit_log_id=audit_log_id,
                reason=reason,
                conflict=isinstance(e, BusinessDateConflictError),
            )
        finally:
            self._release_lock(business_date)

        logger.info(f"Night audit {audit_log.id} finished with status {audit_log.status.value}")
        self._publish_event(Event(
            event_type=EventType.BUSINESS_DAY_ROLLED,
            data=BusinessDayRolledData(
                previous_date=business_date, new_date=next_date, version=expected_version + 1
            ).to_dict(),
            source="night_audit_service",
        ))
        self._publish_event(Event(
            event_type=EventType.NIGHT_AUDIT_COMPLETED,
            data=NightAuditCompletedData(
                audit_log_id=audit_log.id,
                business_date=business_date,
                status=audit_log.status.value,
                total_revenue=audit_log.total_revenue,
                total_occupied_rooms=audit_log.total_occupied_rooms,
                warning=warning,
            ).to_dict(),
            source="night_audit_service",
        ))

        if warning:
            return NightAuditResult(NightAuditOutcome.WARNING, audit_log_id=audit_log.id, reason=warning)
        return NightAuditResult(NightAuditOutcome.OK, audit_log_id=audit_log.id)


def perform_night_audit(staff_id: str, staff_name: str, db: Optional[Session] = None) -> Optional[str]:
    """执行夜审，成功（含警告）返回夜审日志 ID，失败返回 None"""
    if db is not None:
        return NightAuditService(db).run(staff_id, staff_name).audit_log_id_if_succeeded()

    from app.database import SessionLocal
    session = SessionLocal()
    try:
        return NightAuditService(session).run(staff_id, staff_name).audit_log_id_if_succeeded()
    finally:
        session.close()

"""
夜审服务测试
覆盖：房费过账、营业日推进、汇总统计、报表失败降级、并发锁、版本冲突、整批回滚
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.models.events import EventType
from app.models.ontology import (
    BUSINESS_DAY_ID, BookingStatus, BusinessDay, BusinessDayStatus, HousekeepingRoom,
    HousekeepingStatus, LedgerCategory, LedgerEntry, LedgerEntryType, NightAuditLock,
    NightAuditLog, NightAuditStatus
)
from app.services.business_day_service import BusinessDayService
from app.services.event_bus import event_bus
from app.services.night_audit_service import (
    NightAuditOutcome, NightAuditService, perform_night_audit
)

AUDIT_DATE = date(2024, 3, 1)
TOMORROW = date(2024, 3, 2)


def _sent_reports():
    sent = []

    def sender(pdf_bytes, recipient, business_date):
        sent.append((pdf_bytes, recipient, business_date))
        return True
    return sent, sender


def _failing_sender(pdf_bytes, recipient, business_date):
    raise RuntimeError("SMTP unavailable")


@pytest.fixture
def audit_day(set_business_date):
    return set_business_date(AUDIT_DATE)


class TestNightAuditRun:
    """夜审主流程"""

    def test_single_checked_in_booking(self, db_session, audit_day, make_booking):
        """单个在住预订：一笔房费、营业日 +1、汇总正确"""
        booking = make_booking(
            date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN,
            rooms=[("Standard", Decimal("100"), "12")]
        )
        sent, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.OK
        entries = db_session.query(LedgerEntry).all()
        assert len(entries) == 1
        assert entries[0].amount == Decimal("100")
        assert entries[0].entry_type == LedgerEntryType.INCOME
        assert entries[0].category == LedgerCategory.ROOM_BOOKING
        assert entries[0].entry_date == AUDIT_DATE
        assert entries[0].reference_id == str(booking.id)
        assert entries[0].accounts_receivable is True
        assert entries[0].created_by == "Night Audit System"

        day = db_session.get(BusinessDay, BUSINESS_DAY_ID)
        assert day.business_date == TOMORROW
        assert day.last_audit_date == AUDIT_DATE
        assert day.version == 1
        assert day.status == BusinessDayStatus.OPEN

        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.status == NightAuditStatus.COMPLETED
        assert log.total_revenue == Decimal("100")
        assert log.total_occupied_rooms == 1
        assert log.completed_at is not None
        assert log.steps == {
            'room_charges_posted': True,
            'room_status_updated': True,
            'reports_generated': True,
            'business_date_rolled': True,
        }
        assert len(sent) == 1
        assert sent[0][0].startswith(b"%PDF")
        assert sent[0][1] == "reservations@sultanpalacehotelznz.com"
        assert sent[0][2] == AUDIT_DATE

    def test_zero_checked_in_bookings(self, db_session, audit_day):
        """无在住预订：不记账，营业日照常推进"""
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.OK
        assert db_session.query(LedgerEntry).count() == 0
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.total_revenue == Decimal("0")
        assert log.total_occupied_rooms == 0
        assert db_session.get(BusinessDay, BUSINESS_DAY_ID).business_date == TOMORROW

    def test_charge_is_sum_of_room_prices(self, db_session, audit_day, make_booking):
        """多房预订：一笔账，金额为各房价之和；零房价预订不记账但计入在住"""
        make_booking(
            date(2024, 2, 29), date(2024, 3, 3), BookingStatus.CHECKED_IN, last_name="Mwinyi",
            rooms=[("Deluxe", Decimal("150.00"), "101"), ("Suite", Decimal("220.50"), "201")]
        )
        make_booking(
            date(2024, 2, 29), date(2024, 3, 3), BookingStatus.CHECKED_IN, last_name="Comp",
            rooms=[("Standard", Decimal("0"), "14")]
        )
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        entries = db_session.query(LedgerEntry).all()
        assert len(entries) == 1
        assert entries[0].amount == Decimal("370.50")
        assert "Mwinyi" in entries[0].description
        assert "Room 101" in entries[0].description
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.total_revenue == Decimal("370.50")
        assert log.total_occupied_rooms == 2

    def test_arrival_and_departure_counts(self, db_session, audit_day, make_booking):
        """预抵 = 明日入住的已确认预订；预离 = 明日离店的在住预订"""
        make_booking(TOMORROW, date(2024, 3, 4), BookingStatus.CONFIRMED)
        make_booking(TOMORROW, date(2024, 3, 6), BookingStatus.CONFIRMED)
        make_booking(TOMORROW, date(2024, 3, 6), BookingStatus.CANCELLED)
        make_booking(date(2024, 2, 27), TOMORROW, BookingStatus.CHECKED_IN)
        make_booking(date(2024, 2, 27), TOMORROW, BookingStatus.CHECKED_OUT)
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.total_arrivals == 2
        assert log.total_departures == 1
        assert log.total_occupied_rooms == 1

    def test_report_failure_is_warning(self, db_session, audit_day, make_booking):
        """报表发送失败：completed_with_warnings，营业日仍推进"""
        make_booking(date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN)

        result = NightAuditService(db_session, report_sender=_failing_sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.WARNING
        assert result.succeeded
        assert "SMTP unavailable" in result.reason
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.status == NightAuditStatus.COMPLETED_WITH_WARNINGS
        assert log.error
        assert log.business_date_rolled is True
        assert log.reports_generated is False
        assert db_session.query(LedgerEntry).count() == 1
        assert db_session.get(BusinessDay, BUSINESS_DAY_ID).business_date == TOMORROW

    def test_missing_email_channel_is_warning(self, db_session, audit_day):
        """未注册邮件渠道时记为警告"""
        result = NightAuditService(db_session).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.WARNING
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.status == NightAuditStatus.COMPLETED_WITH_WARNINGS

    def test_report_emailed_through_channel(self, db_session, audit_day, email_channel, make_booking):
        """默认发送器通过邮件渠道发送 PDF 附件"""
        make_booking(date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN)

        result = NightAuditService(db_session).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.OK
        assert len(email_channel.sent) == 1
        message = email_channel.sent[0]
        assert message["recipient"] == "reservations@sultanpalacehotelznz.com"
        assert message["subject"] == "Night Audit Report - March 1, 2024"
        attachment = message["attachments"][0]
        assert attachment.filename == "Night_Audit_Report_2024-03-01.pdf"
        assert attachment.content.startswith(b"%PDF")

    def test_consecutive_runs_advance_one_day_each(self, db_session, audit_day):
        _, sender = _sent_reports()
        service = NightAuditService(db_session, report_sender=sender)

        service.run("1", "Amina Manager")
        service.run("1", "Amina Manager")

        day = db_session.get(BusinessDay, BUSINESS_DAY_ID)
        assert day.business_date == date(2024, 3, 3)
        assert day.version == 2
        assert db_session.query(NightAuditLog).count() == 2
        assert db_session.query(NightAuditLock).count() == 0


class TestNightAuditConcurrency:
    """锁与版本冲突"""

    def test_rejects_when_lock_held(self, db_session, audit_day):
        """同一营业日已加锁时拒绝执行"""
        db_session.add(NightAuditLock(business_date=AUDIT_DATE))
        db_session.commit()
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.FATAL
        assert result.conflict is True
        assert result.audit_log_id is None
        assert db_session.query(NightAuditLog).count() == 0
        assert db_session.get(BusinessDay, BUSINESS_DAY_ID).business_date == AUDIT_DATE
        # 他人持有的锁不被释放
        assert db_session.query(NightAuditLock).count() == 1

    def test_version_conflict_rolls_back_charges(self, db_session, audit_day, make_booking):
        """营业日版本在运行中被修改：整批房费回滚，日志标记失败"""
        make_booking(date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN)
        _, sender = _sent_reports()
        service = NightAuditService(db_session, report_sender=sender)
        collect = service._collect_snapshots

        def collect_then_bump(business_date, next_date):
            db_session.execute(text("UPDATE business_days SET version = version + 1"))
            return collect(business_date, next_date)

        service._collect_snapshots = collect_then_bump
        result = service.run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.FATAL
        assert result.conflict is True
        assert db_session.query(LedgerEntry).count() == 0
        day = db_session.get(BusinessDay, BUSINESS_DAY_ID)
        assert day.business_date == AUDIT_DATE
        assert day.status == BusinessDayStatus.OPEN
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.status == NightAuditStatus.FAILED
        assert log.business_date_rolled is False
        assert db_session.query(NightAuditLock).count() == 0

    def test_fatal_error_is_all_or_nothing(self, db_session, audit_day, make_booking):
        """过账后出错：账目、营业日都不变"""
        make_booking(date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN)
        make_booking(date(2024, 2, 28), date(2024, 3, 5), BookingStatus.CHECKED_IN)
        _, sender = _sent_reports()
        service = NightAuditService(db_session, report_sender=sender)

        def broken_snapshots(business_date, next_date):
            raise RuntimeError("snapshot query failed")

        service._collect_snapshots = broken_snapshots
        result = service.run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.FATAL
        assert result.conflict is False
        assert result.reason == "snapshot query failed"
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.get(BusinessDay, BUSINESS_DAY_ID).business_date == AUDIT_DATE
        log = db_session.get(NightAuditLog, result.audit_log_id)
        assert log.status == NightAuditStatus.FAILED
        assert log.error == "snapshot query failed"
        failed = event_bus.get_history(EventType.NIGHT_AUDIT_FAILED)
        assert len(failed) == 1
        assert failed[0].data["reason"] == "snapshot query failed"


class TestNightAuditQueries:
    """夜审查询与事件"""

    def test_events_published(self, db_session, audit_day):
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        completed = event_bus.get_history(EventType.NIGHT_AUDIT_COMPLETED)
        assert len(completed) == 1
        assert completed[0].data["audit_log_id"] == result.audit_log_id
        assert completed[0].data["business_date"] == "2024-03-01"
        rolled = event_bus.get_history(EventType.BUSINESS_DAY_ROLLED)
        assert rolled[0].data["new_date"] == "2024-03-02"

    def test_perform_night_audit_returns_log_id(self, db_session, audit_day):
        audit_log_id = perform_night_audit("1", "Amina Manager", db=db_session)

        assert audit_log_id is not None
        assert db_session.get(NightAuditLog, audit_log_id) is not None

    def test_perform_night_audit_returns_none_on_conflict(self, db_session, audit_day):
        db_session.add(NightAuditLock(business_date=AUDIT_DATE))
        db_session.commit()

        assert perform_night_audit("1", "Amina Manager", db=db_session) is None

    def test_audit_blockers(self, db_session, audit_day, make_booking):
        make_booking(AUDIT_DATE, date(2024, 3, 4), BookingStatus.CONFIRMED)
        make_booking(date(2024, 2, 26), AUDIT_DATE, BookingStatus.CHECKED_IN)
        db_session.add_all([
            HousekeepingRoom(room_name="101", housekeeping_status=HousekeepingStatus.DIRTY),
            HousekeepingRoom(room_name="102", housekeeping_status=HousekeepingStatus.CLEAN),
            HousekeepingRoom(room_name="103", housekeeping_status=HousekeepingStatus.NEEDS_ATTENTION),
        ])
        db_session.commit()

        blockers = NightAuditService(db_session).get_audit_blockers()

        assert blockers == {
            'business_date': AUDIT_DATE,
            'pending_arrivals': 1,
            'pending_departures': 1,
            'unclean_rooms': 2,
        }

    def test_audit_history_newest_first(self, db_session, audit_day):
        _, sender = _sent_reports()
        service = NightAuditService(db_session, report_sender=sender)
        service.run("1", "Amina Manager")
        service.run("1", "Amina Manager")

        history = service.get_audit_history()

        assert [log.business_date for log in history] == [date(2024, 3, 2), AUDIT_DATE]


class TestNightAuditRecovery:
    """启动失败与残留锁"""

    @staticmethod
    def _leftover_lock(db_session, acquired_at):
        """模拟夜审进程中断：日志停在 in_progress，锁未释放"""
        stale_log = NightAuditLog(
            business_date=AUDIT_DATE,
            audited_by="1",
            audited_by_name="Amina Manager",
            status=NightAuditStatus.IN_PROGRESS,
        )
        db_session.add(stale_log)
        db_session.flush()
        db_session.add(NightAuditLock(
            business_date=AUDIT_DATE, audit_log_id=stale_log.id, acquired_at=acquired_at
        ))
        db_session.get(BusinessDay, BUSINESS_DAY_ID).status = BusinessDayStatus.AUDIT_IN_PROGRESS
        db_session.commit()
        return stale_log

    def test_database_error_before_start_is_fatal(self, db_session, audit_day, monkeypatch):
        """读取营业日时数据库出错：返回 fatal，不抛异常"""
        def db_down(self):
            raise OperationalError("SELECT business_days", {}, Exception("db down"))

        monkeypatch.setattr(BusinessDayService, "get_business_day", db_down)
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.FATAL
        assert result.conflict is False
        assert "db down" in result.reason
        assert perform_night_audit("1", "Amina Manager", db=db_session) is None
        assert db_session.query(NightAuditLog).count() == 0
        assert db_session.query(NightAuditLock).count() == 0

    def test_stale_lock_is_taken_over(self, db_session, audit_day):
        """超时的残留锁被接管，原日志标记失败，夜审正常完成"""
        stale_log = self._leftover_lock(db_session, datetime.utcnow() - timedelta(hours=3))
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.OK
        assert result.audit_log_id != stale_log.id
        db_session.refresh(stale_log)
        assert stale_log.status == NightAuditStatus.FAILED
        assert stale_log.error
        day = db_session.get(BusinessDay, BUSINESS_DAY_ID)
        assert day.business_date == TOMORROW
        assert day.status == BusinessDayStatus.OPEN
        assert db_session.query(NightAuditLock).count() == 0

    def test_recent_lock_still_rejects(self, db_session, audit_day):
        """未超时的锁仍然拒绝执行"""
        stale_log = self._leftover_lock(db_session, datetime.utcnow() - timedelta(minutes=5))
        _, sender = _sent_reports()

        result = NightAuditService(db_session, report_sender=sender).run("1", "Amina Manager")

        assert result.outcome == NightAuditOutcome.FATAL
        assert result.conflict is True
        db_session.refresh(stale_log)
        assert stale_log.status == NightAuditStatus.IN_PROGRESS
        assert db_session.query(NightAuditLock).count() == 1

    def test_clear_lock(self, db_session, audit_day):
        """手工清除锁后可以重新夜审"""
        stale_log = self._leftover_lock(db_session, datetime.utcnow())
        _, sender = _sent_reports()
        service = NightAuditService(db_session, report_sender=sender)

        assert service.clear_lock() is True
        assert service.clear_lock() is False

        db_session.refresh(stale_log)
        assert stale_log.status == NightAuditStatus.FAILED
        assert db_session.get(BusinessDay, BUSINESS_DAY_ID).status == BusinessDayStatus.OPEN
        assert service.run("1", "Amina Manager").outcome == NightAuditOutcome.OK

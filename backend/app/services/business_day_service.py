"""
营业日服务
营业日是单例记录，与自然日解耦；只有夜审会推进它
推进采用条件更新（version 比对），并发夜审只会有一个成功
"""
import logging
from datetime import date, datetime, timedelta
from sqlalchemy import update
from sqlalchemy.orm import Session
from app.models.ontology import BusinessDay, BusinessDayStatus, BUSINESS_DAY_ID

logger = logging.getLogger(__name__)


class BusinessDateConflictError(Exception):
    """营业日已被其他流程修改"""

    def __init__(self, expected_version: int):
        super().__init__(f"营业日已被修改（期望版本 {expected_version}）")
        self.expected_version = expected_version


class BusinessDayService:
    """营业日服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_business_day(self) -> BusinessDay:
        """获取营业日，不存在时以今天初始化"""
        day = self.db.get(BusinessDay, BUSINESS_DAY_ID)
        if day is None:
            day = BusinessDay(
                id=BUSINESS_DAY_ID,
                business_date=date.today(),
                status=BusinessDayStatus.OPEN,
                opened_by="system",
                version=0,
            )
            self.db.add(day)
            self.db.commit()
            self.db.refresh(day)
            logger.info(f"Business day initialized to {day.business_date}")
        return day

    def get_current_business_date(self) -> date:
        return self.get_business_day().business_date

    def set_status(self, status: BusinessDayStatus) -> BusinessDay:
        day = self.get_business_day()
        day.status = status
        self.db.commit()
        self.db.refresh(day)
        return day

    def roll_forward(self, expected_version: int, audited_date: date) -> date:
        """
        推进营业日一天（不提交，由调用方控制事务）

        仅当库中 version 仍等于 expected_version 时生效，否则抛出
        BusinessDateConflictError
        """
        next_date = audited_date + timedelta(days=1)
        result = self.db.execute(
            update(BusinessDay)
            .where(
                BusinessDay.id == BUSINESS_DAY_ID,
                BusinessDay.version == expected_version,
            )
            .values(
                business_date=next_date,
                last_audit_date=audited_date,
                status=BusinessDayStatus.OPEN,
                version=expected_version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise BusinessDateConflictError(expected_version)

        logger.info(f"Business date rolled {audited_date} -> {next_date}")
        return next_date

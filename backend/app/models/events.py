"""
领域事件定义 (Domain Events)
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 夜审相关
    NIGHT_AUDIT_COMPLETED = "night_audit.completed"
    NIGHT_AUDIT_FAILED = "night_audit.failed"
    BUSINESS_DAY_ROLLED = "business_day.rolled"

    # 账目相关
    LEDGER_ENTRY_CREATED = "ledger.entry_created"

    # 餐饮相关
    RECEIPT_GENERATED = "receipt.generated"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（日期、金额转为字符串）"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, (datetime, date)):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class NightAuditCompletedData(BaseEventData):
    """夜审完成事件数据"""
    audit_log_id: str = ""
    business_date: Optional[date] = None
    status: str = ""
    total_revenue: Decimal = Decimal("0")
    total_occupied_rooms: int = 0
    warning: Optional[str] = None


@dataclass
class NightAuditFailedData(BaseEventData):
    """夜审失败事件数据"""
    audit_log_id: Optional[str] = None
    business_date: Optional[date] = None
    reason: str = ""


@dataclass
class BusinessDayRolledData(BaseEventData):
    """营业日推进事件数据"""
    previous_date: Optional[date] = None
    new_date: Optional[date] = None
    version: int = 0


@dataclass
class ReceiptGeneratedData(BaseEventData):
    """小票生成事件数据"""
    order_id: int = 0
    menu_type: str = ""
    receipt_url: str = ""

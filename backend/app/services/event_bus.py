"""
事件总线 - 内存级发布/订阅
夜审、小票等流程通过事件通知其他模块，处理器异常不影响发布方
"""
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """事件"""
    event_type: str
    data: Dict[str, Any]
    source: str  # 触发来源（服务名）
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    线程安全的单例事件总线

        event_bus.subscribe("night_audit.completed", handler)
        event_bus.publish(Event(...))
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._handlers = {}
                    instance._recent = deque(maxlen=100)
                    instance._handlers_lock = threading.Lock()
                    cls._instance = instance
        return cls._instance

    def subscribe(self, event_type: str, handler: Callable[[Event], None]) -> None:
        """订阅事件"""
        with self._handlers_lock:
            handlers = self._handlers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)

    def unsubscribe(self, event_type: str, handler: Callable[[Event], None]) -> None:
        """取消订阅"""
        with self._handlers_lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """同步调用所有处理器"""
        self._recent.append(event)
        with self._handlers_lock:
            handlers = list(self._handlers.get(event.event_type, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    getattr(handler, "__name__", handler), event.event_type
                )

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """最近发布的事件（最新在前）"""
        history = [e for e in self._recent if event_type is None or e.event_type == event_type]
        return list(reversed(history))[:limit]

    def clear(self) -> None:
        """清空订阅与历史（用于测试）"""
        with self._handlers_lock:
            self._handlers.clear()
        self._recent.clear()


# 全局事件总线实例
event_bus = EventBus()

"""
通知渠道接口 - 与具体业务无关

app 层实现具体渠道（SMTP 邮件等）并在 lifespan 中注册。
夜审报表需要随邮件发送 PDF，因此接口支持附件。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class Attachment:
    """通知附件"""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class INotificationChannel(ABC):
    """通知渠道接口"""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        attachments: Optional[List[Attachment]] = None,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送通知

        Args:
            recipient: 接收方（邮箱地址等，由渠道决定）
            subject: 标题
            content: 正文
            attachments: 附件列表
            extra: 扩展参数（如 content_type、cc）

        Returns:
            是否发送成功
        """

    @abstractmethod
    def get_channel_type(self) -> str:
        """渠道类型标识，如 'email'"""


class NotificationChannelRegistry:
    """通知渠道注册表（单例）"""

    _instance: Optional["NotificationChannelRegistry"] = None

    def __new__(cls) -> "NotificationChannelRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._channels = {}
        return cls._instance

    def register(self, channel: INotificationChannel) -> None:
        self._channels[channel.get_channel_type()] = channel

    def get_channel(self, channel_type: str) -> Optional[INotificationChannel]:
        return self._channels.get(channel_type)

    def send(
        self,
        channel_type: str,
        recipient: str,
        subject: str,
        content: str,
        attachments: Optional[List[Attachment]] = None,
        extra: Optional[Dict] = None,
    ) -> bool:
        """通过指定渠道发送；渠道未注册返回 False"""
        channel = self.get_channel(channel_type)
        if channel is None:
            return False
        return channel.send(recipient, subject, content, attachments, extra)

    def clear(self) -> None:
        """清除所有渠道（用于测试）"""
        self._channels.clear()

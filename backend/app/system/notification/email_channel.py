"""
邮件通知渠道 - SMTP 发送邮件（支持附件）
"""
import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

from core.notification.channel import Attachment, INotificationChannel

logger = logging.getLogger(__name__)


class EmailChannel(INotificationChannel):
    """SMTP 邮件通知渠道"""

    def __init__(
        self,
        smtp_host: str = "localhost",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        sender_email: str = "",
        use_tls: bool = True,
        smtp_factory=smtplib.SMTP,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender_email = sender_email or smtp_user
        self.use_tls = use_tls
        self._smtp_factory = smtp_factory

    def build_message(
        self,
        recipient: str,
        subject: str,
        content: str,
        attachments: Optional[List[Attachment]] = None,
        extra: Optional[Dict] = None,
    ) -> MIMEMultipart:
        """组装 MIME 邮件"""
        extra = extra or {}
        msg = MIMEMultipart()
        msg["From"] = self.sender_email
        msg["To"] = recipient
        msg["Subject"] = subject
        if cc := extra.get("cc"):
            msg["Cc"] = cc
        msg.attach(MIMEText(content, extra.get("content_type", "plain"), "utf-8"))

        for attachment in attachments or []:
            subtype = attachment.content_type.split("/", 1)[-1]
            part = MIMEApplication(attachment.content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
        return msg

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        attachments: Optional[List[Attachment]] = None,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送邮件，失败返回 False"""
        try:
            msg = self.build_message(recipient, subject, content, attachments, extra)
            with self._smtp_factory(self.smtp_host, self.smtp_port) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent to {recipient}: {subject}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            return False

    def get_channel_type(self) -> str:
        return "email"

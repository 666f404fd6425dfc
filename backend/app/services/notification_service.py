"""
通知服务 - 夜审报表邮件
"""
import logging
from datetime import date

from core.notification import Attachment, NotificationChannelRegistry

logger = logging.getLogger(__name__)


def _night_audit_email_body(date_str: str) -> str:
    return f"""
<html>
  <body style="font-family: Arial, sans-serif;">
    <h2 style="color: #1f3a5f;">Night Audit Report</h2>
    <p>Please find attached the Night Audit Report for <strong>{date_str}</strong>.</p>
    <p style="color: #888888; font-size: 14px;">This report was automatically generated.</p>
  </body>
</html>
"""


def send_night_audit_report(pdf_bytes: bytes, recipient: str, business_date: date) -> bool:
    """
    发送夜审报表邮件

    渠道未注册或发送失败时抛出 RuntimeError，由夜审记录为警告
    """
    registry = NotificationChannelRegistry()
    if registry.get_channel("email") is None:
        raise RuntimeError("邮件渠道未配置")

    date_str = f"{business_date.strftime('%B')} {business_date.day}, {business_date.year}"
    subject = f"Night Audit Report - {date_str}"
    attachment = Attachment(
        filename=f"Night_Audit_Report_{business_date.isoformat()}.pdf",
        content=pdf_bytes,
        content_type="application/pdf",
    )

    sent = registry.send(
        "email",
        recipient,
        subject,
        _night_audit_email_body(date_str),
        attachments=[attachment],
        extra={"content_type": "html"},
    )
    if not sent:
        raise RuntimeError(f"夜审报表发送失败: {recipient}")

    logger.info(f"Night audit report for {business_date} sent to {recipient}")
    return True

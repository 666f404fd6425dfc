"""
小票服务 - 餐饮订单热敏小票
读取订单 -> 渲染 58mm 宽 PDF -> 上传对象存储 -> 把地址写回订单

渲染分两遍：第一遍画在 1000mm 高的画布上量出内容高度，
第二遍按实际高度 + 底部留白重新绘制，避免整页纸张浪费
"""
import io
import logging
import re
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from app.config import settings
from app.models.events import EventType, ReceiptGeneratedData
from app.models.ontology import FoodOrder, MenuType, OrderType
from app.services.event_bus import Event, event_bus
from core.storage import IObjectStorage, StorageRegistry

logger = logging.getLogger(__name__)

# 版面尺寸（mm）
RECEIPT_WIDTH = 58
MARGIN = 3
MEASURE_HEIGHT = 1000
BOTTOM_PADDING = 4

ORDER_TYPE_BANNERS = {
    OrderType.TAKEAWAY: "TAKEAWAY",
    OrderType.ROOM_SERVICE: "ROOM SERVICE",
    OrderType.DELIVERY: "DELIVERY",
}
DUE_PAYMENT_STATUSES = {"due", "unpaid", "partial"}


def _safe(value) -> str:
    if value is None:
        return "N/A"
    text = str(value).strip()
    return text or "N/A"


def _money(value) -> str:
    return f"${Decimal(value or 0):.2f}"


def _title_case(text: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in text.lower().split(" "))


class ReceiptLayout:
    """在 reportlab 画布上按自上而下的游标 y（mm）绘制小票"""

    def __init__(self, pdf: canvas.Canvas, page_height: float):
        self.pdf = pdf
        self.page_height = page_height
        self.y = 4.0
        self.font = "Courier"
        self.size = 5.5

    # ---- 基础绘制 ----

    def _set_font(self, size: float, bold: bool = False) -> None:
        self.font = "Courier-Bold" if bold else "Courier"
        self.size = size
        self.pdf.setFont(self.font, size)

    def _draw(self, text: str, x: float, align: str = "left") -> None:
        px, py = x * mm, (self.page_height - self.y) * mm
        if align == "center":
            self.pdf.drawCentredString(px, py, text)
        elif align == "right":
            self.pdf.drawRightString(px, py, text)
        else:
            self.pdf.drawString(px, py, text)

    def _advance(self, size: float) -> None:
        self.y += size * 0.42

    def text_width(self, text: str) -> float:
        return stringWidth(text, self.font, self.size) / mm

    def center(self, text: str, size: float, bold: bool = False) -> None:
        self._set_font(size, bold)
        self._draw(text, RECEIPT_WIDTH / 2, "center")
        self._advance(size)

    def left(self, text: str, size: float) -> None:
        self._set_font(size)
        self._draw(text, MARGIN)
        self._advance(size)

    def row(self, left: str, right: str, size: float) -> None:
        self._set_font(size)
        self._draw(left, MARGIN)
        self._draw(right, RECEIPT_WIDTH - MARGIN, "right")
        self._advance(size)

    def _rule(self) -> None:
        py = (self.page_height - self.y) * mm
        self.pdf.line(MARGIN * mm, py, (RECEIPT_WIDTH - MARGIN) * mm, py)

    def separator(self) -> None:
        self.y -= 1.0
        self.pdf.setLineWidth(0.1 * mm)
        self._rule()
        self.y += 2.3

    def dashed(self) -> None:
        self.y -= 0.8
        self.pdf.setDash(0.5 * mm, 0.5 * mm)
        self._rule()
        self.pdf.setDash()
        self.y += 2.0

    def wrap(self, text: str, max_width: float, size: float) -> List[str]:
        self._set_font(size)
        lines, current = [], ""
        for word in text.split(" "):
            candidate = f"{current} {word}" if current else word
            if self.text_width(candidate) > max_width and current:
                lines.append(current)
                current = word
            else:
                current = candidate
        if current:
            lines.append(current)
        return lines or [""]

    # ---- 小票内容 ----

    def draw(self, order: FoodOrder) -> float:
        """绘制整张小票，返回内容结束位置（即内容高度）"""
        items = list(order.items or [])

        self.center(settings.HOTEL_NAME, 7, bold=True)
        self.center(settings.HOTEL_ADDRESS, 4.5)
        self.center(settings.HOTEL_PHONE, 4.5)
        self.separator()

        self.center(ORDER_TYPE_BANNERS.get(order.order_type, "WALK IN"), 7, bold=True)
        self.y -= 1
        self.separator()

        created = order.created_at or datetime.now()
        self._set_font(5.5)
        self._draw(f"Receipt No.: {_safe(order.receipt_no)}", MARGIN)
        self._draw(f"Date: {created.strftime('%d-%m-%Y')}", 35)
        self._advance(5.5)
        self._draw(f"Order No.: {_safe(order.order_number)}", MARGIN)
        self._draw(f"Time: {created.strftime('%I:%M %p')}", 35)
        self._advance(5.5)

        if order.order_type == OrderType.ROOM_SERVICE or order.delivery_location == "in_room":
            self.left(f"Room: {_safe(order.room_name)}", 5.5)
        else:
            self.left(f"Table: {_safe(order.table_number)}", 5.5)
        self.separator()

        self.row(f"Guest: {_safe(order.guest_name)}", f"Waiter: {_safe(order.waiter_name)}", 5.5)
        self.separator()

        self._set_font(5.5, bold=True)
        self._draw("Item", MARGIN)
        self._draw("Sku", MARGIN + 21)
        self._draw("Qty", MARGIN + 36)
        self._draw("Amount", RECEIPT_WIDTH - MARGIN, "right")
        self._advance(5.5)
        self.dashed()

        for index, item in enumerate(items):
            self._draw_item(item)
            if index < len(items) - 1:
                self.y += 1.2
        self.separator()

        self._draw_totals(order, items)
        self.center("Thank you for your order!", 5.5)
        self.y += 1.5
        self.row(f"Prepared By : {_safe(order.prepared_by)}", f"Printed By  : {_safe(order.printed_by)}", 5)
        return self.y

    def _draw_item(self, item) -> None:
        raw_name = item.name or "Item"
        if item.variant_name:
            raw_name = re.sub(rf"\s*-\s*{re.escape(item.variant_name)}$", "", raw_name, flags=re.IGNORECASE)
        quantity = item.quantity or 1
        amount = _money(Decimal(item.price or 0) * quantity)
        sku = item.sku or ""
        if sku == "N/A":
            sku = ""
        sku = sku[:10]

        name_lines = self.wrap(_title_case(raw_name), 18, 5.5)
        self._set_font(5.5)
        self._draw(name_lines[0], MARGIN)
        self._draw(sku, MARGIN + 21)
        self._draw(str(quantity), MARGIN + 37)
        self._draw(amount, RECEIPT_WIDTH - MARGIN, "right")
        self.y += 2.5
        for line in name_lines[1:]:
            self._draw(line, MARGIN)
            self.y += 2.5

        extras = []
        if item.variant_name:
            extras.append(f"  ( {item.variant_name} )")
        if item.special_instructions and item.special_instructions.strip():
            extras.append(f"  [{item.special_instructions}]")
        for extra in extras:
            for line in self.wrap(extra, 16, 4.5):
                self._draw(line, MARGIN)
                self.y += 2.2

    def _draw_totals(self, order: FoodOrder, items) -> None:
        subtotal = order.subtotal
        if subtotal is None:
            subtotal = sum((Decimal(i.price or 0) * (i.quantity or 1) for i in items), Decimal("0"))
        tax = order.tax or Decimal("0")
        discount = order.discount or Decimal("0")
        total = order.total_amount if order.total_amount is not None else subtotal + tax - discount

        self.row("Subtotal:", _money(subtotal), 5.5)
        self.row("Tax:", _money(tax), 5.5)
        if discount > 0:
            self.row("Discount:", f"-{_money(discount)}", 5.5)
        self.separator()

        self._set_font(6.5, bold=True)
        self._draw("TOTAL:", MARGIN)
        self._draw(_money(total), RECEIPT_WIDTH - MARGIN, "right")
        self._advance(6.5)
        self.separator()

        self.left(f"Payment: {_safe(order.payment_method)}", 5.5)
        paid = order.paid_amount
        if paid is None:
            paid = Decimal("0") if order.payment_status in DUE_PAYMENT_STATUSES else total
        due = order.due_amount if order.due_amount is not None else total - paid
        if due < 0:
            due = Decimal("0")
        self.row("Paid:", _money(paid), 5.5)
        self.row("Due:", _money(due), 5.5)
        self.separator()


def render_receipt_pdf(order: FoodOrder) -> bytes:
    """两遍渲染小票，返回 PDF 字节"""
    measure = canvas.Canvas(io.BytesIO(), pagesize=(RECEIPT_WIDTH * mm, MEASURE_HEIGHT * mm))
    content_height = ReceiptLayout(measure, MEASURE_HEIGHT).draw(order)

    page_height = content_height + BOTTOM_PADDING
    buffer = io.BytesIO()
    final = canvas.Canvas(buffer, pagesize=(RECEIPT_WIDTH * mm, page_height * mm))
    ReceiptLayout(final, page_height).draw(order)
    final.showPage()
    final.save()
    return buffer.getvalue()


class ReceiptService:
    """小票服务"""

    def __init__(
        self,
        db: Session,
        storage: Optional[IObjectStorage] = None,
        event_publisher: Callable[[Event], None] = None,
    ):
        self.db = db
        self._storage = storage
        self._publish_event = event_publisher or event_bus.publish

    def _get_storage(self) -> IObjectStorage:
        storage = self._storage or StorageRegistry().get_backend()
        if storage is None:
            raise RuntimeError("对象存储未配置")
        return storage

    def get_order(self, order_id: int, menu_type: MenuType) -> Optional[FoodOrder]:
        return self.db.query(FoodOrder).filter(
            FoodOrder.id == order_id,
            FoodOrder.menu_type == menu_type
        ).first()

    def generate_and_store(self, order_id: int, menu_type: MenuType = MenuType.FOOD) -> Optional[str]:
        """生成并存储小票，返回公开地址；订单不存在或任一步失败返回 None"""
        menu_type = MenuType(menu_type)
        try:
            order = self.get_order(order_id, menu_type)
            if order is None:
                logger.error(f"[Receipt] Order {order_id} ({menu_type.value}) not found")
                return None

            storage = self._get_storage()
            pdf_bytes = render_receipt_pdf(order)

            path = f"receipts/{order_id}/receipt-{int(time.time() * 1000)}.pdf"
            generated_at = datetime.utcnow()
            storage.save(
                path,
                pdf_bytes,
                content_type="application/pdf",
                metadata={
                    "orderId": str(order_id),
                    "generatedAt": generated_at.isoformat(),
                    "generatedBy": "server",
                },
            )
            receipt_url = storage.public_url(path)

            order.receipt_url = receipt_url
            order.receipt_generated_at = generated_at
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"[Receipt] Generation failed for order {order_id}")
            return None

        logger.info(f"[Receipt] Generated for order {order_id}: {receipt_url}")
        self._publish_event(Event(
            event_type=EventType.RECEIPT_GENERATED,
            data=ReceiptGeneratedData(
                order_id=order_id, menu_type=menu_type.value, receipt_url=receipt_url
            ).to_dict(),
            source="receipt_service",
        ))
        return receipt_url

"""
夜审报表 - 将夜审快照渲染为 A4 PDF
"""
import io
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.config import settings
from app.models.ontology import Booking, FoodOrder, HousekeepingRoom, LedgerEntry


@dataclass
class NightAuditReportData:
    """夜审报表所需的全部快照"""
    business_date: date
    generated_by: str
    staying_over: List[Booking] = field(default_factory=list)
    arrivals_tomorrow: List[Booking] = field(default_factory=list)
    departures_tomorrow: List[Booking] = field(default_factory=list)
    checked_out_today: List[Booking] = field(default_factory=list)
    ledger_entries: List[LedgerEntry] = field(default_factory=list)
    total_revenue: Decimal = Decimal("0")
    food_orders: List[FoodOrder] = field(default_factory=list)
    housekeeping_rooms: List[HousekeepingRoom] = field(default_factory=list)


def _money(value: Optional[Decimal]) -> str:
    return f"${Decimal(value or 0):,.2f}"


def _enum_text(value) -> str:
    if value is None:
        return "-"
    return getattr(value, "value", str(value)).replace("_", " ").title()


class NightAuditReportRenderer:
    """夜审报表渲染器"""

    def __init__(self, hotel_name: str = None):
        self.hotel_name = hotel_name or settings.HOTEL_NAME
        self.styles = getSampleStyleSheet()
        self.styles.add(ParagraphStyle(
            name='ReportTitle',
            parent=self.styles['Heading1'],
            fontSize=18,
            textColor=colors.darkblue,
            alignment=TA_CENTER,
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='Section',
            parent=self.styles['Heading2'],
            fontSize=12,
            textColor=colors.darkblue,
            spaceBefore=14,
            spaceAfter=6,
        ))

    def _table(self, headers: List[str], rows: List[List[str]], col_widths=None) -> Table:
        if not rows:
            rows = [["No records"] + [""] * (len(headers) - 1)]
        table = Table([headers] + rows, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor("#1f3a5f")),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('GRID', (0, 0), (-1, -1), 0.25, colors.grey),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor("#f2f4f7")]),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]))
        return table

    def _booking_rows(self, bookings: List[Booking]) -> List[List[str]]:
        rows = []
        for b in bookings:
            rooms = ", ".join(r.allocated_room or r.room_type for r in b.rooms) or "Unassigned"
            rows.append([b.booking_no, b.guest_name, rooms, b.check_in.isoformat(), b.check_out.isoformat()])
        return rows

    def render(self, data: NightAuditReportData) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            topMargin=1.5 * cm,
            bottomMargin=1.5 * cm,
            leftMargin=1.5 * cm,
            rightMargin=1.5 * cm,
            title=f"Night Audit Report {data.business_date.isoformat()}",
        )
        story = [
            Paragraph(escape(self.hotel_name), self.styles['ReportTitle']),
            Paragraph(f"Night Audit Report - {data.business_date.strftime('%B %d, %Y')}", self.styles['Heading3']),
            Paragraph(
                f"Generated by {escape(data.generated_by)} at {datetime.now().strftime('%Y-%m-%d %H:%M')}",
                self.styles['Normal'],
            ),
            Spacer(1, 12),
        ]

        fb_total = sum((o.total_amount or Decimal("0") for o in data.food_orders), Decimal("0"))
        story.append(self._table(
            ["Metric", "Value"],
            [
                ["Room revenue posted", _money(data.total_revenue)],
                ["Rooms occupied", str(len(data.staying_over))],
                ["Arrivals tomorrow", str(len(data.arrivals_tomorrow))],
                ["Departures tomorrow", str(len(data.departures_tomorrow))],
                ["Checked out today", str(len(data.checked_out_today))],
                ["F&B orders", str(len(data.food_orders))],
                ["F&B sales", _money(fb_total)],
            ],
            col_widths=[8 * cm, 6 * cm],
        ))

        booking_headers = ["Booking", "Guest", "Rooms", "Check-in", "Check-out"]
        for title, bookings in (
            ("In-House Guests", data.staying_over),
            ("Arrivals Tomorrow", data.arrivals_tomorrow),
            ("Departures Tomorrow", data.departures_tomorrow),
            ("Checked Out Today", data.checked_out_today),
        ):
            story.append(Paragraph(title, self.styles['Section']))
            story.append(self._table(booking_headers, self._booking_rows(bookings)))

        story.append(Paragraph("Finance", self.styles['Section']))
        story.append(self._table(
            ["Type", "Category", "Description", "Amount"],
            [
                [_enum_text(e.entry_type), _enum_text(e.category), e.description[:60], _money(e.amount)]
                for e in data.ledger_entries
            ],
            col_widths=[2.2 * cm, 3 * cm, 9 * cm, 3 * cm],
        ))

        story.append(Paragraph("Food &amp; Beverage", self.styles['Section']))
        story.append(self._table(
            ["Order", "Type", "Guest", "Status", "Total"],
            [
                [o.order_number, _enum_text(o.order_type), o.guest_name or "-", o.status or "-", _money(o.total_amount)]
                for o in data.food_orders
            ],
        ))

        story.append(Paragraph("Housekeeping", self.styles['Section']))
        story.append(self._table(
            ["Room", "Suite", "Status", "Housekeeping", "Guest"],
            [
                [r.room_name, r.suite_type or "-", _enum_text(r.status),
                 _enum_text(r.housekeeping_status), r.current_guest_name or "-"]
                for r in data.housekeeping_rooms
            ],
        ))

        doc.build(story)
        return buffer.getvalue()


def generate_night_audit_pdf(data: NightAuditReportData) -> bytes:
    """渲染夜审报表，返回 PDF 字节"""
    return NightAuditReportRenderer().render(data)

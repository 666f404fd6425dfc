"""
预订服务 - 预订查询与状态流转
夜审通过这里读取在住、预抵、预离、已离店的预订
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from app.models.ontology import Booking, BookingRoom, BookingStatus
from app.models.schemas import BookingCreate

# 允许的状态流转
ALLOWED_TRANSITIONS = {
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED},
    BookingStatus.CHECKED_IN: {BookingStatus.CHECKED_OUT},
    BookingStatus.CHECKED_OUT: set(),
    BookingStatus.CANCELLED: set(),
}


def nightly_rate(booking: Booking) -> Decimal:
    """每晚房费 = 各房间房价之和（每次夜审计一整晚，不做分摊）"""
    return sum((room.price or Decimal('0') for room in booking.rooms), Decimal('0'))


class BookingService:
    """预订服务"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Booking).options(selectinload(Booking.rooms))

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self._query().filter(Booking.id == booking_id).first()

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        query = self._query()
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.check_in, Booking.id).all()

    def get_by_status(self, status: BookingStatus) -> List[Booking]:
        return self._query().filter(Booking.status == status).order_by(Booking.id).all()

    def get_arrivals(self, target_date: date) -> List[Booking]:
        """预抵：已确认且入住日为 target_date"""
        return self._query().filter(
            Booking.check_in == target_date,
            Booking.status == BookingStatus.CONFIRMED
        ).all()

    def get_departures(self, target_date: date) -> List[Booking]:
        """预离：在住且离店日为 target_date"""
        return self._query().filter(
            Booking.check_out == target_date,
            Booking.status == BookingStatus.CHECKED_IN
        ).all()

    def get_checked_out_on(self, target_date: date) -> List[Booking]:
        """当日已离店"""
        return self._query().filter(
            Booking.check_out == target_date,
            Booking.status == BookingStatus.CHECKED_OUT
        ).all()

    def create_booking(self, data: BookingCreate) -> Booking:
        """创建预订"""
        booking_no = data.booking_no or f"BK{datetime.now().strftime('%Y%m%d%H%M%S%f')}"
        if self.db.query(Booking).filter(Booking.booking_no == booking_no).first():
            raise ValueError(f"预订号 {booking_no} 已存在")

        booking = Booking(
            booking_no=booking_no,
            check_in=data.check_in,
            check_out=data.check_out,
            guest_first_name=data.guest_first_name,
            guest_last_name=data.guest_last_name,
            guest_email=data.guest_email,
            guest_phone=data.guest_phone,
            status=BookingStatus.CONFIRMED,
            rooms=[BookingRoom(**room.model_dump()) for room in data.rooms],
        )
        nights = (data.check_out - data.check_in).days
        booking.total_amount = data.total_amount if data.total_amount is not None else nightly_rate(booking) * nights

        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def update_status(self, booking_id: int, status: BookingStatus) -> Booking:
        """变更预订状态（校验流转）"""
        booking = self.get_booking(booking_id)
        if not booking:
            raise ValueError("预订不存在")
        if status not in ALLOWED_TRANSITIONS[booking.status]:
            raise ValueError(f"预订状态不能从 {booking.status.value} 变更为 {status.value}")

        booking.status = status
        self.db.commit()
        self.db.refresh(booking)
        return booking

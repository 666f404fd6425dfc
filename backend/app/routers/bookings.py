"""
预订路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import BookingStatus, Employee
from app.models.schemas import BookingCreate, BookingResponse, BookingStatusUpdate
from app.services.booking_service import BookingService
from app.security.auth import get_current_user

router = APIRouter(prefix="/bookings", tags=["预订"])


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    status: Optional[BookingStatus] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """预订列表"""
    return BookingService(db).list_bookings(status)


@router.post("", response_model=BookingResponse)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """创建预订"""
    try:
        return BookingService(db).create_booking(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """变更预订状态"""
    try:
        return BookingService(db).update_status(booking_id, data.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

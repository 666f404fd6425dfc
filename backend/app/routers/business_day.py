"""
营业日路由
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import Employee
from app.models.schemas import BusinessDayResponse
from app.services.business_day_service import BusinessDayService
from app.security.auth import get_current_user

router = APIRouter(prefix="/business-day", tags=["营业日"])


@router.get("", response_model=BusinessDayResponse)
def get_business_day(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取当前营业日"""
    return BusinessDayService(db).get_business_day()

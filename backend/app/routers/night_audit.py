"""
夜审路由
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import Employee
from app.models.schemas import AuditBlockersResponse, NightAuditLogResponse, NightAuditRunResponse
from app.services.night_audit_service import NightAuditOutcome, NightAuditService
from app.security.auth import get_current_user, require_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/night-audit", tags=["夜审"])


@router.get("/blockers", response_model=AuditBlockersResponse)
def get_audit_blockers(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """夜审前检查"""
    return NightAuditService(db).get_audit_blockers()


@router.post("/run", response_model=NightAuditRunResponse)
def run_night_audit(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """执行夜审"""
    service = NightAuditService(db)
    result = service.run(staff_id=str(current_user.id), staff_name=current_user.name)

    if result.outcome == NightAuditOutcome.FATAL:
        code = status.HTTP_409_CONFLICT if result.conflict else status.HTTP_500_INTERNAL_SERVER_ERROR
        raise HTTPException(status_code=code, detail=result.reason)

    audit_log = service.get_audit_log(result.audit_log_id)
    return NightAuditRunResponse(
        outcome=result.outcome.value,
        audit_log_id=result.audit_log_id,
        reason=result.reason,
        audit_log=NightAuditLogResponse.model_validate(audit_log) if audit_log else None,
    )


@router.delete("/lock")
def clear_audit_lock(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_manager)
):
    """清除当前营业日的夜审锁"""
    service = NightAuditService(db)
    business_date = service.business_days.get_current_business_date()
    if not service.clear_lock(business_date):
        raise HTTPException(status_code=404, detail="当前营业日没有夜审锁")
    logger.info(f"Night audit lock for {business_date} cleared by {current_user.name}")
    return {"business_date": business_date.isoformat(), "cleared": True}


@router.get("/logs", response_model=List[NightAuditLogResponse])
def list_audit_logs(
    limit: int = Query(50, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """夜审历史"""
    return NightAuditService(db).get_audit_history(limit)


@router.get("/logs/{audit_log_id}", response_model=NightAuditLogResponse)
def get_audit_log(
    audit_log_id: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """获取单条夜审记录"""
    audit_log = NightAuditService(db).get_audit_log(audit_log_id)
    if not audit_log:
        raise HTTPException(status_code=404, detail="夜审记录不存在")
    return audit_log
